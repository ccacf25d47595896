"""
远端语录源与上报客户端 (requests + 线程池，避免阻塞事件循环)
"""

import asyncio
from typing import Any, List, Optional

import requests

from .model import SERVER_CATEGORY, FetchError, PublishError, Quote

DEFAULT_REMOTE_URL = "https://jsonplaceholder.typicode.com/posts"
DEFAULT_TIMEOUT = 5.0
HTTP_HEADERS = {"Accept": "application/json", "User-Agent": "astrbot-plugin-quote-sync"}


def _new_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(HTTP_HEADERS)
    return session


def map_remote_records(records: Any, category: str = SERVER_CATEGORY) -> List[Quote]:
    """远端记录 -> Quote：取 title (或 text) 作为内容，分类固定"""
    if not isinstance(records, list):
        raise FetchError("远端返回的不是数组")
    quotes = []
    for rec in records:
        if not isinstance(rec, dict):
            raise FetchError(f"远端记录格式错误: {rec!r}")
        text = rec.get("title") or rec.get("text")
        if not isinstance(text, str) or not text.strip():
            raise FetchError(f"远端记录缺少标题: {rec!r}")
        quotes.append(Quote(text=text.strip(), category=category))
    return quotes


class RemoteQuoteSource:
    def __init__(
        self,
        url: str = DEFAULT_REMOTE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        category: str = SERVER_CATEGORY,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.category = category
        self.session = session or _new_session()

    def _fetch_sync(self) -> List[Quote]:
        try:
            r = self.session.get(self.url, timeout=self.timeout)
            r.raise_for_status()
            payload = r.json()
        except requests.RequestException as e:
            raise FetchError(f"请求 {self.url} 失败: {e}") from e
        except ValueError as e:
            raise FetchError(f"远端返回非 JSON 内容: {e}") from e
        return map_remote_records(payload, self.category)

    async def fetch_remote_quotes(self) -> List[Quote]:
        return await asyncio.to_thread(self._fetch_sync)

    # 允许直接作为 QuoteStore.sync_with_remote 的 fetch 参数
    __call__ = fetch_remote_quotes


class RemotePublisher:
    def __init__(
        self,
        url: str = DEFAULT_REMOTE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or _new_session()

    def _publish_sync(self, quote: Quote):
        body = {"title": quote.text, "body": quote.category, "userId": 1}
        try:
            r = self.session.post(self.url, json=body, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise PublishError(f"上报语录失败: {e}") from e

    async def publish(self, quote: Quote):
        await asyncio.to_thread(self._publish_sync, quote)
