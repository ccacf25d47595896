import json
import random
import asyncio
import contextlib
import dataclasses
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Union

from .model import (
    ALL_CATEGORIES,
    DEFAULT_CATEGORY,
    ParseError,
    PublishError,
    Quote,
    SnapshotImportError,
    StorageError,
    SyncError,
    ValidationError,
)
from .storage import FILTER_KEY, QUOTES_KEY

EXPORT_FILENAME = "quotes.json"

DEFAULT_QUOTES = [
    Quote(text="Believe in yourself.", category="Motivation"),
    Quote(text="Work hard, stay humble.", category="Success"),
]

RemoteFetch = Callable[[], Awaitable[List[Quote]]]
PublishErrorHandler = Callable[[Quote, PublishError], None]


@dataclass
class SyncResult:
    added: int = 0
    updated: int = 0

    @property
    def changed(self) -> bool:
        return self.added + self.updated > 0


def _to_quote(data: Any, default_category: str = DEFAULT_CATEGORY) -> Quote:
    """安全转换为 Quote 对象，自动忽略多余字段"""
    if not isinstance(data, dict):
        raise ParseError(f"语录条目应为对象: {data!r}")
    text = data.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ParseError("语录条目缺少 text")
    category = data.get("category")
    if not isinstance(category, str) or not category.strip():
        category = default_category
    return Quote(text=text.strip(), category=category.strip())


def parse_quotes(raw: Union[bytes, str], default_category: str = DEFAULT_CATEGORY) -> List[Quote]:
    try:
        data = json.loads(raw)
    except ValueError as e:
        # JSONDecodeError 与 UnicodeDecodeError 都是 ValueError
        raise ParseError(f"JSON 解析失败: {e}") from e
    if not isinstance(data, list):
        raise ParseError("语录数据应为 JSON 数组")
    return [_to_quote(item, default_category) for item in data]


def dump_quotes(quotes: Iterable[Quote]) -> bytes:
    data = [dataclasses.asdict(q) for q in quotes]
    return json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8")


def categories_of(quotes: Iterable[Quote]) -> List[str]:
    """按首次出现顺序列出分类，首项固定为 all"""
    result = [ALL_CATEGORIES]
    seen = {ALL_CATEGORIES}
    for q in quotes:
        if q.category not in seen:
            seen.add(q.category)
            result.append(q.category)
    return result


def pick_random(quotes: List[Quote], rng: Optional[random.Random] = None) -> Optional[Quote]:
    if not quotes:
        return None
    rng = rng or random
    return quotes[rng.randrange(len(quotes))]


class QuoteStore:
    def __init__(
        self,
        storage,
        publisher=None,
        on_publish_error: Optional[PublishErrorHandler] = None,
        seed: Optional[List[Quote]] = None,
        default_category: str = DEFAULT_CATEGORY,
    ):
        self.storage = storage
        self.publisher = publisher
        self.on_publish_error = on_publish_error
        self.default_category = default_category
        self.last_publish_error: Optional[PublishError] = None
        self._seed = list(DEFAULT_QUOTES if seed is None else seed)
        self._lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()
        self._cache: List[Quote] = []
        self._filter = ALL_CATEGORIES
        self.load()

    def load(self) -> List[Quote]:
        """从存储读取；缺失或损坏时回退到内置语录"""
        quotes = None
        raw = self.storage.get(QUOTES_KEY)
        if raw is not None:
            try:
                quotes = parse_quotes(raw, self.default_category)
            except ParseError:
                quotes = None
        if quotes is None:
            quotes = [dataclasses.replace(q) for q in self._seed]
        self._cache = quotes

        raw_filter = self.storage.get(FILTER_KEY)
        if raw_filter is None:
            self._filter = ALL_CATEGORIES
        else:
            self._filter = raw_filter.decode("utf-8", errors="replace").strip() or ALL_CATEGORIES
        return list(self._cache)

    def _commit(self, quotes: List[Quote]):
        # 先写存储再替换缓存，写入失败时内存保持原样
        try:
            self.storage.set(QUOTES_KEY, dump_quotes(quotes))
        except OSError as e:
            raise StorageError(f"保存语录失败: {e}") from e
        self._cache = quotes

    @property
    def quotes(self) -> List[Quote]:
        return list(self._cache)

    @property
    def current_filter(self) -> str:
        return self._filter

    # ================= 增 / 查 =================

    async def add_quote(self, text: str, category: str = "") -> Quote:
        text = (text or "").strip()
        if not text:
            raise ValidationError("语录内容不能为空")
        quote = Quote(text=text, category=(category or "").strip() or self.default_category)
        async with self._lock:
            self._commit(self._cache + [quote])
        self._schedule_publish(quote)
        return quote

    def list_quotes(self, category: Optional[str] = None) -> List[Quote]:
        """按分类筛选；all 或不存在的分类返回全部"""
        if category is None:
            category = self._filter
        category = category.strip()
        if not category or category == ALL_CATEGORIES or category not in self.categories():
            return list(self._cache)
        return [q for q in self._cache if q.category == category]

    def pick_random(self, quotes: Optional[List[Quote]] = None, rng: Optional[random.Random] = None) -> Optional[Quote]:
        if quotes is None:
            quotes = self.list_quotes()
        return pick_random(quotes, rng)

    def categories(self, quotes: Optional[Iterable[Quote]] = None) -> List[str]:
        return categories_of(self._cache if quotes is None else quotes)

    # ================= 筛选状态 =================

    async def set_filter(self, category: str):
        category = (category or "").strip() or ALL_CATEGORIES
        async with self._lock:
            try:
                self.storage.set(FILTER_KEY, category.encode("utf-8"))
            except OSError as e:
                raise StorageError(f"保存筛选分类失败: {e}") from e
            self._filter = category

    def resolved_filter(self) -> str:
        if self._filter in self.categories():
            return self._filter
        return ALL_CATEGORIES

    # ================= 导入 / 导出 =================

    def export_snapshot(self) -> bytes:
        return dump_quotes(self._cache)

    async def import_snapshot(self, data: Union[bytes, str]) -> int:
        """整批导入：任一条目无效则全部不生效"""
        try:
            incoming = parse_quotes(data, self.default_category)
        except ParseError as e:
            raise SnapshotImportError(str(e)) from e
        if incoming:
            async with self._lock:
                self._commit(self._cache + incoming)
        return len(incoming)

    # ================= 远端同步 =================

    def _normalize_remote(self, remote: Any) -> List[Quote]:
        if not isinstance(remote, list):
            raise SyncError("远端数据应为语录列表")
        result = []
        for rq in remote:
            if not isinstance(rq, Quote) or not isinstance(rq.text, str) or not rq.text.strip():
                raise SyncError(f"远端语录无效: {rq!r}")
            category = rq.category.strip() if isinstance(rq.category, str) else ""
            result.append(Quote(text=rq.text.strip(), category=category or self.default_category))
        return result

    async def sync_with_remote(self, fetch: RemoteFetch) -> SyncResult:
        try:
            remote = await fetch()
        except Exception as e:
            raise SyncError(f"拉取远端语录失败: {e}") from e
        remote = self._normalize_remote(remote)

        result = SyncResult()
        async with self._lock:
            merged = [dataclasses.replace(q) for q in self._cache]
            by_text: Dict[str, List[Quote]] = {}
            for q in merged:
                by_text.setdefault(q.text, []).append(q)

            for rq in remote:
                matches = by_text.get(rq.text)
                if not matches:
                    merged.append(rq)
                    by_text[rq.text] = [rq]
                    result.added += 1
                    continue
                # 远端分类覆盖本地，text 作为匹配键不变
                changed = False
                for local in matches:
                    if local.category != rq.category:
                        local.category = rq.category
                        changed = True
                if changed:
                    result.updated += 1

            if result.changed:
                try:
                    self._commit(merged)
                except StorageError as e:
                    raise SyncError(str(e)) from e
        return result

    # ================= 上报 =================

    def _schedule_publish(self, quote: Quote):
        if self.publisher is None:
            return
        task = asyncio.create_task(self._publish(quote))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, quote: Quote):
        try:
            await self.publisher.publish(quote)
        except Exception as e:
            err = e if isinstance(e, PublishError) else PublishError(str(e))
            self.last_publish_error = err
            if self.on_publish_error:
                with contextlib.suppress(Exception):
                    self.on_publish_error(quote, err)

    async def wait_for_publishes(self):
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
