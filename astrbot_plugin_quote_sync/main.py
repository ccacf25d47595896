from __future__ import annotations

import re
import asyncio
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from astrbot.api.event import filter, AstrMessageEvent
from astrbot.api.star import Context, Star, register
from astrbot.api import logger
import astrbot.api.message_components as Comp

# 导入分层模块
from .model import Quote, QuoteError, PublishError, StorageError, SyncError, ValidationError, ALL_CATEGORIES, DEFAULT_CATEGORY, SERVER_CATEGORY
from .dao import QuoteStore, SyncResult, EXPORT_FILENAME
from .storage import FileStorage
from .remote import RemoteQuoteSource, RemotePublisher, DEFAULT_REMOTE_URL, DEFAULT_TIMEOUT
from .scheduler import PeriodicSync, DEFAULT_INTERVAL
from .renderer import QuoteRenderer, NO_QUOTES_MESSAGE, ALL_CATEGORIES_LABEL

PLUGIN_NAME = "quote_sync"


def strip_command(message: str) -> str:
    """去掉消息开头的指令词，返回参数部分"""
    return re.sub(r"^\s*\S+\s*", "", message or "", count=1).strip()


def split_quote_args(args: str) -> Tuple[str, str]:
    """解析 `内容 | 分类`，分类可省略"""
    text, sep, category = args.rpartition("|")
    if not sep:
        return args.strip(), ""
    return text.strip(), category.strip()


@register("astrbot_plugin_quote_sync", "jengaklll-a11y", "语录(同步版)", "1.1.0", "支持分类筛选、导入导出与远端定时同步的语录插件")
class QuoteSyncPlugin(Star):
    def __init__(self, context: Context, config: Dict = None):
        super().__init__(context)
        self.config = config or {}
        self.data_dir = Path(f"data/plugin_data/{PLUGIN_NAME}")
        timeout = float(self.config.get("request_timeout", DEFAULT_TIMEOUT))

        publisher = None
        if self.config.get("publish_on_add", True):
            publisher = RemotePublisher(self.config.get("publish_url", DEFAULT_REMOTE_URL), timeout=timeout)
        self.source = RemoteQuoteSource(
            self.config.get("remote_url", DEFAULT_REMOTE_URL),
            timeout=timeout,
            category=self.config.get("remote_category", SERVER_CATEGORY),
        )
        self.store = QuoteStore(
            FileStorage(self.data_dir),
            publisher=publisher,
            on_publish_error=self._on_publish_error,
            default_category=self.config.get("default_category", DEFAULT_CATEGORY),
        )
        self.syncer = PeriodicSync(
            self.store,
            self.source,
            interval=float(self.config.get("sync_interval", DEFAULT_INTERVAL)),
            on_result=self._on_sync_result,
            on_error=self._on_sync_error,
        )

    async def initialize(self):
        if self.config.get("auto_sync", True):
            self.syncer.start()
            logger.info(f"语录定时同步已启动，间隔 {self.syncer.interval:g} 秒")

    async def terminate(self):
        await self.syncer.stop()
        await self.store.wait_for_publishes()

    # ================= 1. 指令注册 =================

    @filter.command("语录", alias={"quote", "随机语录"})
    async def cmd_random(self, event: AstrMessageEvent):
        """按当前分类随机一条语录"""
        async for res in self._logic_random(event):
            yield res

    @filter.command("语录列表", alias={"quotes"})
    async def cmd_list(self, event: AstrMessageEvent):
        """列出当前分类下的全部语录"""
        async for res in self._logic_list(event):
            yield res

    @filter.command("添加语录", alias={"addquote"})
    async def cmd_add(self, event: AstrMessageEvent):
        """添加语录：/添加语录 内容 | 分类"""
        async for res in self._logic_add(event):
            yield res

    @filter.command("语录分类", alias={"category"})
    async def cmd_category(self, event: AstrMessageEvent):
        """查看分类，或切换当前分类"""
        async for res in self._logic_category(event):
            yield res

    @filter.command("导出语录", alias={"exportquotes"})
    async def cmd_export(self, event: AstrMessageEvent):
        """导出 quotes.json"""
        async for res in self._logic_export(event):
            yield res

    @filter.command("导入语录", alias={"importquotes"})
    async def cmd_import(self, event: AstrMessageEvent):
        """导入 JSON 数组格式的语录"""
        async for res in self._logic_import(event):
            yield res

    @filter.command("同步语录", alias={"syncquotes"})
    async def cmd_sync(self, event: AstrMessageEvent):
        """立即与远端同步"""
        async for res in self._logic_sync(event):
            yield res

    # ================= 2. 核心业务逻辑 =================

    async def _logic_random(self, event: AstrMessageEvent):
        quotes = self.store.list_quotes(self.store.resolved_filter())
        quote = self.store.pick_random(quotes)
        if quote is None:
            yield event.plain_result(NO_QUOTES_MESSAGE)
            return

        index = next((i + 1 for i, q in enumerate(quotes) if q is quote), 0)
        try:
            html_content, options = QuoteRenderer.render_single_card(quote, index, len(quotes))
            img_url = await self.html_render(html_content, {}, options=options)
            yield event.image_result(img_url)
        except Exception as e:
            logger.error(f"渲染语录卡片失败: {e}")
            yield event.plain_result(QuoteRenderer.render_text(quote))

    async def _logic_list(self, event: AstrMessageEvent):
        current = self.store.resolved_filter()
        quotes = self.store.list_quotes(current)
        if not quotes:
            yield event.plain_result(NO_QUOTES_MESSAGE)
            return

        title = ALL_CATEGORIES_LABEL if current == ALL_CATEGORIES else current
        try:
            html_content, options = QuoteRenderer.render_list_card(quotes, title)
            img_url = await self.html_render(html_content, {}, options=options)
            yield event.image_result(img_url)
        except Exception as e:
            logger.error(f"渲染语录列表失败: {e}")
            yield event.plain_result(QuoteRenderer.render_quote_list(quotes))

    async def _logic_add(self, event: AstrMessageEvent):
        text, category = split_quote_args(strip_command(event.message_str))
        try:
            quote = await self.store.add_quote(text, category)
        except ValidationError:
            yield event.plain_result("请填写语录内容，例如：/添加语录 内容 | 分类")
            return
        except StorageError as e:
            logger.error(f"添加语录失败: {e}")
            yield event.plain_result(f"保存失败，语录未收录：{e}")
            return
        yield event.plain_result(f"已收录：{QuoteRenderer.render_text(quote)}")

    async def _logic_category(self, event: AstrMessageEvent):
        arg = strip_command(event.message_str)
        if not arg:
            options = QuoteRenderer.render_category_options(self.store.categories(), self.store.resolved_filter())
            yield event.plain_result(f"可选分类：\n{options}")
            return

        if arg == ALL_CATEGORIES_LABEL:
            arg = ALL_CATEGORIES
        try:
            await self.store.set_filter(arg)
        except StorageError as e:
            logger.error(f"切换分类失败: {e}")
            yield event.plain_result(f"保存失败，分类未切换：{e}")
            return
        if self.store.resolved_filter() != arg:
            yield event.plain_result(f"暂无分类「{arg}」，将显示全部语录。")
            return
        label = ALL_CATEGORIES_LABEL if arg == ALL_CATEGORIES else arg
        yield event.plain_result(f"已切换到分类：{label}")

    async def _logic_export(self, event: AstrMessageEvent):
        export_dir = self.data_dir / "exports"
        try:
            export_dir.mkdir(parents=True, exist_ok=True)
            path = export_dir / EXPORT_FILENAME
            path.write_bytes(self.store.export_snapshot())
        except OSError as e:
            logger.error(f"导出语录失败: {e}")
            yield event.plain_result(f"导出失败：{e}")
            return
        yield event.chain_result([Comp.File(name=EXPORT_FILENAME, file=str(path.resolve()))])

    async def _logic_import(self, event: AstrMessageEvent):
        # 优先读取随消息发送的 quotes.json，其次读取指令后的 JSON 文本
        payload = None
        file_seg = self._get_file_segment(event)
        if file_seg is not None:
            try:
                payload = await self._read_file_segment(file_seg)
            except Exception as e:
                logger.warning(f"读取导入文件失败: {e}")
                yield event.plain_result(f"读取文件失败，未做任何修改：{e}")
                return
        if not payload:
            payload = strip_command(event.message_str)
        if not payload:
            yield event.plain_result('请发送 quotes.json 文件，或在指令后附上 JSON 数组，例如：/导入语录 [{"text": "...", "category": "..."}]')
            return
        try:
            count = await self.store.import_snapshot(payload)
        except QuoteError as e:
            yield event.plain_result(f"导入失败，未做任何修改：{e}")
            return
        yield event.plain_result(f"成功导入 {count} 条语录。")

    async def _logic_sync(self, event: AstrMessageEvent):
        result = await self.syncer.run_once()
        if result is None:
            yield event.plain_result("同步失败，本地语录未改动，稍后会自动重试。")
            return
        yield event.plain_result(f"同步完成：新增 {result.added} 条，更新 {result.updated} 条。")

    # ================= 3. 工具方法 =================

    def _get_file_segment(self, event: AstrMessageEvent) -> Optional[Comp.File]:
        message_obj = getattr(event, "message_obj", None)
        for seg in getattr(message_obj, "message", None) or []:
            if isinstance(seg, Comp.File):
                return seg
        return None

    async def _read_file_segment(self, seg: Any) -> bytes:
        path = ""
        get_file = getattr(seg, "get_file", None)
        if get_file is not None:
            path = await get_file()
        path = path or getattr(seg, "file_", None) or getattr(seg, "file", None)
        if not path:
            raise FileNotFoundError("附件没有可读取的本地路径")
        return await asyncio.to_thread(Path(path).read_bytes)

    # ================= 4. 回调 =================

    def _on_sync_result(self, result: SyncResult):
        if result.changed:
            logger.info(f"语录已与远端同步：新增 {result.added}，更新 {result.updated}")

    def _on_sync_error(self, err: SyncError):
        logger.warning(f"语录同步失败: {err}")

    def _on_publish_error(self, quote: Quote, err: PublishError):
        logger.warning(f"语录上报失败 ({quote.text[:20]}): {err}")
