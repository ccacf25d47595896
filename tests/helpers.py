from __future__ import annotations

import asyncio

from astrbot_plugin_quote_sync.model import PublishError, Quote
from astrbot_plugin_quote_sync.storage import MemoryStorage


class CountingStorage(MemoryStorage):
    def __init__(self, initial=None) -> None:
        super().__init__(initial)
        self.writes: list[str] = []

    def set(self, key: str, value: bytes) -> None:
        self.writes.append(key)
        super().set(key, value)


class ReadOnlyStorage(MemoryStorage):
    def set(self, key: str, value: bytes) -> None:
        raise PermissionError("read-only data dir")


class RecordingPublisher:
    def __init__(self, gate: asyncio.Event | None = None, fail: bool = False) -> None:
        self.gate = gate
        self.fail = fail
        self.published: list[Quote] = []

    async def publish(self, quote: Quote) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise PublishError("server down")
        self.published.append(quote)
