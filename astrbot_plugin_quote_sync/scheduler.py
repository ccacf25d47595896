import asyncio
import contextlib
from typing import Callable, Optional

from .dao import QuoteStore, RemoteFetch, SyncResult
from .model import SyncError

DEFAULT_INTERVAL = 60.0


class PeriodicSync:
    """定时同步任务，由插件显式 start / stop"""

    def __init__(
        self,
        store: QuoteStore,
        fetch: RemoteFetch,
        interval: float = DEFAULT_INTERVAL,
        on_result: Optional[Callable[[SyncResult], None]] = None,
        on_error: Optional[Callable[[SyncError], None]] = None,
    ):
        self.store = store
        self.fetch = fetch
        self.interval = interval
        self.on_result = on_result
        self.on_error = on_error
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self):
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _report(self, callback, arg):
        # 回调异常不能终止定时任务
        if callback:
            with contextlib.suppress(Exception):
                callback(arg)

    async def run_once(self) -> Optional[SyncResult]:
        try:
            result = await self.store.sync_with_remote(self.fetch)
        except SyncError as e:
            # 不立即重试，等下一个周期
            self._report(self.on_error, e)
            return None
        self._report(self.on_result, result)
        return result

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception as e:
                self._report(self.on_error, SyncError(str(e)))
