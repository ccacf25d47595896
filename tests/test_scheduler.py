from __future__ import annotations

import asyncio

from astrbot_plugin_quote_sync.dao import QuoteStore, SyncResult
from astrbot_plugin_quote_sync.model import FetchError, Quote
from astrbot_plugin_quote_sync.scheduler import PeriodicSync
from astrbot_plugin_quote_sync.storage import MemoryStorage

from helpers import ReadOnlyStorage


async def _server_quotes():
    return [Quote("from server", "Server")]


async def _unreachable():
    raise FetchError("unreachable")


def test_run_once_reports_result() -> None:
    results = []

    async def scenario():
        store = QuoteStore(MemoryStorage(), seed=[])
        syncer = PeriodicSync(store, _server_quotes, on_result=results.append)
        return store, await syncer.run_once()

    store, result = asyncio.run(scenario())

    assert result == SyncResult(added=1, updated=0)
    assert results == [result]
    assert store.quotes == [Quote("from server", "Server")]


def test_run_once_reports_error_without_raising() -> None:
    errors = []

    async def scenario():
        store = QuoteStore(MemoryStorage(), seed=[Quote("A", "X")])
        syncer = PeriodicSync(store, _unreachable, on_error=errors.append)
        return store, await syncer.run_once()

    store, result = asyncio.run(scenario())

    assert result is None
    assert len(errors) == 1
    assert store.quotes == [Quote("A", "X")]


def test_periodic_sync_keeps_running_after_failures() -> None:
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise FetchError("first tick fails")
        return [Quote("later", "Server")]

    async def scenario():
        store = QuoteStore(MemoryStorage(), seed=[])
        done = asyncio.Event()
        syncer = PeriodicSync(store, flaky, interval=0.01, on_result=lambda r: done.set())
        syncer.start()
        syncer.start()
        assert syncer.running
        await asyncio.wait_for(done.wait(), timeout=2)
        await syncer.stop()
        return store, syncer

    store, syncer = asyncio.run(scenario())

    assert not syncer.running
    assert len(calls) >= 2
    assert Quote("later", "Server") in store.quotes


def test_stop_without_start_is_noop() -> None:
    syncer = PeriodicSync(QuoteStore(MemoryStorage()), _server_quotes)

    asyncio.run(syncer.stop())

    assert not syncer.running


def test_run_once_reports_storage_failure() -> None:
    errors = []

    async def scenario():
        store = QuoteStore(ReadOnlyStorage(), seed=[])
        syncer = PeriodicSync(store, _server_quotes, on_error=errors.append)
        return store, await syncer.run_once()

    store, result = asyncio.run(scenario())

    assert result is None
    assert len(errors) == 1
    assert store.quotes == []


def test_run_once_ignores_raising_callbacks() -> None:
    def explode(arg):
        raise RuntimeError("callback broke")

    async def scenario():
        ok = PeriodicSync(QuoteStore(MemoryStorage(), seed=[]), _server_quotes, on_result=explode)
        failing = PeriodicSync(QuoteStore(MemoryStorage(), seed=[]), _unreachable, on_error=explode)
        return await ok.run_once(), await failing.run_once()

    ok_result, failed_result = asyncio.run(scenario())

    assert ok_result == SyncResult(added=1, updated=0)
    assert failed_result is None


def test_periodic_sync_survives_raising_error_handler() -> None:
    seen = []

    async def scenario():
        enough = asyncio.Event()

        def on_error(err):
            seen.append(err)
            if len(seen) >= 2:
                enough.set()
            raise RuntimeError("handler broke")

        syncer = PeriodicSync(QuoteStore(MemoryStorage(), seed=[]), _unreachable, interval=0.01, on_error=on_error)
        syncer.start()
        await asyncio.wait_for(enough.wait(), timeout=2)
        running = syncer.running
        await syncer.stop()
        return running

    assert asyncio.run(scenario())
    assert len(seen) >= 2
