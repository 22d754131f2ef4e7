from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Set

from web.polling import poll_loop, poll_once


class FakeTelegram:
    def __init__(self, batches: List[Any], *, stop_event: Optional[asyncio.Event] = None) -> None:
        self.batches = batches
        self.offsets: List[Optional[int]] = []
        self.stop_event = stop_event

    async def get_updates(self, *, offset: Optional[int] = None, timeout: int = 10) -> List[Dict[str, Any]]:
        self.offsets.append(offset)
        if not self.batches:
            if self.stop_event is not None:
                self.stop_event.set()
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch


class FakeRouter:
    def __init__(self) -> None:
        self.dispatched: List[int] = []

    async def dispatch_update(self, update: Dict[str, Any]) -> None:
        self.dispatched.append(update["update_id"])


def test_poll_once_dispatches_in_order_and_advances_offset() -> None:
    telegram = FakeTelegram([[{"update_id": 10}, {"update_id": 11}], []])
    router = FakeRouter()

    async def _poll_twice() -> Optional[int]:
        offset = await poll_once(telegram, router, offset=None, timeout=0)
        return await poll_once(telegram, router, offset=offset, timeout=0)

    final_offset = asyncio.run(_poll_twice())

    assert router.dispatched == [10, 11]
    assert telegram.offsets == [None, 12]
    assert final_offset == 12


def test_slow_update_does_not_block_the_rest_of_the_batch() -> None:
    finished: List[int] = []

    class BlockingRouter:
        def __init__(self) -> None:
            self.released = asyncio.Event()

        async def dispatch_update(self, update: Dict[str, Any]) -> None:
            if update["update_id"] == 1:
                await self.released.wait()
            else:
                self.released.set()
            finished.append(update["update_id"])

    telegram = FakeTelegram([[{"update_id": 1}, {"update_id": 2}]])

    async def _run() -> None:
        await asyncio.wait_for(poll_once(telegram, BlockingRouter(), offset=None, timeout=0), timeout=1)

    asyncio.run(_run())

    assert finished == [2, 1]


def test_poll_once_tracks_background_tasks() -> None:
    telegram = FakeTelegram([[{"update_id": 5}]])
    router = FakeRouter()

    async def _run() -> Set[asyncio.Task]:
        pending: Set[asyncio.Task] = set()
        await poll_once(telegram, router, offset=None, timeout=0, pending=pending)
        tracked = set(pending)
        await asyncio.gather(*tracked)
        return tracked

    tracked = asyncio.run(_run())

    assert len(tracked) == 1
    assert router.dispatched == [5]


def test_poll_loop_survives_unexpected_errors() -> None:
    router = FakeRouter()

    async def _run() -> FakeTelegram:
        stop_event = asyncio.Event()
        telegram = FakeTelegram(
            [RuntimeError("bad batch"), [{"update_id": 7}]],
            stop_event=stop_event,
        )
        await asyncio.wait_for(
            poll_loop(telegram, router, timeout=0, stop_event=stop_event, backoff_seconds=0),
            timeout=1,
        )
        return telegram

    telegram = asyncio.run(_run())

    assert router.dispatched == [7]
    assert telegram.offsets == [None, None, 8]
