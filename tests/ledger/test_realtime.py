import asyncio

import pytest

from qscore.store.contracts import CHANGE_INSERT, TABLE_ENTRIES, ChangeEvent
from qscore.store.realtime import ChangeFeed

EVENT = ChangeEvent(table=TABLE_ENTRIES, kind=CHANGE_INSERT, record_id="1")


@pytest.mark.asyncio
async def test_publish_reaches_sync_and_async_subscribers() -> None:
    feed = ChangeFeed()
    seen = []

    async def async_subscriber(event):
        await asyncio.sleep(0)
        seen.append(("async", event.record_id))

    feed.subscribe(lambda event: seen.append(("sync", event.record_id)))
    feed.subscribe(async_subscriber)

    feed.publish(EVENT)
    await feed.drain()

    assert sorted(seen) == [("async", "1"), ("sync", "1")]


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others() -> None:
    feed = ChangeFeed()
    seen = []

    def broken(_event):
        raise RuntimeError("boom")

    async def broken_async(_event):
        raise RuntimeError("boom")

    feed.subscribe(broken)
    feed.subscribe(broken_async)
    feed.subscribe(seen.append)

    feed.publish(EVENT)
    await feed.drain()

    assert seen == [EVENT]


def test_unsubscribe_stops_delivery() -> None:
    feed = ChangeFeed()
    seen = []
    unsubscribe = feed.subscribe(seen.append)

    unsubscribe()
    unsubscribe()
    feed.publish(EVENT)

    assert seen == []
    assert feed.subscriber_count == 0
