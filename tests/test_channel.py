import asyncio

import pytest

from streamdeck_runtime.channel import EventChannel
from streamdeck_runtime.errors import ChannelClosed


@pytest.mark.asyncio
async def test_items_delivered_in_order():
    channel = EventChannel(10)
    for i in range(5):
        await channel.put(i)
    assert [await channel.get() for _ in range(5)] == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_close_drains_then_ends():
    channel = EventChannel(10)
    await channel.put("a")
    await channel.put("b")
    channel.close()
    channel.close()

    assert await channel.get() == "a"
    assert await channel.get() == "b"
    with pytest.raises(ChannelClosed):
        await channel.get()


@pytest.mark.asyncio
async def test_put_after_close_raises():
    channel = EventChannel(1)
    channel.close()
    with pytest.raises(ChannelClosed):
        await channel.put(1)
    with pytest.raises(ChannelClosed):
        channel.put_nowait(1)


@pytest.mark.asyncio
async def test_close_releases_blocked_producer():
    channel = EventChannel(1)
    await channel.put("first")
    producer = asyncio.create_task(channel.put("second"))
    await asyncio.sleep(0.01)
    assert not producer.done()

    channel.close()
    with pytest.raises(ChannelClosed):
        await asyncio.wait_for(producer, timeout=1)
    assert channel.qsize() == 1


@pytest.mark.asyncio
async def test_close_releases_blocked_consumer():
    channel = EventChannel(1)
    consumer = asyncio.create_task(channel.get())
    await asyncio.sleep(0.01)

    channel.close()
    with pytest.raises(ChannelClosed):
        await asyncio.wait_for(consumer, timeout=1)


@pytest.mark.asyncio
async def test_blocked_producer_resumes_when_space_frees():
    channel = EventChannel(1)
    await channel.put(1)
    producer = asyncio.create_task(channel.put(2))
    await asyncio.sleep(0.01)

    assert await channel.get() == 1
    await asyncio.wait_for(producer, timeout=1)
    assert await channel.get() == 2


@pytest.mark.asyncio
async def test_put_nowait_when_full():
    channel = EventChannel(1)
    channel.put_nowait("x")
    assert channel.full()
    with pytest.raises(asyncio.QueueFull):
        channel.put_nowait("y")


@pytest.mark.asyncio
async def test_discard_drops_queued_items():
    channel = EventChannel(5)
    for i in range(3):
        channel.put_nowait(i)

    assert channel.discard() == 3
    assert channel.closed
    assert channel.empty()
    with pytest.raises(ChannelClosed):
        channel.get_nowait()
