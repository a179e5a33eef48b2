import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from fake_influx import FakeInflux, run_with_client
from influxline.client import InfluxDb, InfluxTarget
from influxline.errors import InfluxDbApiError, InvalidPoint
from influxline.point import Point
from influxline.writer import AsyncPointWriter

T = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


def make_points(count):
    return [
        Point("m", tags={"n": str(i)}, fields={"v": i}, timestamp=T + timedelta(seconds=i))
        for i in range(count)
    ]


def test_close_flushes_queued_points():
    fake = FakeInflux()

    async def scenario(client):
        writer = AsyncPointWriter(client, "demo", flush_interval_s=10.0)
        await writer.start()
        for point in make_points(3):
            await writer.write(point)
        await writer.close()

    asyncio.run(run_with_client(fake, scenario))

    lines = "\n".join(write["body"] for write in fake.writes).split("\n")
    assert lines == [
        'm,n="0" v=0 1700000000000',
        'm,n="1" v=1 1700000001000',
        'm,n="2" v=2 1700000002000',
    ]


def test_batches_are_capped():
    fake = FakeInflux()

    async def scenario(client):
        writer = AsyncPointWriter(client, "demo", batch_max_points=2, flush_interval_s=10.0)
        await writer.start()
        for point in make_points(5):
            await writer.write(point)
        await writer.close()

    asyncio.run(run_with_client(fake, scenario))

    assert [write["body"].count("\n") + 1 for write in fake.writes] == [2, 2, 1]


def test_flush_interval():
    fake = FakeInflux()

    async def scenario(client):
        writer = AsyncPointWriter(client, "demo", flush_interval_s=0.05)
        await writer.start()
        await writer.write(make_points(1)[0])
        await asyncio.sleep(0.3)
        flushed = len(fake.writes)
        await writer.close()
        return flushed

    assert asyncio.run(run_with_client(fake, scenario)) == 1


def test_invalid_point_fails_at_write():
    fake = FakeInflux()

    async def scenario(client):
        writer = AsyncPointWriter(client, "demo", flush_interval_s=0.05)
        await writer.start()
        try:
            with pytest.raises(InvalidPoint):
                await writer.write(Point("m", timestamp=T))
        finally:
            await writer.close()

    asyncio.run(run_with_client(fake, scenario))

    assert fake.writes == []


def test_retries_server_errors():
    fake = FakeInflux()
    fake.write_failures = [503, 429]

    async def scenario(client):
        writer = AsyncPointWriter(client, "demo", flush_interval_s=10.0)
        await writer.start()
        await writer.write(make_points(1)[0])
        await writer.close()

    asyncio.run(run_with_client(fake, scenario))

    assert len(fake.writes) == 1


def test_client_errors_are_not_retried():
    fake = FakeInflux()
    fake.write_failures = [400, 400]

    async def scenario(client):
        writer = AsyncPointWriter(client, "demo", flush_interval_s=10.0)
        await writer.start()
        await writer.write(make_points(1)[0])
        await writer.close()

    with pytest.raises(InfluxDbApiError) as info:
        asyncio.run(run_with_client(fake, scenario))

    assert info.value.status == 400
    assert fake.write_failures == [400]


def test_close_without_drain_drops_points():
    fake = FakeInflux()

    async def scenario(client):
        writer = AsyncPointWriter(client, "demo", flush_interval_s=10.0)
        await writer.start()
        for point in make_points(3):
            await writer.write(point)
        await writer.close(drain=False)

    asyncio.run(run_with_client(fake, scenario))

    assert fake.writes == []


def test_start_twice():
    fake = FakeInflux()

    async def scenario(client):
        writer = AsyncPointWriter(client, "demo", flush_interval_s=0.05)
        await writer.start()
        try:
            with pytest.raises(RuntimeError):
                await writer.start()
        finally:
            await writer.close()

    asyncio.run(run_with_client(fake, scenario))


def test_idle_writer_waits_for_the_flush_interval(monkeypatch):
    calls = []
    wait_for = asyncio.wait_for

    async def counting_wait_for(aw, timeout):
        calls.append(timeout)
        return await wait_for(aw, timeout)

    async def scenario():
        monkeypatch.setattr(asyncio, "wait_for", counting_wait_for)
        client = InfluxDb(InfluxTarget("http://127.0.0.1:9"))
        writer = AsyncPointWriter(client, "demo", flush_interval_s=0.05)
        await writer.start()
        await asyncio.sleep(0.5)
        await writer.close()

    asyncio.run(scenario())

    assert 0 < len(calls) < 50


def test_write_after_failed_flush_raises():
    fake = FakeInflux()
    fake.write_failures = [400]

    async def scenario(client):
        writer = AsyncPointWriter(client, "demo", flush_interval_s=0.05)
        await writer.start()
        await writer.write(make_points(1)[0])
        await asyncio.sleep(0.3)
        with pytest.raises(InfluxDbApiError) as info:
            await writer.write(make_points(1)[0])
        assert info.value.status == 400
        with pytest.raises(InfluxDbApiError):
            await writer.close()

    asyncio.run(run_with_client(fake, scenario))

    assert fake.writes == []
