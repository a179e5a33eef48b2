"""
Batched background point writer.
"""

import asyncio
import logging
import random
import time
from typing import List, Optional

import aiohttp

from .client import InfluxDb
from .errors import InfluxDbApiError
from .lineprotocol import encode_point
from .point import Point

logger = logging.getLogger(__name__)


class AsyncPointWriter:
    """
    Async, batched point writer on top of an InfluxDb client.

    Points are encoded when queued, so invalid points fail in write() and
    never reach the background task.
    """

    def __init__(
        self,
        client: InfluxDb,
        db: str,
        *,
        precision: Optional[str] = None,
        batch_max_points: int = 10_000,
        flush_interval_s: float = 1.0,
        queue_maxsize: int = 200_000,
        max_retries: int = 8,
    ):
        self._client = client
        self._db = db
        self._precision = precision or client.target.precision

        self._batch_max_points = batch_max_points
        self._flush_interval_s = flush_interval_s
        self._max_retries = max_retries

        self._q = asyncio.Queue(maxsize=queue_maxsize)
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the background flushing task."""
        if self._task is not None:
            raise RuntimeError("AsyncPointWriter already started")
        self._stop.clear()
        self._task = asyncio.create_task(self._run())

    async def close(self, drain: bool = True) -> None:
        """Stop the writer, flushing queued points unless drain is False."""
        if not drain:
            dropped = 0
            while not self._q.empty():
                self._q.get_nowait()
                dropped += 1
            if dropped:
                logger.warning("Dropped %d queued points on close", dropped)
        self._stop.set()
        task, self._task = self._task, None
        if task:
            await task

    def _check_running(self) -> None:
        """Re-raise the error that stopped the background task, if any."""
        task = self._task
        if task is None or not task.done():
            return
        if not task.cancelled() and task.exception() is not None:
            raise task.exception()
        raise RuntimeError("AsyncPointWriter stopped")

    async def write(self, point: Point) -> None:
        """
        Encode a point and enqueue it for the next batch.

        Raises the failure of an earlier flush once the background task died.
        """
        self._check_running()
        await self._q.put(encode_point(point, self._precision))

    async def _post_with_retries(self, payload: str) -> None:
        """POST the payload, backing off on retryable errors."""
        delay = 0.25
        for attempt in range(self._max_retries + 1):
            try:
                await self._client.write_payload(self._db, payload, self._precision)
                return
            except InfluxDbApiError as exc:
                if not exc.retryable or attempt >= self._max_retries:
                    raise
                logger.warning("Write failed (%s), retrying in %.2fs", exc, delay)
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if attempt >= self._max_retries:
                    raise
                logger.warning("Write failed (%r), retrying in %.2fs", exc, delay)
            await asyncio.sleep(delay + random.random() * 0.25)
            delay = min(delay * 2, 8.0)

    async def _run(self) -> None:
        """Drain the queue into batched writes."""
        buf: List[str] = []
        last_flush = time.monotonic()

        async def flush():
            nonlocal buf, last_flush
            last_flush = time.monotonic()
            if not buf:
                return
            payload = "\n".join(buf)
            count = len(buf)
            buf = []
            logger.debug("Flushing %d points to %s", count, self._db)
            await self._post_with_retries(payload)

        while True:
            if self._stop.is_set() and self._q.empty():
                break

            timeout = max(0.0, self._flush_interval_s - (time.monotonic() - last_flush))
            try:
                item = await asyncio.wait_for(self._q.get(), timeout=timeout)
                buf.append(item)
                if len(buf) >= self._batch_max_points:
                    await flush()
            except asyncio.TimeoutError:
                await flush()

        await flush()
