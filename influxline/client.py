"""
Async HTTP client for the InfluxDB 1.x API.

Example:

    import asyncio
    from datetime import datetime, timezone
    from influxline import InfluxDb, InfluxTarget, Point

    async def main():
        async with InfluxDb(InfluxTarget("http://localhost:8086")) as db:
            await db.create_database("demo")
            point = Point(
                "weather",
                tags={"site": "north"},
                fields={"temp": 21.5},
                timestamp=datetime.now(timezone.utc),
            )
            await db.write("demo", [point])
            print(await db.query("demo", 'select * from "weather"'))

    asyncio.run(main())
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from .errors import InfluxDbApiError
from .lineprotocol import encode_batch
from .point import DEFAULT_PRECISION, Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InfluxTarget:
    """Connection settings for an InfluxDB 1.x server."""

    base_url: str  # e.g. "http://localhost:8086"
    username: str = ""
    password: str = ""
    precision: str = DEFAULT_PRECISION  # "s", "ms", "us", "ns"
    timeout_s: float = 10.0


@dataclass
class InfluxDbApiResponse:
    status: int
    body: str
    success: bool


@dataclass
class Pong:
    success: bool
    version: str
    elapsed: float


@dataclass
class Database:
    name: str


@dataclass
class Serie:
    """One series of a query result."""

    name: str
    tags: Dict[str, str] = field(default_factory=dict)
    columns: List[str] = field(default_factory=list)
    values: List[List[Any]] = field(default_factory=list)


def quote_identifier(name: str) -> str:
    """Double-quote an identifier for use in InfluxQL."""
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _parse_results(status: int, body: str) -> List[Dict[str, Any]]:
    """Return the statement results, raising on any reported error."""
    try:
        payload = json.loads(body) if body else {}
    except ValueError:
        raise InfluxDbApiError(status, body, "Invalid JSON in response") from None
    if "error" in payload:
        raise InfluxDbApiError(status, body, payload["error"])
    results = payload.get("results", [])
    for result in results:
        if "error" in result:
            raise InfluxDbApiError(status, body, result["error"])
    return results


class InfluxDb:
    """
    Async client for database management, writes, queries and ping.

    Use as an async context manager, or call start() and close().
    """

    def __init__(self, target: InfluxTarget):
        self.target = target
        self._session: Optional[aiohttp.ClientSession] = None
        self._timeout = aiohttp.ClientTimeout(total=target.timeout_s)

    async def start(self) -> None:
        """Open the HTTP session."""
        if self._session is not None:
            raise RuntimeError("InfluxDb already started")
        auth = None
        if self.target.username:
            auth = aiohttp.BasicAuth(self.target.username, self.target.password)
        self._session = aiohttp.ClientSession(timeout=self._timeout, auth=auth)

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _url(self, path: str) -> str:
        return self.target.base_url.rstrip("/") + path

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        data: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """Send a request and return (status, body, headers); raise on non-2xx."""
        if self._session is None:
            raise RuntimeError("InfluxDb not started")
        url = self._url(path)
        logger.debug("%s %s params=%s", method, url, params)
        async with self._session.request(
            method, url, params=params, data=data, headers=headers
        ) as response:
            body = await response.text()
            if not 200 <= response.status < 300:
                raise InfluxDbApiError(response.status, body)
            return response.status, body, response.headers

    async def _statement(self, query: str, db: Optional[str] = None) -> InfluxDbApiResponse:
        """Run a management statement (POST /query)."""
        params = {"q": query}
        if db:
            params["db"] = db
        status, body, _ = await self._request("POST", "/query", params=params)
        _parse_results(status, body)
        return InfluxDbApiResponse(status=status, body=body, success=True)

    async def create_database(self, name: str) -> InfluxDbApiResponse:
        logger.info("Creating database %s", name)
        return await self._statement("CREATE DATABASE " + quote_identifier(name))

    async def drop_database(self, name: str) -> InfluxDbApiResponse:
        logger.info("Dropping database %s", name)
        return await self._statement("DROP DATABASE " + quote_identifier(name))

    async def drop_series(self, db: str, name: str) -> InfluxDbApiResponse:
        """Drop every series of the named measurement."""
        return await self._statement("DROP SERIES FROM " + quote_identifier(name), db=db)

    async def show_databases(self) -> List[Database]:
        series = await self.query(None, "SHOW DATABASES")
        return [Database(name=row[0]) for serie in series for row in serie.values]

    async def ping(self) -> Pong:
        """Check that the server is up and report its version."""
        started = time.monotonic()
        status, _, headers = await self._request("GET", "/ping")
        return Pong(
            success=200 <= status < 300,
            version=headers.get("X-Influxdb-Version", ""),
            elapsed=time.monotonic() - started,
        )

    async def query(
        self, db: Optional[str], query: str, precision: Optional[str] = None
    ) -> List[Serie]:
        """
        Run a query and return its series.

        Timestamps in the result are Unix times in the given precision
        (defaults to the target precision).
        """
        params = {"q": query, "epoch": precision or self.target.precision}
        if db:
            params["db"] = db
        status, body, _ = await self._request("GET", "/query", params=params)
        series = []
        for result in _parse_results(status, body):
            for item in result.get("series", []):
                series.append(
                    Serie(
                        name=item.get("name", ""),
                        tags=dict(item.get("tags") or {}),
                        columns=list(item.get("columns", [])),
                        values=[list(row) for row in item.get("values", [])],
                    )
                )
        return series

    async def write_payload(
        self, db: str, payload: str, precision: Optional[str] = None
    ) -> InfluxDbApiResponse:
        """POST an already encoded line protocol payload."""
        params = {"db": db, "precision": precision or self.target.precision}
        headers = {"Content-Type": "text/plain; charset=utf-8"}
        status, body, _ = await self._request(
            "POST", "/write", params=params, data=payload.encode("utf-8"), headers=headers
        )
        return InfluxDbApiResponse(status=status, body=body, success=True)

    async def write(
        self, db: str, points: Iterable[Point], precision: Optional[str] = None
    ) -> InfluxDbApiResponse:
        """
        Encode and write points.

        Encoding happens before any request, so an invalid point fails the
        whole batch without touching the network. An empty batch is not sent.
        """
        precision = precision or self.target.precision
        payload = encode_batch(points, precision)
        if not payload:
            logger.debug("Nothing to write to %s", db)
            return InfluxDbApiResponse(status=204, body="", success=True)
        return await self.write_payload(db, payload, precision)
