"""
Command line access to an InfluxDB server.

Connection settings come from the environment (see influxline.config);
--url overrides INFLUX_URL.
"""

import argparse
import asyncio
import logging
import random
import sys
from dataclasses import replace
from typing import List, Optional

import aiohttp

from .client import InfluxDb
from .config import load_target
from .errors import InfluxLineError
from .lineprotocol import encode_batch
from .testing import new_points

logger = logging.getLogger(__name__)


async def _ping(db: InfluxDb, args) -> int:
    pong = await db.ping()
    print(f"pong version={pong.version or 'unknown'} elapsed={pong.elapsed * 1000:.1f}ms")
    return 0


async def _create_db(db: InfluxDb, args) -> int:
    await db.create_database(args.name)
    print(f"created {args.name}")
    return 0


async def _drop_db(db: InfluxDb, args) -> int:
    await db.drop_database(args.name)
    print(f"dropped {args.name}")
    return 0


async def _show_dbs(db: InfluxDb, args) -> int:
    for database in await db.show_databases():
        print(database.name)
    return 0


async def _query(db: InfluxDb, args) -> int:
    for serie in await db.query(args.db, args.query):
        tags = ",".join(f"{key}={value}" for key, value in serie.tags.items())
        print(serie.name + (f" [{tags}]" if tags else ""))
        print("\t".join(serie.columns))
        for row in serie.values:
            print("\t".join(str(value) for value in row))
    return 0


async def _random_write(db: InfluxDb, args) -> int:
    points = new_points(random.Random(args.seed), args.count)
    await db.write(args.db, points)
    print(f"wrote {len(points)} points to {args.db}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="influxline", description="InfluxDB line protocol client")
    parser.add_argument("--url", help="Server base URL (overrides INFLUX_URL)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("ping", help="Check server status").set_defaults(func=_ping)

    create = sub.add_parser("create-db", help="Create a database")
    create.add_argument("name")
    create.set_defaults(func=_create_db)

    drop = sub.add_parser("drop-db", help="Drop a database")
    drop.add_argument("name")
    drop.set_defaults(func=_drop_db)

    sub.add_parser("show-dbs", help="List databases").set_defaults(func=_show_dbs)

    query = sub.add_parser("query", help="Run an InfluxQL query")
    query.add_argument("db")
    query.add_argument("query")
    query.set_defaults(func=_query)

    rand = sub.add_parser("random-write", help="Write randomly generated points")
    rand.add_argument("db")
    rand.add_argument("--count", type=int, default=5)
    rand.add_argument("--seed", type=int, default=None)
    rand.add_argument("--dry-run", action="store_true", help="Print the payload instead of writing")
    rand.set_defaults(func=_random_write)

    return parser


async def _run(args) -> int:
    target = load_target()
    if args.url:
        target = replace(target, base_url=args.url)
    async with InfluxDb(target) as db:
        return await args.func(db, args)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "random-write" and args.dry_run:
            points = new_points(random.Random(args.seed), args.count)
            print(encode_batch(points, load_target().precision))
            return 0
        return asyncio.run(_run(args))
    except (InfluxLineError, ValueError, aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"error: {str(exc) or type(exc).__name__}", file=sys.stderr)
        return 1
