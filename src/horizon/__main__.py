"""Command line entry point: tail or publish broadcast topics."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any, Optional, Sequence, TextIO

import orjson

from horizon.config import BroadcastConfig
from horizon.domain.ports import BrokerConnector
from horizon.errors import BroadcastError, PayloadDecodeError
from horizon.runtime.logging import configure_logging
from horizon.runtime.publisher import BroadcastPublisher
from horizon.runtime.subscription import SubscriptionManager


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="horizon-broadcast", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    tail_p = sub.add_parser("tail", help="print messages received on a topic")
    tail_p.add_argument("topic")
    tail_p.add_argument("--count", type=int, default=None, help="exit after N messages")

    pub_p = sub.add_parser("publish", help="publish a JSON document to one or more topics")
    pub_p.add_argument("topics", nargs="+", metavar="TOPIC")
    pub_p.add_argument("--json", dest="document", required=True, help="JSON document to publish")
    return parser


async def tail(
    config: BroadcastConfig,
    topic: str,
    *,
    count: Optional[int] = None,
    connector: Optional[BrokerConnector] = None,
    out: TextIO = sys.stdout,
) -> int:
    manager = SubscriptionManager.from_config(config, connector=connector)
    done = asyncio.Event()
    received = 0
    exit_code = 0

    def on_message(value: Any) -> None:
        nonlocal received
        if done.is_set():
            return
        out.write(orjson.dumps(value).decode() + "\n")
        out.flush()
        received += 1
        if count is not None and received >= count:
            done.set()

    def on_error(error: BroadcastError) -> None:
        nonlocal exit_code
        if isinstance(error, PayloadDecodeError):
            return
        exit_code = 1
        done.set()

    scope = manager.attach(topic, on_message, on_error)
    try:
        await done.wait()
    finally:
        await scope.detach()
    return exit_code


async def publish(
    config: BroadcastConfig,
    topics: Sequence[str],
    document: str,
    *,
    connector: Optional[BrokerConnector] = None,
) -> int:
    try:
        payload = orjson.loads(document)
    except orjson.JSONDecodeError as exc:
        print(f"invalid JSON document: {exc}", file=sys.stderr)
        return 2

    try:
        async with BroadcastPublisher.from_config(config, connector=connector) as publisher:
            await publisher.dispatch_batch(topics, payload)
    except BroadcastError as exc:
        print(f"publish failed: {exc}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = BroadcastConfig.from_env()
        configure_logging(config.log_level, name="horizon")
        if args.command == "tail":
            return asyncio.run(tail(config, args.topic, count=args.count))
        return asyncio.run(publish(config, args.topics, args.document))
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
