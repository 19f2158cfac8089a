from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

import httpx

from cardgen.core.config import settings
from cardgen.core.logging import setup_logging
from cardgen.modules.generation.models import GenerationSnapshot
from cardgen.modules.polling.client import GenerationStatusClient
from cardgen.modules.polling.synchronizer import PollingSynchronizer, PollOutcome


def _load_text(args: argparse.Namespace) -> str:
    if args.text and args.text_file:
        raise SystemExit("Provide either --text or --text-file, not both")
    if args.text_file:
        return Path(args.text_file).read_text(encoding="utf-8")
    if args.text:
        return args.text
    raise SystemExit("--text or --text-file is required")


def _print_snapshot(snapshot: GenerationSnapshot | None, outcome: str | None) -> None:
    body = {"outcome": outcome}
    if snapshot is not None:
        body["snapshot"] = snapshot.model_dump(mode="json")
    print(json.dumps(body, indent=2))


async def _generate(client: GenerationStatusClient, args: argparse.Namespace) -> int:
    started = await client.initiate(_load_text(args))
    print(f"Generation {started.generation_id} started, polling...")

    def _progress(snapshot: GenerationSnapshot) -> None:
        print(f"  status={snapshot.status.value} proposals={len(snapshot.proposals)}")

    poller = PollingSynchronizer(
        client.fetch_snapshot,
        on_snapshot=_progress,
        interval=args.interval,
        max_time=args.max_time,
    )
    async with poller:
        poller.start(started.generation_id)
        outcome = await poller.wait()
    _print_snapshot(poller.latest, outcome.value if outcome else None)
    return 0 if outcome is PollOutcome.COMPLETED else 1


async def _status(client: GenerationStatusClient, args: argparse.Namespace) -> int:
    snapshot = await client.fetch_snapshot(args.generation_id)
    _print_snapshot(snapshot, snapshot.status.value)
    return 0


async def _run(args: argparse.Namespace) -> int:
    async with GenerationStatusClient(
        args.base_url, args.token, api_version=settings.app.version
    ) as client:
        try:
            if args.cmd == "generate":
                return await _generate(client, args)
            return await _status(client, args)
        except httpx.HTTPStatusError as e:
            raise SystemExit(
                f"Request failed ({e.response.status_code}): {e.response.text}"
            )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="cardgen", description="Flashcard generation client"
    )
    parser.add_argument(
        "--base-url",
        default=f"http://localhost:{settings.app.port}",
        help="API base URL",
    )
    parser.add_argument("--token", required=True, help="Bearer token for the API")
    sub = parser.add_subparsers(dest="cmd", required=True)

    g = sub.add_parser("generate", help="Start a generation and poll until it settles")
    g.add_argument("--text", "-t", help="Study material (text)")
    g.add_argument("--text-file", help="Path to a file containing the study material")
    g.add_argument(
        "--interval", type=float, default=settings.polling.interval, help="Poll interval (s)"
    )
    g.add_argument(
        "--max-time",
        type=float,
        default=settings.polling.max_time,
        help="Give up polling after this many seconds",
    )

    s = sub.add_parser("status", help="Print the current snapshot of a generation")
    s.add_argument("generation_id", type=int)

    args = parser.parse_args(argv)
    setup_logging()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
