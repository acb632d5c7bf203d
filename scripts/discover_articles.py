"""Discover Wikipedia articles for a topic query."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from wikiextract.config import get_settings
from wikiextract.costs import format_cost
from wikiextract.dependencies import build_container
from wikiextract.errors import ExtractorError
from wikiextract.logging_config import setup_logging
from wikiextract.services.discovery.models import SearchSession, SearchStep


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find Wikipedia articles for a topic.")
    parser.add_argument("query", help="Free-text topic query.")
    parser.add_argument(
        "--more", type=int, default=0, help="Number of continuation batches to load (default: 0)."
    )
    parser.add_argument("--out", default=None, help="Optional JSON file for the validated titles.")
    return parser.parse_args()


def print_step(step: SearchStep, message: str) -> None:
    print(f"  - {step.value}: {message}")


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    container = build_container(settings)
    service = container.discovery
    try:
        batch = await service.discover(args.query, on_step=print_step)
        session = SearchSession.from_batch(
            args.query,
            batch,
            pricing=container.pricing,
            batch_size=settings.discovery_batch_size,
        )
        print(
            f"[info] {session.loaded_count} articles validated, "
            f"~{session.estimated_total_count} estimated"
        )

        for _ in range(args.more):
            if session.is_fully_loaded:
                print("[info] All results loaded")
                break
            batch_number = session.next_batch_number
            more = await service.continue_discovery(
                args.query, session.already_loaded_titles, batch_number, on_step=print_step
            )
            added = session.apply_continuation(more, batch_number)
            print(f"[info] Loaded {added} more articles")
    except ExtractorError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    finally:
        await container.aclose()

    for result in session.results:
        print(f"{result.title}\t{result.description}\t{result.url}")

    tracker = session.cost_tracker
    usage = tracker.usage
    print(
        f"[info] {tracker.request_count} requests, {usage.input_tokens} in / "
        f"{usage.output_tokens} out tokens, cost {format_cost(tracker.total_cost)}"
    )

    if args.out:
        payload = {
            "query": session.query,
            "estimated_total": session.estimated_total_count,
            "fully_loaded": session.is_fully_loaded,
            "results": [
                {"title": r.title, "url": r.url, "description": r.description}
                for r in session.results
            ],
        }
        Path(args.out).write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        print(f"[info] Wrote {args.out}")
    return 0


def main() -> int:
    args = parse_args()
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json, log_file=settings.log_file)
    return asyncio.run(run(args))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
