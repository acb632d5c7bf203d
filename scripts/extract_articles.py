"""Extract Wikipedia articles to JSON files."""

from __future__ import annotations

import argparse
import asyncio
import json
import re
import sys
from pathlib import Path
from typing import List

from wikiextract.config import get_settings
from wikiextract.costs import calculate_cost, estimate_extraction_usage, format_cost
from wikiextract.dependencies import build_container
from wikiextract.errors import ExtractionCancelled, ExtractorError
from wikiextract.logging_config import setup_logging
from wikiextract.services.extraction.pipeline import BatchReport
from wikiextract.services.llm.models import ExtractionStep
from wikiextract.urls import parse_source_list, resolve_source

UNSAFE_FILENAME = re.compile(r"[^\w\-. ]+")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract Wikipedia articles into structured JSON.")
    parser.add_argument("sources", nargs="*", help="Article URLs or titles.")
    parser.add_argument("--input", default=None, help="File with one URL or title per line.")
    parser.add_argument("--out-dir", default="data/extractions", help="Output directory.")
    parser.add_argument("--no-ai", action="store_true", help="Skip LLM enrichment.")
    parser.add_argument(
        "--ratio", type=float, default=None, help="Summary length as a fraction of the article."
    )
    parser.add_argument(
        "--estimate",
        action="store_true",
        help="Fetch articles and print the estimated enrichment cost without calling the LLM.",
    )
    return parser.parse_args()


def collect_sources(args: argparse.Namespace) -> tuple[List[str], List[str]]:
    lines = list(args.sources)
    if args.input:
        lines.extend(Path(args.input).read_text(encoding="utf-8").splitlines())
    valid, invalid = parse_source_list("\n".join(lines))
    return [item.url for item in valid], invalid


def output_path(out_dir: Path, title: str) -> Path:
    name = UNSAFE_FILENAME.sub("_", title).strip().replace(" ", "_") or "article"
    return out_dir / f"{name}.json"


def print_step(step: ExtractionStep) -> None:
    print(f"  - {step.label}")


async def estimate(sources: List[str]) -> int:
    settings = get_settings()
    container = build_container(settings)
    total_words = 0
    try:
        for source in sources:
            resolved = resolve_source(source)
            try:
                raw = await container.wiki_client.fetch_document(resolved.title)
            except ExtractorError as exc:
                print(f"[warn] {source}: {exc}")
                continue
            usage = estimate_extraction_usage(raw.word_count)
            total_words += raw.word_count
            cost = format_cost(calculate_cost(usage, container.pricing))
            print(f"{raw.title}: {raw.word_count} words, ~{usage.total} tokens, {cost}")
    finally:
        await container.aclose()
    usage = estimate_extraction_usage(total_words)
    print(f"[info] Estimated total: {format_cost(calculate_cost(usage, container.pricing))}")
    return 0


async def extract(args: argparse.Namespace, sources: List[str]) -> int:
    settings = get_settings()
    container = build_container(settings)
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    try:
        report: BatchReport = await container.pipeline.run_batch(
            sources,
            ai_enabled=not args.no_ai,
            summary_ratio=args.ratio,
            progress=print_step,
        )
    except ExtractionCancelled:
        print("[warn] Extraction cancelled", file=sys.stderr)
        return 1
    except ExtractorError as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1
    finally:
        await container.aclose()

    for extraction in report.extractions:
        path = output_path(out_dir, extraction.title)
        path.write_text(
            json.dumps(extraction.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8"
        )
        print(f"[info] Wrote {path}")

    summary = {
        "extracted": [extraction.title for extraction in report.extractions],
        "failed": [
            {"source": failure.source, "error": failure.error, "type": failure.error_type}
            for failure in report.failures
        ],
        "input_tokens": report.usage.input_tokens,
        "output_tokens": report.usage.output_tokens,
        "cost_usd": calculate_cost(report.usage, container.pricing),
    }
    (out_dir / "run_summary.json").write_text(
        json.dumps(summary, ensure_ascii=False, indent=2), encoding="utf-8"
    )
    print(
        f"[info] Done: {len(report.extractions)} extracted, {len(report.failures)} failed, "
        f"cost {format_cost(summary['cost_usd'])}"
    )
    return 0 if not report.failures else 2


def main() -> int:
    args = parse_args()
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json, log_file=settings.log_file)

    sources, invalid = collect_sources(args)
    for line in invalid:
        print(f"[warn] Skipping invalid source: {line}", file=sys.stderr)
    if not sources:
        print("No valid sources given.", file=sys.stderr)
        return 1

    if args.estimate:
        return asyncio.run(estimate(sources))
    return asyncio.run(extract(args, sources))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
