#!/usr/bin/env python3
"""GeoMapAgent CLI: analyse one news text and optionally write a map spec.

Usage:
    python scripts/process_text.py --input article.txt
    python scripts/process_text.py --input article.txt --select all --spec-out map.json
    cat article.txt | python scripts/process_text.py --llm-backend anthropic --accept
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Run from a checkout without installing: put the repo root first on sys.path
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from config.defaults import (  # noqa: E402
    LOG_LEVELS,
    MIN_CANDIDATE_CONFIDENCE,
    REFERENCE_REUSE_THRESHOLD,
)
from config.settings import MapAgentConfig  # noqa: E402
from geomapagent.adapters import to_legacy  # noqa: E402
from geomapagent.errors import GeoMapAgentError, describe  # noqa: E402
from geomapagent.io.persistence import dumps, save_json  # noqa: E402
from geomapagent.orchestrator import MapAgentOrchestrator  # noqa: E402
from geomapagent.utils.logging_utils import configure_logging  # noqa: E402


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="process_text",
        description="GeoMapAgent: extract mappable regions and places from news text",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # ── Input ──────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Path to a UTF-8 text file; reads stdin when omitted",
    )
    parser.add_argument(
        "--source-url", type=str, default=None, help="URL of the article, kept in map metadata"
    )

    # ── Service ────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--llm-backend",
        type=str,
        default=None,
        choices=["gemini", "anthropic", "ollama"],
        help="Text-understanding backend (default: LLM_BACKEND env or gemini)",
    )

    # ── Thresholds ─────────────────────────────────────────────────────────────
    parser.add_argument(
        "--min-confidence",
        type=float,
        default=MIN_CANDIDATE_CONFIDENCE,
        help="Drop candidates below this confidence after resolution",
    )
    parser.add_argument(
        "--reuse-threshold",
        type=float,
        default=REFERENCE_REUSE_THRESHOLD,
        help="Reference similarity above which extraction is skipped",
    )
    parser.add_argument(
        "--no-reuse",
        action="store_true",
        default=False,
        help="Always call the service, never reuse a stored analysis",
    )
    parser.add_argument(
        "--reference-store", type=str, default=None, help="Reference store JSON path"
    )

    # ── Map output ─────────────────────────────────────────────────────────────
    parser.add_argument(
        "--select",
        type=str,
        nargs="*",
        default=None,
        metavar="ID",
        help="Candidate ids to map, or 'all'",
    )
    parser.add_argument("--title", type=str, default=None, help="Map title")
    parser.add_argument(
        "--spec-out", type=str, default=None, help="Write the map spec JSON to this path"
    )
    parser.add_argument(
        "--results-out",
        type=str,
        default=None,
        help="Write the candidates in {areas, locations} form to this path",
    )
    parser.add_argument(
        "--accept",
        action="store_true",
        default=False,
        help="Save the analysis to the reference store",
    )

    # ── Logging ────────────────────────────────────────────────────────────────
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=LOG_LEVELS,
        help="Logging verbosity level (defaults to LOG_LEVEL, then INFO)",
    )
    parser.add_argument("--log-file", type=str, default=None, help="Log file path")
    return parser


def args_to_config(args: argparse.Namespace) -> MapAgentConfig:
    """Overlay CLI flags on the environment-derived configuration."""
    config = MapAgentConfig(
        min_candidate_confidence=args.min_confidence,
        reference_reuse_threshold=args.reuse_threshold,
        enable_reference_reuse=not args.no_reuse,
    )
    if args.log_level:
        config.log_level = args.log_level
    if args.llm_backend:
        config.llm_backend = args.llm_backend
    if args.reference_store:
        config.reference_store_path = args.reference_store
    return config


def read_text(path: str | None) -> str:
    if path is None:
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def main() -> None:
    """CLI entrypoint: parse arguments, analyse the text, emit results."""
    parser = build_arg_parser()
    args = parser.parse_args()

    try:
        config = args_to_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    configure_logging(log_level=config.log_level, log_file=args.log_file)
    logger = logging.getLogger("geomapagent.cli")

    try:
        text = read_text(args.input)
        orchestrator = MapAgentOrchestrator(config)

        target_set = orchestrator.process_text(text, source_url=args.source_url)
        logger.info(
            "Found %d candidate(s)%s",
            len(target_set.candidates),
            " from a stored reference" if target_set.from_reference else "",
        )
        for target in target_set.candidates:
            res = target.resolved
            flag = " [review: %s]" % res.suggestion if res.needs_review else ""
            print(f"{target.id}\t{target.kind}\t{target.label}\t{target.confidence:.2f}{flag}")

        if args.results_out:
            save_json(to_legacy(target_set), args.results_out)
            logger.info("Results written to %s", args.results_out)

        if args.select is not None:
            if args.select == ["all"]:
                selected = [t.id for t in target_set.candidates]
            else:
                selected = list(args.select)
            customizations = {"title": args.title} if args.title else None
            spec = orchestrator.generate_map_spec(selected, customizations)
            if args.spec_out:
                save_json(spec.to_dict(), args.spec_out)
                logger.info("Map spec %s written to %s", spec.map_id, args.spec_out)
            else:
                print(dumps(spec.to_dict()))

        if args.accept:
            record = orchestrator.accept_current()
            logger.info("Saved reference %s", record.id)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except (GeoMapAgentError, ValueError, OSError) as exc:
        logger.error("Processing failed: %s", json.dumps(describe(exc)))
        sys.exit(1)


if __name__ == "__main__":
    main()
