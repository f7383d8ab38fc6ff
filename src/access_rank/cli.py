#!/usr/bin/env python3
"""
accessrank — CLI for recording item accesses and reading predictions.

The engine state lives in a snapshot file (YAML, or JSON when the file name
ends in .json) that is loaded before and saved after every command.

Usage:
    accessrank init [--stability S]     Create a fresh snapshot file
    accessrank status                   Show engine summary
    accessrank visit <id>               Record an access to an item
    accessrank clear                    Clear the current item
    accessrank remove <id>...           Forget items entirely
    accessrank predict [--limit N]      Print predicted next items
    accessrank markov                   Dump the transition history
    accessrank scores                   Dump the score breakdown per item
    accessrank evaluate <id>...         Replay a trace, report hit-rate/MRR
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from access_rank.config import AccessRankConfig, ListStability
from access_rank.engine import AccessRank
from access_rank.evaluation import evaluate_trace
from access_rank.snapshot import SnapshotDecodeError

DEFAULT_SNAPSHOT_FILE = "accessrank.yaml"


def make_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="accessrank",
        description="CLI for the AccessRank next-item prediction engine.",
    )
    p.add_argument(
        "-f", "--file",
        default=DEFAULT_SNAPSHOT_FILE,
        help=f"Path to snapshot file (default: {DEFAULT_SNAPSHOT_FILE})",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command")

    # init
    i = sub.add_parser("init", help="Create a fresh snapshot file")
    i.add_argument(
        "--stability",
        choices=[s.value for s in ListStability],
        default=None,
        help="List stability (default: ACCESSRANK_LIST_STABILITY or medium)",
    )
    i.add_argument("--no-time-weighting", action="store_true", help="Disable time weighting")
    i.add_argument("--max-visits", type=int, default=None, help="History bound")

    # status
    sub.add_parser("status", help="Show engine summary")

    # visit
    v = sub.add_parser("visit", help="Record an access to an item")
    v.add_argument("item")

    # clear
    sub.add_parser("clear", help="Clear the current item")

    # remove
    r = sub.add_parser("remove", help="Forget items")
    r.add_argument("items", nargs="+")

    # predict
    pr = sub.add_parser("predict", help="Print predicted next items")
    pr.add_argument("--limit", type=int, default=None, help="Max predictions")
    pr.add_argument("--json", action="store_true", help="Emit JSON with scores")

    # debug dumps
    sub.add_parser("markov", help="Dump the transition history")
    sub.add_parser("scores", help="Dump score breakdown per listed item")

    # evaluate
    ev = sub.add_parser("evaluate", help="Replay a trace with the file's settings")
    ev.add_argument("trace", nargs="+")
    ev.add_argument("-k", type=int, default=3, help="Top-k cutoff")
    ev.add_argument("--warmup", type=int, default=2, help="Accesses before scoring")

    return p


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Looked up per logger so a replaced or closed sys.stderr is never kept.
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(verbose: bool) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


# ── snapshot file ────────────────────────────────────────

def read_snapshot_file(path: Path) -> Optional[Any]:
    """Return the stored snapshot, or None if nothing has been saved yet."""
    if not path.exists():
        return None
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return None
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def write_snapshot_file(path: Path, snapshot: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".json":
        text = json.dumps(snapshot, indent=2)
    else:
        text = yaml.safe_dump(snapshot, default_flow_style=False, sort_keys=False, allow_unicode=True)
    path.write_text(text, encoding="utf-8")


def _init_config(args) -> AccessRankConfig:
    env_config = AccessRankConfig.from_env()
    return AccessRankConfig(
        list_stability=args.stability or env_config.list_stability,
        use_time_weighting=env_config.use_time_weighting and not args.no_time_weighting,
        max_visits=env_config.max_visits if args.max_visits is None else args.max_visits,
    )


def main(argv=None):
    parser = make_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    configure_logging(args.verbose)
    path = Path(args.file)

    try:
        if args.command == "init":
            engine = AccessRank(_init_config(args))
        else:
            engine = AccessRank.from_snapshot(read_snapshot_file(path))
    except (SnapshotDecodeError, ValueError, yaml.YAMLError) as exc:
        print(f"accessrank: {exc}", file=sys.stderr)
        sys.exit(1)

    mutated = True

    if args.command == "init":
        print(f"Initialized {args.file}")

    elif args.command == "status":
        mutated = False
        summary = engine.summary()
        print(f"Current item:    {summary['most_recent_item'] or '(none)'}")
        print(f"Tracked items:   {summary['tracked_items']}")
        print(f"Listed items:    {summary['prediction_list_size']}")
        print(f"Visit number:    {summary['visit_number']}")
        print(f"List stability:  {summary['list_stability']}")
        print(f"Time weighting:  {'on' if summary['use_time_weighting'] else 'off'}")
        print(f"Max visits:      {summary['max_visits']}")

    elif args.command == "visit":
        try:
            engine.visit_item(args.item)
        except ValueError as exc:
            print(f"accessrank: {exc}", file=sys.stderr)
            sys.exit(1)
        print(f"Visited: {args.item}")

    elif args.command == "clear":
        engine.visit_item(None)
        print("Current item cleared.")

    elif args.command == "remove":
        engine.remove_items(args.items)
        print(f"Removed: {', '.join(args.items)}")

    elif args.command == "predict":
        mutated = False
        scored = engine.scored_predictions
        if args.limit is not None:
            scored = scored[: max(args.limit, 0)]
        if args.json:
            print(json.dumps([s.to_dict() for s in scored], indent=2))
        else:
            for rank, s in enumerate(scored, 1):
                print(f"{rank:>3}. {s.id}  ({s.score:.4f})")

    elif args.command == "markov":
        mutated = False
        print(engine.markov_description(), end="")

    elif args.command == "scores":
        mutated = False
        print(engine.score_description(), end="")

    elif args.command == "evaluate":
        mutated = False
        try:
            quality = evaluate_trace(args.trace, k=args.k, warmup=args.warmup, config=engine.config)
        except ValueError as exc:
            print(f"accessrank: {exc}", file=sys.stderr)
            sys.exit(1)
        print(json.dumps(quality.to_dict(), indent=2))

    if mutated:
        write_snapshot_file(path, engine.to_snapshot())


if __name__ == "__main__":
    main()
