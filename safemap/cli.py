"""CLI entrypoints for inspecting and maintaining safemap sessions."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from safemap.configuration import EngineSettings, load_settings
from safemap.exceptions import (
    CorruptedCheckpoint,
    SafeMapError,
    ValidationError,
)
from safemap.sessions import STATUSES, SessionRegistry

_ACTIONS = frozenset(
    {
        "list_sessions",
        "show_session",
        "stats",
        "recover",
        "clean",
        "clear_lock",
    }
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect, recover and clean resumable safemap sessions."
    )
    parser.add_argument(
        "--config",
        type=str,
        required=False,
        help=(
            "Path to a YAML config. If omitted, uses "
            "configs/default_config.yaml when present."
        ),
    )
    parser.add_argument(
        "--cache-dir",
        type=str,
        default=None,
        help="Directory holding checkpoints and locks (overrides config).",
    )
    parser.add_argument(
        "--list-sessions",
        action="store_true",
        help="List stored sessions, newest first, and exit.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print --list-sessions output as JSON.",
    )
    parser.add_argument(
        "--show-session",
        type=str,
        help="Show debug information for a given run_id.",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print aggregate statistics across stored sessions.",
    )
    parser.add_argument(
        "--recover",
        type=str,
        help="Print the completed results of a run_id as JSON.",
    )
    parser.add_argument(
        "--clean",
        action="store_true",
        help="Delete old sessions (see --older-than-days, --session-id).",
    )
    parser.add_argument(
        "--older-than-days",
        type=float,
        default=7,
        help="Age threshold for --clean (default: 7).",
    )
    parser.add_argument(
        "--session-id",
        action="append",
        dest="session_ids",
        help="Clean exactly this run_id (repeatable; ignores age).",
    )
    parser.add_argument(
        "--status",
        action="append",
        dest="statuses",
        choices=list(STATUSES),
        help="Only clean sessions with this status (repeatable).",
    )
    parser.add_argument(
        "--clear-lock",
        type=str,
        help="Remove the lock file of a run_id left behind by a dead process.",
    )
    return parser


def _settings_from_args(args: argparse.Namespace) -> EngineSettings:
    config_path = Path(args.config) if args.config else None
    cache_dir = Path(args.cache_dir).expanduser() if args.cache_dir else None
    return load_settings(config_path, overrides={"cache_dir": cache_dir})


def _list_sessions(registry: SessionRegistry, as_json: bool) -> int:
    if as_json:
        for info in registry.list_sessions():
            print(json.dumps(info.to_dict(), indent=2))
        return 0
    print(registry.render_list(), end="")
    return 0


def _show_session(registry: SessionRegistry, run_id: str) -> int:
    print(registry.debug_session(run_id), end="")
    return 0 if registry.get(run_id) is not None else 1


def _recover(registry: SessionRegistry, run_id: str) -> int:
    try:
        results = registry.recover_session(run_id)
    except CorruptedCheckpoint as exc:
        print(str(exc), file=sys.stderr)
        return 1
    if results is None:
        print(f"Session {run_id} not found", file=sys.stderr)
        return 1
    print(json.dumps(results, indent=2, default=repr))
    return 0


def _clean(registry: SessionRegistry, args: argparse.Namespace) -> int:
    removed = registry.clean_sessions(
        older_than_days=args.older_than_days,
        run_ids=args.session_ids,
        status_filter=args.statuses,
    )
    print(f"Removed {removed} session(s)")
    return 0


def _clear_lock(registry: SessionRegistry, run_id: str) -> int:
    if registry.clear_lock(run_id):
        print(f"Cleared lock for {run_id}")
    else:
        print(f"No lock held for {run_id}")
    return 0


def _dispatch(registry: SessionRegistry, args: argparse.Namespace) -> int:
    if args.list_sessions:
        return _list_sessions(registry, args.json)
    if args.show_session:
        return _show_session(registry, args.show_session)
    if args.stats:
        print(registry.render_stats(), end="")
        return 0
    if args.recover:
        return _recover(registry, args.recover)
    if args.clean:
        return _clean(registry, args)
    if args.clear_lock:
        return _clear_lock(registry, args.clear_lock)
    return 2


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not _ACTIONS.intersection(
        name for name, value in vars(args).items() if value
    ):
        parser.error(
            "choose one of --list-sessions, --show-session, --stats, "
            "--recover, --clean or --clear-lock"
        )

    load_dotenv()

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO, format="%(levelname)s %(name)s: %(message)s"
        )

    try:
        registry = SessionRegistry(_settings_from_args(args))
    except (FileNotFoundError, SafeMapError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    try:
        return _dispatch(registry, args)
    except ValidationError as exc:
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
