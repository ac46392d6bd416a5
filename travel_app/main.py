"""
travel_app/main.py -- Command-line entry point.

Inspect and edit a travel registry without the game running.

Usage::

    python -m travel_app.main list
    python -m travel_app.main mark Berg
    python -m travel_app.main visited Levant --evidence scene_objects.txt
    python -m travel_app.main migrate ~/BepInEx/config/cz.valheimskal.travelbutton.cfg
    python -m travel_app.main --data-dir ./data record-scene Vendavel --coords 10,2,30
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

# Ensure project root is on sys.path
_THIS_DIR = os.path.dirname(os.path.abspath(__file__))
_PROJECT_ROOT = os.path.dirname(_THIS_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from travel_app.paths import get_data_dir
from travel_engine.city_store import CityStore


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for the command-line tool."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _file_evidence(path: str):
    """Evidence provider reading one token per line from *path*."""
    def provider():
        with open(path, "r", encoding="utf-8") as fh:
            return [line.strip() for line in fh if line.strip()]
    return provider


def _report_write(write) -> int:
    if write is None:
        print("Nothing to save.")
        return 0
    if write.ok:
        print(f"Saved {write.path}")
        return 0
    print(f"FAILED ({write.error.value}): {'; '.join(write.errors)}")
    return 1


def _report_mutation(mutation, write) -> int:
    if not mutation.ok:
        print(f"FAILED ({mutation.kind.value}): {mutation.message}")
        return 1
    print(f"{mutation.kind.value}: {mutation.record.describe() if mutation.record else mutation.message}")
    return _report_write(write)


def _parse_coords(text: str | None):
    if text is None:
        return None
    return [float(part) for part in text.split(",")]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="travel-registry", description="Travel destination registry")
    parser.add_argument("--data-dir", help="Directory holding the cities file")
    parser.add_argument("--evidence", help="File with one evidence token per line")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List all destinations")
    sub.add_parser("status", help="Show file and load status")
    show = sub.add_parser("show", help="Show one destination as JSON")
    show.add_argument("name")
    mark = sub.add_parser("mark", help="Mark a destination visited")
    mark.add_argument("name")
    visited = sub.add_parser("visited", help="Explain the visited decision for a destination")
    visited.add_argument("name")
    migrate = sub.add_parser("migrate", help="Import visited flags from a legacy config")
    migrate.add_argument("cfg", nargs="?", help="Legacy config path (default: data dir)")
    scene = sub.add_parser("record-scene", help="Record a visit to a scene")
    scene.add_argument("scene")
    scene.add_argument("--coords", help="x,y,z")
    scene.add_argument("--anchor", help="Target object name")
    scene.add_argument("--desc")
    sub.add_parser("reset", help="Re-enable writes after both files were unreadable")
    sub.add_parser("save", help="Write the registry back (creates the file with defaults)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    provider = _file_evidence(args.evidence) if args.evidence else None
    store = CityStore(get_data_dir(args.data_dir), evidence_provider=provider)
    store.load()

    if args.command == "list":
        for record in store.list():
            mark = "x" if store.is_visited(record) else " "
            print(f"[{mark}] {record.name:<12} scene={record.scene_id or '-':<18} "
                  f"price={store.effective_price(record)}")
        return 0

    if args.command == "status":
        print(json.dumps(store.status(), indent=2))
        return 0

    if args.command == "show":
        record = store.find(args.name)
        if record is None:
            print(f"Unknown city: {args.name}")
            return 1
        print(json.dumps(record.to_document(), indent=2, ensure_ascii=False))
        return 0

    if args.command == "mark":
        return _report_mutation(*store.mark_visited(args.name))

    if args.command == "visited":
        record = store.find(args.name)
        if record is None:
            print(f"Unknown city: {args.name}")
            return 1
        decision = store.explain_visited(record)
        print(f"{record.name}: {'visited' if decision.visited else 'not visited'} "
              f"(source={decision.source.value}"
              + (f", rule={decision.rule.value}, matched={decision.matched_key!r}" if decision.rule else "")
              + ")")
        return 0

    if args.command == "migrate":
        report, write = store.migrate_legacy_file(args.cfg)
        if report.source_missing:
            print("No legacy config found.")
            return 0
        if report.skipped_already_migrated:
            print("Skipped: visited flags already present.")
            return 0
        print(f"Applied: {', '.join(report.applied) or '-'}")
        for name in report.unmark_requests:
            print(f"Not unmarked (unsupported): {name}")
        for name in report.unknown_names:
            print(f"Unknown city: {name}")
        for error in report.errors:
            print(f"Skipped {error}")
        return _report_write(write)

    if args.command == "record-scene":
        try:
            coords = _parse_coords(args.coords)
        except ValueError:
            print(f"Invalid coords: {args.coords}")
            return 2
        return _report_mutation(*store.record_scene_visit(args.scene, coords, args.anchor, args.desc))

    if args.command == "reset":
        store.reset()
        print("Writes re-enabled.")
        return _report_write(store.save())

    if args.command == "save":
        return _report_write(store.save())

    return 2


if __name__ == "__main__":
    sys.exit(main())
