"""CLI helper for writing a user's sessions or a DOPE card to a text export."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from shottracker_core import SessionFilters, format_range_table_as_text, format_sessions_as_delimited, reconcile_ranges
from shottracker_core.export import export_filename, range_table_filename
from shottracker_core.loader import DataStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", help="Owner of the sessions / DOPE card")
    parser.add_argument("--card", help="Export this DOPE card's range table instead of sessions")
    parser.add_argument("--name")
    parser.add_argument("--rifle")
    parser.add_argument("--distance", type=int)
    parser.add_argument("--date-from")
    parser.add_argument("--date-to")
    parser.add_argument("--output-dir", type=Path, help="Write to a file here instead of stdout")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    store = DataStore()

    try:
        if args.card:
            card = store.fetch_dope_card(args.user_id, args.card)
            rows = reconcile_ranges(store.fetch_dope_ranges(args.card))
            content = format_range_table_as_text(card["label"], rows)
            filename = range_table_filename(card["label"])
        else:
            filters = SessionFilters(
                name=args.name,
                rifle=args.rifle,
                distance=args.distance,
                date_from=args.date_from,
                date_to=args.date_to,
            )
            content = format_sessions_as_delimited(store.fetch_session_records(args.user_id, filters))
            filename = export_filename(filters)
    except (ValueError, RuntimeError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if args.output_dir is None:
        sys.stdout.write(content)
        return 0

    args.output_dir.mkdir(parents=True, exist_ok=True)
    target = args.output_dir / filename
    target.write_text(content, encoding="utf-8")
    print(f"Wrote {target}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
