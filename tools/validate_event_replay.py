"""
Check that the event log still explains the stored daily aggregates.

The log is folded into per-day aggregates the same way the live projection
builds them, then compared date by date with the analytics_daily table. A
difference means a write sequence stopped between the event append and the
projection update.

Usage:
    python tools/validate_event_replay.py
    python tools/validate_event_replay.py --strict --data-dir /path/to/data
"""
# ruff: noqa: E402
from __future__ import annotations

import argparse
import json
import sys
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError

from questline.event_sourcing import AppEvent, event_from_dict, validate_event_shape
from questline.exceptions import QuestlineError
from questline.models import DailyAggregate
from questline.paths import get_data_dir
from questline.projections import replay_daily_aggregates
from questline.storage import open_database
from questline.storage.database import EVENT_LOG_FILENAME


@dataclass
class LogScan:
    lines: int = 0
    unreadable: List[int] = field(default_factory=list)
    incomplete: List[int] = field(default_factory=list)
    rejected: List[int] = field(default_factory=list)
    by_type: Counter = field(default_factory=Counter)

    @property
    def clean(self) -> bool:
        return not (self.unreadable or self.incomplete or self.rejected)


def scan_event_log(path: Path, strict: bool = False) -> Tuple[List[AppEvent], LogScan]:
    """Load every usable event from path, recording the line numbers of the rest."""
    scan = LogScan()
    events: List[AppEvent] = []

    for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        scan.lines += 1
        try:
            raw = json.loads(line)
        except json.JSONDecodeError as exc:
            scan.unreadable.append(line_no)
            print(f"[validate] line {line_no}: not json ({exc.msg})")
            continue

        check = validate_event_shape(raw, strict=strict)
        if not check["valid"]:
            scan.incomplete.append(line_no)
            print(f"[validate] line {line_no}: missing {', '.join(check['missing'])}")
            continue

        try:
            event = event_from_dict(raw)
        except (QuestlineError, ValidationError, ValueError) as exc:
            scan.rejected.append(line_no)
            print(f"[validate] line {line_no}: rejected ({exc})")
            continue
        scan.by_type[event.event_type.value] += 1
        events.append(event)

    return events, scan


def _comparable(row: DailyAggregate) -> Dict[str, object]:
    data = row.to_dict()
    data["categoryFocusMinutes"] = {k: v for k, v in data["categoryFocusMinutes"].items() if v}
    return data


def diff_aggregates(
    replayed: Dict[str, DailyAggregate],
    stored: Dict[str, DailyAggregate],
) -> List[str]:
    """Dates whose replayed and stored aggregates disagree."""
    mismatches = []
    for date in sorted(set(replayed) | set(stored)):
        empty = DailyAggregate(date=date)
        if _comparable(replayed.get(date, empty)) != _comparable(stored.get(date, empty)):
            mismatches.append(date)
    return mismatches


def validate_event_log(data_dir: Path, strict: bool = False) -> int:
    """Print a report for data_dir; 0 when the log is clean and matches the projection."""
    path = data_dir / EVENT_LOG_FILENAME
    if not path.exists():
        print(f"[validate] nothing to check, no event log at {path}")
        return 0

    events, scan = scan_event_log(path, strict=strict)
    replayed = replay_daily_aggregates(events)
    stored = {row.date: row for row in open_database(data_dir).analytics_daily.list_all()}

    mismatches = diff_aggregates(replayed, stored)
    for date in mismatches:
        empty = DailyAggregate(date=date)
        print(f"[validate] {date}: replayed {_comparable(replayed.get(date, empty))}")
        print(f"[validate] {date}: stored   {_comparable(stored.get(date, empty))}")

    print(f"[validate] lines={scan.lines} events={len(events)}")
    print(f"[validate] unreadable={len(scan.unreadable)} incomplete={len(scan.incomplete)} "
          f"rejected={len(scan.rejected)}")
    print(f"[validate] aggregate_mismatches={len(mismatches)}")
    print(f"[validate] by_type={dict(sorted(scan.by_type.items()))}")

    return 0 if scan.clean and not mismatches else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Replay the Questline event log against stored aggregates.")
    parser.add_argument("--strict", action="store_true",
                        help="require every envelope field on every line")
    parser.add_argument("--data-dir", type=Path, default=None, help="data directory to check")
    args = parser.parse_args()
    return validate_event_log(data_dir=args.data_dir or get_data_dir(), strict=args.strict)


if __name__ == "__main__":
    sys.exit(main())
