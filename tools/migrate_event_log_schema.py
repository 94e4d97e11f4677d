"""
Rewrite a Questline event log into the current camelCase envelope.

Each line is renamed to canonical keys, given any missing envelope fields and
checked against its event type. Records repeating an earlier eventId are
dropped. Runs as a dry-run unless --apply is given.
"""
from __future__ import annotations

import argparse
import json
import shutil
import sys
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError  # noqa: E402

from questline.event_sourcing import EVENT_SCHEMA_VERSION, event_from_dict, normalize_event  # noqa: E402
from questline.exceptions import SchemaVersionError  # noqa: E402
from questline.paths import get_data_dir  # noqa: E402
from questline.storage.database import EVENT_LOG_FILENAME  # noqa: E402


@dataclass
class MigrationReport:
    total: int = 0
    changed: int = 0
    parse_errors: int = 0
    duplicates: int = 0
    newer_schema: int = 0
    invalid_lines: List[int] = field(default_factory=list)
    types: Counter = field(default_factory=Counter)

    @property
    def blocking(self) -> bool:
        """Records the rewrite cannot carry forward."""
        return self.parse_errors > 0 or self.newer_schema > 0


def normalize_event_log(src: Path) -> Tuple[List[dict], MigrationReport]:
    """Read src and return its normalized records with a report."""
    report = MigrationReport()
    records: List[dict] = []
    seen_ids = set()

    with open(src, "r", encoding="utf-8") as f:
        for line_no, raw_line in enumerate(f, start=1):
            if not raw_line.strip():
                continue
            report.total += 1
            try:
                raw = json.loads(raw_line)
            except json.JSONDecodeError:
                report.parse_errors += 1
                print(f"[parse-error] line={line_no}")
                continue

            record = normalize_event(raw)
            if record["eventId"] in seen_ids:
                report.duplicates += 1
                continue
            seen_ids.add(record["eventId"])

            if record != raw:
                report.changed += 1
            report.types[str(record.get("eventType", "?"))] += 1

            try:
                event_from_dict(record)
            except SchemaVersionError:
                report.newer_schema += 1
            except (ValidationError, ValueError):
                # kept as-is; replay skips it
                report.invalid_lines.append(line_no)
            records.append(record)

    return records, report


def _backup_path(path: Path) -> Path:
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return path.with_name(f"{path.stem}.backup_{stamp}{path.suffix}")


def _write_event_log(path: Path, records: List[dict]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")
    tmp.replace(path)


def _print_report(src: Path, report: MigrationReport) -> None:
    print("=== Questline event log migration ===")
    print(f"source: {src}")
    print(f"target schemaVersion: {EVENT_SCHEMA_VERSION}")
    print(f"records: {report.total}  changed: {report.changed}  duplicates dropped: {report.duplicates}")
    print(f"parse errors: {report.parse_errors}  newer schema: {report.newer_schema}")
    if report.invalid_lines:
        print(f"payloads not matching their type (lines): {report.invalid_lines}")
    for event_type, count in sorted(report.types.items()):
        print(f"  {event_type}: {count}")


def migrate(
    src: Path,
    dest: Optional[Path] = None,
    apply: bool = False,
    backup: bool = True,
) -> int:
    if not src.exists():
        print(f"[skip] no event log at {src}")
        return 0

    records, report = normalize_event_log(src)
    _print_report(src, report)

    if not apply:
        print("\n[dry-run] nothing written")
        return 0
    if report.blocking:
        print("[abort] unreadable or newer-schema records; fix the log before --apply")
        return 1

    target = (dest or src).resolve()
    if target == src.resolve() and backup:
        backup_file = _backup_path(src)
        shutil.copy2(src, backup_file)
        print(f"[backup] {backup_file}")

    _write_event_log(target, records)
    print(f"[done] wrote {len(records)} records to {target}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Rewrite the event log into the current envelope.")
    parser.add_argument("--src", type=Path, default=None,
                        help=f"event log (default: <data dir>/{EVENT_LOG_FILENAME})")
    parser.add_argument("--dest", type=Path, default=None,
                        help="write here instead of over --src")
    parser.add_argument("--apply", action="store_true", help="write the result (default: dry-run)")
    parser.add_argument("--no-backup", action="store_true", help="skip the backup on in-place writes")
    args = parser.parse_args()

    raise SystemExit(migrate(
        src=args.src or get_data_dir() / EVENT_LOG_FILENAME,
        dest=args.dest,
        apply=args.apply,
        backup=not args.no_backup,
    ))


if __name__ == "__main__":
    main()
