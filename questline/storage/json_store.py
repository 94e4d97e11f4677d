"""
File-backed tables under the data directory.

JsonTable: whole table kept in memory and rewritten to a JSON file on every
write (data/<table>.json).
EventLogTable: append-only JSONL ledger (data/event_log.jsonl). Existing
entries can never be replaced or removed.
"""
import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from questline.event_sourcing import AppEvent, event_from_dict
from questline.exceptions import SchemaVersionError, StateError
from questline.logger import get_logger, log_corruption
from questline.storage.memory import KeySpec, MemoryTable

logger = get_logger("storage")


class JsonTable(MemoryTable):
    """In-memory table with JSON persistence at `path`."""

    def __init__(
        self,
        path: Path,
        decode: Callable[[Dict[str, Any]], Any],
        key: KeySpec = "id",
        name: str = "",
    ):
        super().__init__(key=key, name=name or path.stem)
        self._path = path
        self._decode = decode
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            rows = data.get("rows", {}) if isinstance(data, dict) else {}
            for key, record in rows.items():
                self._rows[key] = self._decode(record)
        except (json.JSONDecodeError, OSError, KeyError, ValueError) as e:
            raise StateError(f"Cannot read table {self.name}: {e}", corrupted_data=str(self._path))

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"rows": {key: row.to_dict() for key, row in self._rows.items()}}
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)

    def _after_write(self) -> None:
        self.save()


class EventLogTable(MemoryTable):
    """Append-only event ledger, optionally mirrored to a JSONL file."""

    def __init__(self, path: Optional[Path] = None):
        super().__init__(key="event_id", name="event_log")
        self._path = path
        self.skipped_lines = 0
        if path is not None:
            self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        with open(self._path, "r", encoding="utf-8") as f:
            for idx, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    event = event_from_dict(json.loads(line))
                except SchemaVersionError as e:
                    self.skipped_lines += 1
                    logger.warning(f"event log line {idx} skipped: {e.message}")
                    continue
                except (json.JSONDecodeError, ValidationError, ValueError) as e:
                    self.skipped_lines += 1
                    log_corruption(idx, line.strip()[:200], str(e), source=self._path)
                    continue
                self._rows[event.event_id] = event

    def put(self, entity: AppEvent) -> None:
        if entity.event_id in self._rows:
            raise StateError(f"Event {entity.event_id} already recorded; the event log is append-only")
        super().put(entity)
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entity.to_dict(), ensure_ascii=False) + "\n")

    def delete(self, key: str) -> None:
        raise StateError(f"Refusing to delete event {key}; the event log is append-only")
