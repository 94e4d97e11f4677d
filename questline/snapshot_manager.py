"""
Snapshot Manager for Questline.

Writes social snapshots to disk as timestamped JSON files, lists them and
prunes old ones.
"""
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from questline.config_manager import config
from questline.logger import get_logger
from questline.paths import SNAPSHOT_DIR
from questline.snapshot_builder import SocialSnapshot

logger = get_logger("snapshot_manager")


def ensure_snapshot_dir(directory: Optional[Path] = None) -> Path:
    """Ensure the snapshot directory exists."""
    target = Path(directory) if directory else SNAPSHOT_DIR
    target.mkdir(parents=True, exist_ok=True)
    return target


def export_snapshot(snapshot: SocialSnapshot, directory: Optional[Path] = None) -> Path:
    """
    Write a snapshot to snapshot_<timestamp>.json.

    Returns:
        Path to the created file.
    """
    target = ensure_snapshot_dir(directory)

    data = snapshot.to_dict()
    data["_meta"] = {
        "created_at": datetime.now().isoformat(),
        "version": 1,
    }

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
    snapshot_path = target / f"snapshot_{timestamp}.json"
    with open(snapshot_path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    logger.info(f"snapshot exported: {snapshot_path.name}")
    return snapshot_path


def list_snapshots(directory: Optional[Path] = None) -> List[Dict[str, Any]]:
    """
    List exported snapshots, newest first.

    Unreadable files are skipped.
    """
    target = ensure_snapshot_dir(directory)

    snapshots = []
    for path in target.glob("snapshot_*.json"):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"skipping unreadable snapshot {path.name}: {e}")
            continue
        meta = data.get("_meta", {})
        snapshots.append({
            "path": str(path),
            "filename": path.name,
            "created_at": meta.get("created_at"),
            "level": data.get("level"),
            "size_bytes": path.stat().st_size,
        })

    snapshots.sort(key=lambda x: x.get("created_at") or "", reverse=True)
    return snapshots


def cleanup_old_snapshots(
    retention_days: Optional[int] = None,
    directory: Optional[Path] = None,
) -> int:
    """
    Remove snapshots older than the retention period.

    Returns:
        Number of snapshots removed.
    """
    target = ensure_snapshot_dir(directory)
    days = config.SNAPSHOT_RETENTION_DAYS if retention_days is None else retention_days

    cutoff_date = datetime.now() - timedelta(days=days)
    removed = 0

    for path in target.glob("snapshot_*.json"):
        try:
            mtime = datetime.fromtimestamp(path.stat().st_mtime)
            if mtime < cutoff_date:
                path.unlink()
                removed += 1
        except OSError as e:
            logger.warning(f"could not remove snapshot {path.name}: {e}")

    return removed
