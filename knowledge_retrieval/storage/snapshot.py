"""JSON snapshots of the indexed corpus, written atomically."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

from knowledge_retrieval.exceptions import SnapshotError

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

PathLike = Union[str, "os.PathLike[str]"]


def _atomic_write_text(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=path.parent, encoding="utf-8") as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    try:
        os.replace(tmp_path, path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise


def write_snapshot(path: PathLike, data: Dict[str, Any]) -> Path:
    """Serialize ``data`` to ``path`` so readers never observe a partial file."""

    target = Path(path)
    try:
        text = json.dumps(data, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"Snapshot data is not JSON-serializable: {exc}") from exc
    _atomic_write_text(target, text)
    logger.info(
        "Wrote snapshot with %s documents to %s", len(data.get("documents", [])), target
    )
    return target


def read_snapshot(path: PathLike) -> Dict[str, Any]:
    """Load and sanity-check a snapshot written by :func:`write_snapshot`."""

    source = Path(path)
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise SnapshotError(f"Snapshot not found: {source}") from exc
    except (OSError, ValueError) as exc:
        raise SnapshotError(f"Unable to read snapshot {source}: {exc}") from exc

    if not isinstance(payload, dict):
        raise SnapshotError(f"Snapshot {source} is not a JSON object")
    version = payload.get("version")
    if version != SNAPSHOT_VERSION:
        raise SnapshotError(
            f"Unsupported snapshot version {version!r} (expected {SNAPSHOT_VERSION})"
        )
    for key in ("documents", "chunks"):
        if not isinstance(payload.get(key), list):
            raise SnapshotError(f"Snapshot {source} is missing '{key}'")
    return payload


__all__ = ["SNAPSHOT_VERSION", "read_snapshot", "write_snapshot"]
