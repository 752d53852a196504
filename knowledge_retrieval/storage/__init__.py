"""Persistence helpers for retrieval snapshots."""

from .snapshot import SNAPSHOT_VERSION, read_snapshot, write_snapshot

__all__ = ["SNAPSHOT_VERSION", "read_snapshot", "write_snapshot"]
