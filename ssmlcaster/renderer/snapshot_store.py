"""
Snapshot store — append-only history of document contents.

Snapshots live flat in one directory, named
``{document}-{YYYY-MM-DD-HH-mm-ss}{ext}``. The newest parsed timestamp
is the document's current history. Nothing here deletes snapshots.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from ssmlcaster.models import ErrorKind, SnapshotRef, SnapshotScan, SourceDocument

logger = logging.getLogger("ssmlcaster.snapshots")

TIMESTAMP_FORMAT = "%Y-%m-%d-%H-%M-%S"
TIMESTAMP_WIDTH = 19


def format_timestamp(ts: datetime) -> str:
    return ts.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(raw: str) -> Optional[datetime]:
    """Parse a fixed-width snapshot timestamp; None if it is not one."""
    if len(raw) != TIMESTAMP_WIDTH:
        return None
    try:
        return datetime.strptime(raw, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def snapshot_filename(document_name: str, ts: datetime, extension: str) -> str:
    return f"{document_name}-{format_timestamp(ts)}{extension}"


def scan_snapshots(document_name: str, extension: str, store_dir: Path) -> SnapshotScan:
    """
    Collect every snapshot of one document from the store directory.

    Entries whose timestamp part does not parse are skipped with a
    warning. Entries ending in a valid timestamp under a longer prefix
    (``doc-intro-...`` while scanning ``doc``) belong to another
    document and are ignored.
    """
    scan = SnapshotScan()
    store_dir = Path(store_dir)
    if not store_dir.is_dir():
        return scan

    prefix = f"{document_name}-"
    for entry in sorted(store_dir.iterdir()):
        if not entry.is_file() or entry.suffix != extension:
            continue
        stem = entry.stem
        if not stem.startswith(prefix):
            continue

        raw = stem[len(prefix):]
        ts = parse_timestamp(raw)
        if ts is None:
            tail = raw[-TIMESTAMP_WIDTH:]
            if len(raw) > TIMESTAMP_WIDTH and raw[-TIMESTAMP_WIDTH - 1] == "-" and parse_timestamp(tail):
                continue
            logger.warning(
                f"SNAPSHOT_MALFORMED: skipping {entry.name!r} (timestamp {raw!r} does not parse)",
                extra={"labels": {"document": document_name, "error_kind": ErrorKind.MALFORMED_SNAPSHOT_NAME.value}},
            )
            scan.malformed.append(entry.name)
            continue

        scan.snapshots.append(SnapshotRef(document_name=document_name, timestamp=ts, path=entry))

    scan.snapshots.sort(key=lambda s: s.timestamp)
    return scan


def latest_snapshot(document_name: str, store_dir: Path, extension: str) -> Optional[SnapshotRef]:
    """Newest snapshot of a document, or None if it was never observed."""
    return scan_snapshots(document_name, extension, store_dir).latest


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def create_snapshot(
    document: SourceDocument,
    store_dir: Path,
    *,
    now: Optional[datetime] = None,
) -> SnapshotRef:
    """
    Copy the document's current content into a new snapshot.

    The snapshot is stamped with the current UTC second. If the newest
    existing snapshot is at or after that second, the new one is stamped
    one second after it, so history is never overwritten and the new
    snapshot is always the latest.
    """
    store_dir = Path(store_dir)
    store_dir.mkdir(parents=True, exist_ok=True)

    ts = (now or _utcnow()).replace(microsecond=0)
    existing = latest_snapshot(document.name, store_dir, document.extension)
    if existing is not None and existing.timestamp >= ts:
        bumped = existing.timestamp + timedelta(seconds=1)
        logger.warning(
            f"SNAPSHOT_COLLISION: document={document.name!r} "
            f"latest={format_timestamp(existing.timestamp)} now={format_timestamp(ts)} "
            f"using={format_timestamp(bumped)}"
        )
        ts = bumped

    target = store_dir / snapshot_filename(document.name, ts, document.extension)
    tmp_path = target.with_name(target.name + ".tmp")
    try:
        tmp_path.write_bytes(document.read_bytes())
        os.replace(tmp_path, target)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    logger.info(f"SNAPSHOT_CREATE: document={document.name!r} snapshot={target.name!r}")
    return SnapshotRef(document_name=document.name, timestamp=ts, path=target)


class DirectorySnapshotStore:
    """SnapshotStore backed by a flat directory scan."""

    def __init__(self, store_dir: Path) -> None:
        self.store_dir = Path(store_dir)

    def scan(self, document: SourceDocument) -> SnapshotScan:
        return scan_snapshots(document.name, document.extension, self.store_dir)

    def latest_snapshot(self, document: SourceDocument) -> Optional[SnapshotRef]:
        return self.scan(document).latest

    def create_snapshot(self, document: SourceDocument) -> SnapshotRef:
        return create_snapshot(document, self.store_dir)

    def list_snapshots(self, document: SourceDocument) -> list[SnapshotRef]:
        return self.scan(document).snapshots
