"""
Cache decision — should a document be skipped, regenerated, or snapshotted?

Equality is judged by fingerprint alone, never by timestamps, so the
decision stays deterministic whatever the snapshot storage format.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ssmlcaster.models import Decision, SnapshotRef, SourceDocument
from ssmlcaster.renderer.hash_utils import sha256_file
from ssmlcaster.renderer.protocols import SnapshotStore

logger = logging.getLogger("ssmlcaster.decision")


@dataclass(frozen=True)
class DecisionOutcome:
    """A decision plus the evidence it was based on."""
    decision: Decision
    latest: Optional[SnapshotRef] = None
    current_fingerprint: str = ""
    latest_fingerprint: str = ""
    warnings: tuple[str, ...] = ()


def decide(document: SourceDocument, store: SnapshotStore, output_path: Path) -> DecisionOutcome:
    """
    Decide what a run must do for one document.

    Args:
        document: The source document as it is now.
        store: Snapshot history to compare against.
        output_path: Where the document's audio artifact is expected.

    Returns:
        DecisionOutcome. I/O errors while fingerprinting propagate as OSError.
    """
    scan = store.scan(document)
    warnings = tuple(f"Skipped snapshot with unparsable timestamp: {name}" for name in scan.malformed)
    latest = scan.latest
    if latest is None:
        logger.debug(f"DECISION: document={document.name!r} first observation")
        return DecisionOutcome(decision=Decision.SNAPSHOT_AND_REGENERATE, warnings=warnings)

    current_fp = sha256_file(document.path)
    latest_fp = sha256_file(latest.path)

    if current_fp != latest_fp:
        decision = Decision.SNAPSHOT_AND_REGENERATE
    elif Path(output_path).exists():
        decision = Decision.SKIP
    else:
        # Unchanged since the latest snapshot; a new one would be identical.
        decision = Decision.REGENERATE_ONLY

    logger.debug(
        f"DECISION: document={document.name!r} decision={decision.value} "
        f"latest={latest.path.name!r} current={current_fp[:12]} previous={latest_fp[:12]}"
    )
    return DecisionOutcome(
        decision=decision,
        latest=latest,
        current_fingerprint=current_fp,
        latest_fingerprint=latest_fp,
        warnings=warnings,
    )
