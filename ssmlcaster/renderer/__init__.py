"""
Renderer module for ssmlcaster.

Handles:
- Content fingerprints and snapshot history
- Skip / regenerate / snapshot decisions
- Per-document synthesis with failure isolation
"""

from ssmlcaster.renderer.engine import process_all, process_document, extension_for_encoding
from ssmlcaster.renderer.decision import decide, DecisionOutcome
from ssmlcaster.renderer.protocols import TTSEngine, SnapshotStore, SynthesisError
from ssmlcaster.renderer.snapshot_store import DirectorySnapshotStore, latest_snapshot, create_snapshot
from ssmlcaster.renderer.hash_utils import sha256_file

__all__ = [
    "process_all",
    "process_document",
    "extension_for_encoding",
    "decide",
    "DecisionOutcome",
    "TTSEngine",
    "SnapshotStore",
    "SynthesisError",
    "DirectorySnapshotStore",
    "latest_snapshot",
    "create_snapshot",
    "sha256_file",
]
