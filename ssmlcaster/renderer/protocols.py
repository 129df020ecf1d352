"""
Renderer protocols — lightweight interfaces for synthesis and snapshot storage.

These allow the conversion pipeline to be tested without the Google
Cloud client installed, and let an index-backed snapshot store replace
the directory scan without touching the decision engine.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from ssmlcaster.models import SnapshotRef, SnapshotScan, SourceDocument, SynthesisConfig


class SynthesisError(RuntimeError):
    """The synthesis service rejected or failed a request."""


@runtime_checkable
class TTSEngine(Protocol):
    """Interface for SSML-to-audio synthesis."""

    def synthesize(self, ssml: str, config: SynthesisConfig) -> bytes: ...


@runtime_checkable
class SnapshotStore(Protocol):
    """Interface for the append-only snapshot history of documents."""

    def scan(self, document: SourceDocument) -> SnapshotScan: ...

    def latest_snapshot(self, document: SourceDocument) -> Optional[SnapshotRef]: ...

    def create_snapshot(self, document: SourceDocument) -> SnapshotRef: ...

    def list_snapshots(self, document: SourceDocument) -> list[SnapshotRef]: ...
