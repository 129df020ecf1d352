"""
Core data models for ssmlcaster.

These are the units that flow through a conversion run:
- SourceDocument: An SSML file in the source directory
- SnapshotRef: A timestamped copy of a document's past content
- Decision: What a run must do for one document
- SynthesisConfig: Voice and encoding settings for the synthesizer
- DocumentResult / ConversionReport: Per-document and per-run outcomes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class Decision(Enum):
    """What a run must do for one document."""
    SKIP = "skip"
    REGENERATE_ONLY = "regenerate_only"
    SNAPSHOT_AND_REGENERATE = "snapshot_and_regenerate"

    @property
    def needs_snapshot(self) -> bool:
        return self is Decision.SNAPSHOT_AND_REGENERATE

    @property
    def needs_synthesis(self) -> bool:
        return self is not Decision.SKIP


class ErrorKind(Enum):
    """Failure modes reported by a run."""
    SOURCE_NOT_FOUND = "source_not_found"
    MALFORMED_SNAPSHOT_NAME = "malformed_snapshot_name"
    DOCUMENT_IO_FAILURE = "document_io_failure"
    SYNTHESIS_FAILURE = "synthesis_failure"
    CONFIG_PARSE_FAILURE = "config_parse_failure"


class VoiceGender(Enum):
    """SSML voice gender, named after the synthesis API values."""
    SSML_VOICE_GENDER_UNSPECIFIED = "SSML_VOICE_GENDER_UNSPECIFIED"
    MALE = "MALE"
    FEMALE = "FEMALE"
    NEUTRAL = "NEUTRAL"


class AudioEncoding(Enum):
    """Audio encodings understood by the synthesis API."""
    LINEAR16 = "LINEAR16"
    MP3 = "MP3"
    OGG_OPUS = "OGG_OPUS"
    MULAW = "MULAW"
    ALAW = "ALAW"


@dataclass(frozen=True)
class SourceDocument:
    """
    An SSML document in the source directory.

    The logical name is the file name without its extension; snapshots
    and output artifacts are keyed by it.
    """
    path: Path

    @property
    def name(self) -> str:
        return self.path.stem

    @property
    def extension(self) -> str:
        return self.path.suffix

    @property
    def file_name(self) -> str:
        return self.path.name

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def read_text(self) -> str:
        return self.path.read_text(encoding="utf-8")


@dataclass(frozen=True)
class SnapshotRef:
    """
    Reference to an immutable snapshot on disk.

    Attributes:
        document_name: Logical name of the owning document
        timestamp: Creation instant (UTC, second resolution)
        path: Snapshot file location
    """
    document_name: str
    timestamp: datetime
    path: Path


@dataclass
class SnapshotScan:
    """
    Snapshot history of one document, as found in the store.

    Attributes:
        snapshots: Parsed snapshots, oldest first
        malformed: Entry names skipped because their timestamp did not parse
    """
    snapshots: list[SnapshotRef] = field(default_factory=list)
    malformed: list[str] = field(default_factory=list)

    @property
    def latest(self) -> Optional[SnapshotRef]:
        if not self.snapshots:
            return None
        return max(self.snapshots, key=lambda s: s.timestamp)


@dataclass(frozen=True)
class SynthesisConfig:
    """
    Voice and encoding settings for a run.

    Attributes:
        language_code: BCP-47 language tag (e.g. "vi-VN")
        voice_name: Synthesizer voice identifier
        ssml_gender: Requested voice gender
        audio_encoding: Encoding of the produced audio
    """
    language_code: str = "vi-VN"
    voice_name: str = "vi-VN-Wavenet-A"
    ssml_gender: VoiceGender = VoiceGender.FEMALE
    audio_encoding: AudioEncoding = AudioEncoding.MP3

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "language_code": self.language_code,
            "voice_name": self.voice_name,
            "ssml_gender": self.ssml_gender.value,
            "audio_encoding": self.audio_encoding.value,
        }


@dataclass
class DocumentResult:
    """Outcome of processing one document."""
    source: str
    output: str = ""
    decision: Optional[Decision] = None
    snapshot_created: bool = False
    output_written: bool = False
    error_kind: Optional[ErrorKind] = None
    error_message: str = ""
    stack_trace: str = ""
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    def describe(self) -> str:
        """Human-readable line, using relative paths only."""
        if not self.ok:
            return f"Error processing '{self.source}': {self.error_message}"
        if self.decision is Decision.SKIP:
            return f"Skipped (unchanged): '{self.source}' -> '{self.output}'"
        if self.decision is Decision.REGENERATE_ONLY:
            return f"Regenerated (output missing): '{self.source}' -> '{self.output}'"
        return f"Processed: '{self.source}' -> '{self.output}'"

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "output": self.output,
            "decision": self.decision.value if self.decision else None,
            "snapshot_created": self.snapshot_created,
            "output_written": self.output_written,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error_message": self.error_message,
            "warnings": list(self.warnings),
        }


@dataclass
class ConversionReport:
    """Outcome of a whole run."""
    documents: list[DocumentResult] = field(default_factory=list)
    fatal_error: Optional[ErrorKind] = None
    fatal_message: str = ""

    @property
    def total(self) -> int:
        return len(self.documents)

    @property
    def skipped(self) -> int:
        return sum(1 for d in self.documents if d.ok and d.decision is Decision.SKIP)

    @property
    def regenerated(self) -> int:
        return sum(1 for d in self.documents if d.output_written)

    @property
    def snapshotted(self) -> int:
        return sum(1 for d in self.documents if d.snapshot_created)

    @property
    def failed(self) -> int:
        return sum(1 for d in self.documents if not d.ok)

    @property
    def ok(self) -> bool:
        return self.fatal_error is None and self.failed == 0

    def failures(self) -> list[DocumentResult]:
        return [d for d in self.documents if not d.ok]
