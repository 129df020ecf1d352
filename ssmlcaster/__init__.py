"""
ssmlcaster - SSML to audio with change detection

Convert a directory of SSML documents into synthesized audio files,
re-synthesizing only documents whose content changed since the last
recorded snapshot.

Example:
    from ssmlcaster import SynthesisConfig, process_all

    report = process_all("texts", "audio", "snapshots", SynthesisConfig())
    for result in report.documents:
        print(result.describe())
"""

__version__ = "0.3.0"

from ssmlcaster.models import (
    AudioEncoding,
    ConversionReport,
    Decision,
    DocumentResult,
    ErrorKind,
    SnapshotRef,
    SourceDocument,
    SynthesisConfig,
    VoiceGender,
)
from ssmlcaster.renderer.engine import process_all

__all__ = [
    "AudioEncoding",
    "ConversionReport",
    "Decision",
    "DocumentResult",
    "ErrorKind",
    "SnapshotRef",
    "SourceDocument",
    "SynthesisConfig",
    "VoiceGender",
    "process_all",
]
