"""
Failure report bundle for conversion runs.

On request, writes a structured JSON report with:
- Run totals (skipped, regenerated, failed)
- Per-document error kind and message
- Stack trace excerpt
- The voice/encoding settings in effect
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ssmlcaster.models import ConversionReport, SynthesisConfig

REPORT_FILENAME = "conversion_failure_report.json"
_TRACE_LIMIT = 4000


@dataclass
class FailedDocument:
    """Detail about a failed document."""
    source: str
    error_kind: str
    error_message: str
    decision: str = ""
    snapshot_created: bool = False
    stack_trace: str = ""


@dataclass
class ConversionFailureReport:
    """Complete failure report for a conversion run."""
    timestamp: str = ""
    total_documents: int = 0
    skipped: int = 0
    regenerated: int = 0
    failed_count: int = 0
    fatal_error: str = ""
    config: dict = field(default_factory=dict)
    failed_documents: list[FailedDocument] = field(default_factory=list)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    @classmethod
    def from_report(cls, report: ConversionReport, config: Optional[SynthesisConfig] = None) -> "ConversionFailureReport":
        """Collect the failures of a finished run."""
        bundle = cls(
            total_documents=report.total,
            skipped=report.skipped,
            regenerated=report.regenerated,
            fatal_error=report.fatal_error.value if report.fatal_error else "",
            config=config.to_dict() if config else {},
        )
        for doc in report.failures():
            bundle.failed_documents.append(FailedDocument(
                source=doc.source,
                error_kind=doc.error_kind.value,
                error_message=doc.error_message,
                decision=doc.decision.value if doc.decision else "",
                snapshot_created=doc.snapshot_created,
                stack_trace=doc.stack_trace[-_TRACE_LIMIT:],
            ))
        bundle.failed_count = len(bundle.failed_documents)
        return bundle

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return asdict(self)

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def save(self, path: Optional[Path] = None) -> Path:
        """
        Write report to disk.

        Args:
            path: Output path (default: conversion_failure_report.json in cwd).

        Returns:
            Path to written report.
        """
        path = Path(path) if path is not None else Path(REPORT_FILENAME)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        return path

    @classmethod
    def from_dict(cls, data: dict) -> "ConversionFailureReport":
        """Load from dictionary."""
        report = cls(
            timestamp=data.get("timestamp", ""),
            total_documents=data.get("total_documents", 0),
            skipped=data.get("skipped", 0),
            regenerated=data.get("regenerated", 0),
            failed_count=data.get("failed_count", 0),
            fatal_error=data.get("fatal_error", ""),
            config=data.get("config", {}),
        )
        for fd in data.get("failed_documents", []):
            report.failed_documents.append(FailedDocument(**fd))
        return report

    @classmethod
    def load(cls, path: Path) -> "ConversionFailureReport":
        """Load report from JSON file."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_dict(data)
