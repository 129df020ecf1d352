"""
Conversion engine for ssmlcaster.

Processes SSML documents one at a time: decide against the snapshot
history, snapshot when content changed, synthesize when output is
needed, and write the audio atomically. Accepts an injected TTSEngine
and SnapshotStore for testability; defaults to Google Cloud
Text-to-Speech and a directory-backed store.

Every failure except a missing source directory is confined to the
document it happened in and returned as an ErrorKind, never raised.
"""

import logging
import os
import time
import traceback
from pathlib import Path
from typing import Callable, Optional

from ssmlcaster.models import (
    AudioEncoding,
    ConversionReport,
    Decision,
    DocumentResult,
    ErrorKind,
    SourceDocument,
    SynthesisConfig,
)
from ssmlcaster.renderer.decision import decide
from ssmlcaster.renderer.protocols import SnapshotStore, TTSEngine

logger = logging.getLogger("ssmlcaster.renderer")

SOURCE_PATTERN = "*.xml"

_ENCODING_EXTENSIONS = {
    AudioEncoding.MP3: ".mp3",
    AudioEncoding.OGG_OPUS: ".ogg",
}
_FALLBACK_EXTENSION = ".mp3"


def extension_for_encoding(encoding: AudioEncoding) -> tuple[str, Optional[str]]:
    """
    File extension for an audio encoding.

    Returns:
        (extension, warning). Unrecognized encodings map to ".mp3" with
        a warning message.
    """
    ext = _ENCODING_EXTENSIONS.get(encoding)
    if ext is not None:
        return ext, None
    warning = f"No file extension known for encoding {encoding.value}; using {_FALLBACK_EXTENSION}"
    logger.warning(f"ENCODING_FALLBACK: {warning}")
    return _FALLBACK_EXTENSION, warning


def output_path_for(document: SourceDocument, output_dir: Path, extension: str) -> Path:
    return Path(output_dir) / f"{document.name}{extension}"


def relative_display(path: Path, root: Path) -> str:
    """Path shown to the user: '<dir name>/<file name>', never absolute."""
    root = Path(root)
    dir_name = root.name or root.resolve().name
    if not dir_name:
        return Path(path).name
    return f"{dir_name}/{Path(path).name}"


def write_atomic(path: Path, data: bytes) -> None:
    """Write bytes via a tmp file and rename, so readers never see a partial file."""
    path = Path(path)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def get_default_engine() -> TTSEngine:
    """Create the Google Cloud TTS engine (lazy)."""
    from ssmlcaster.renderer.tts_client import GoogleTTSEngine
    return GoogleTTSEngine()


# ---------------------------------------------------------------------------
# Single document
# ---------------------------------------------------------------------------

def process_document(
    document: SourceDocument,
    source_dir: Path,
    output_dir: Path,
    store: SnapshotStore,
    config: SynthesisConfig,
    engine: Optional[TTSEngine],
    *,
    dry_run: bool = False,
) -> DocumentResult:
    """
    Process one document end-to-end.

    Args:
        document: Source document to convert.
        source_dir: Source directory (for display paths).
        output_dir: Directory receiving audio artifacts.
        store: Snapshot history.
        config: Voice and encoding settings.
        engine: Synthesizer; may be None when dry_run is set.
        dry_run: Only compute the decision; write nothing.

    Returns:
        DocumentResult. Errors are reported in error_kind, never raised.
    """
    extension, ext_warning = extension_for_encoding(config.audio_encoding)
    output_path = output_path_for(document, output_dir, extension)
    result = DocumentResult(
        source=relative_display(document.path, source_dir),
        output=relative_display(output_path, output_dir),
    )
    if ext_warning:
        result.warnings.append(ext_warning)
    labels = {"document": document.name}

    try:
        outcome = decide(document, store, output_path)
    except OSError as e:
        return _fail(result, ErrorKind.DOCUMENT_IO_FAILURE, e, labels)

    result.decision = outcome.decision
    result.warnings.extend(outcome.warnings)
    labels["decision"] = outcome.decision.value

    if dry_run or outcome.decision is Decision.SKIP:
        if outcome.decision is Decision.SKIP:
            logger.info(f"CONVERT_SKIP: document={document.name!r}", extra={"labels": labels})
        return result

    start = time.time()
    try:
        if outcome.decision.needs_snapshot:
            store.create_snapshot(document)
            result.snapshot_created = True
        ssml = document.read_text()
    except (OSError, UnicodeDecodeError) as e:
        _discard_stale_output(result, output_path)
        return _fail(result, ErrorKind.DOCUMENT_IO_FAILURE, e, labels)

    if engine is None:
        engine = get_default_engine()

    try:
        audio = engine.synthesize(ssml, config)
    except Exception as e:
        _discard_stale_output(result, output_path)
        return _fail(result, ErrorKind.SYNTHESIS_FAILURE, e, labels)

    try:
        write_atomic(output_path, audio)
    except OSError as e:
        _discard_stale_output(result, output_path)
        return _fail(result, ErrorKind.DOCUMENT_IO_FAILURE, e, labels)

    result.output_written = True
    logger.info(
        f"CONVERT_OK: document={document.name!r} decision={outcome.decision.value} "
        f"snapshot={result.snapshot_created} bytes={len(audio)} elapsed={time.time() - start:.1f}s",
        extra={"labels": labels},
    )
    return result


def _discard_stale_output(result: DocumentResult, output_path: Path) -> None:
    """
    Remove audio made from content older than the snapshot just taken.

    Once the new snapshot exists, the next run compares against it and
    would skip the document while the old audio is still there.
    """
    if not result.snapshot_created:
        return
    try:
        output_path.unlink(missing_ok=True)
    except OSError as e:
        msg = f"Could not remove stale output {result.output!r}: {e}"
        logger.warning(f"CONVERT_STALE_OUTPUT: {msg}")
        result.warnings.append(msg)
        return
    logger.info(f"CONVERT_STALE_OUTPUT: removed {result.output!r}")


def _fail(result: DocumentResult, kind: ErrorKind, error: Exception, labels: dict) -> DocumentResult:
    result.error_kind = kind
    result.error_message = str(error) or type(error).__name__
    result.stack_trace = traceback.format_exc()
    logger.error(
        f"CONVERT_DOC_FAIL: source={result.source!r} kind={kind.value} error={result.error_message}",
        extra={"labels": labels},
    )
    return result


# ---------------------------------------------------------------------------
# Whole directory
# ---------------------------------------------------------------------------

def find_documents(source_dir: Path, pattern: str = SOURCE_PATTERN) -> list[SourceDocument]:
    """Source documents in directory-listing order."""
    return [SourceDocument(path=p) for p in Path(source_dir).glob(pattern) if p.is_file()]


def process_all(
    source_dir: Path,
    output_dir: Path,
    store_dir: Path,
    config: SynthesisConfig,
    *,
    engine: Optional[TTSEngine] = None,
    store: Optional[SnapshotStore] = None,
    pattern: str = SOURCE_PATTERN,
    progress_callback: Optional[Callable[[int, int, DocumentResult], None]] = None,
    dry_run: bool = False,
) -> ConversionReport:
    """
    Convert every document in a directory, sequentially.

    Args:
        source_dir: Directory holding the SSML documents.
        output_dir: Directory receiving audio artifacts (created if missing).
        store_dir: Snapshot directory (created if missing).
        config: Voice and encoding settings for this run.
        engine: Injected TTSEngine (defaults to Google Cloud TTS).
        store: Injected SnapshotStore (defaults to a DirectorySnapshotStore on store_dir).
        pattern: Glob selecting source documents.
        progress_callback: Callback(current, total, result) after each document.
        dry_run: Compute decisions only; create nothing.

    Returns:
        ConversionReport. A missing source directory is reported as a
        fatal SOURCE_NOT_FOUND with no documents processed.
    """
    from ssmlcaster.renderer.snapshot_store import DirectorySnapshotStore

    source_dir = Path(source_dir)
    output_dir = Path(output_dir)
    store_dir = Path(store_dir)
    report = ConversionReport()

    if not source_dir.is_dir():
        report.fatal_error = ErrorKind.SOURCE_NOT_FOUND
        report.fatal_message = f"Texts directory not found at '{source_dir.name}'."
        logger.error(f"CONVERT_SOURCE_MISSING: source={source_dir.name!r}")
        return report

    if not dry_run:
        output_dir.mkdir(parents=True, exist_ok=True)
        store_dir.mkdir(parents=True, exist_ok=True)

    if store is None:
        store = DirectorySnapshotStore(store_dir)
    if engine is None and not dry_run:
        engine = get_default_engine()

    documents = find_documents(source_dir, pattern)
    logger.info(
        f"CONVERT_START: documents={len(documents)} source={source_dir.name!r} "
        f"output={output_dir.name!r} voice={config.voice_name} "
        f"encoding={config.audio_encoding.value} dry_run={dry_run}"
    )

    for i, document in enumerate(documents):
        result = process_document(
            document, source_dir, output_dir, store, config, engine, dry_run=dry_run,
        )
        report.documents.append(result)
        if progress_callback:
            progress_callback(i + 1, len(documents), result)

    _log_summary(report)
    return report


def _log_summary(report: ConversionReport) -> None:
    logger.info(
        f"CONVERT_SUMMARY: total={report.total} skipped={report.skipped} "
        f"regenerated={report.regenerated} snapshots={report.snapshotted} "
        f"failed={report.failed}"
    )
