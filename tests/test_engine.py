"""
Conversion engine tests — process_document + process_all.

All tests are hermetic: no Google Cloud client, no network.

Covers:
- Idempotence across runs
- Change detection creates exactly one snapshot
- Missing-artifact recovery without a redundant snapshot
- Per-document isolation of synthesis and I/O failures
- Missing source directory is the only fatal error
- Encoding-to-extension mapping
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from ssmlcaster.models import (
    AudioEncoding,
    Decision,
    ErrorKind,
    SourceDocument,
    SynthesisConfig,
)
from ssmlcaster.renderer.engine import (
    extension_for_encoding,
    find_documents,
    output_path_for,
    process_all,
    process_document,
    relative_display,
    write_atomic,
)
from ssmlcaster.renderer.failure_report import ConversionFailureReport
from ssmlcaster.renderer.snapshot_store import DirectorySnapshotStore
from tests.fakes.fake_tts import FakeTTSEngine, fake_audio


def _run(workspace, engine, config: SynthesisConfig = SynthesisConfig(), **kwargs):
    return process_all(
        workspace.texts,
        workspace.audio,
        workspace.snapshots,
        config,
        engine=engine,
        **kwargs,
    )


class _FailingSnapshotStore(DirectorySnapshotStore):
    """Directory store that cannot write snapshots for one document."""

    def __init__(self, store_dir: Path, failing_name: str) -> None:
        super().__init__(store_dir)
        self.failing_name = failing_name

    def create_snapshot(self, document):
        if document.name == self.failing_name:
            raise PermissionError(f"Permission denied: '{document.name}'")
        return super().create_snapshot(document)


# ---------------------------------------------------------------------------
# Extension mapping
# ---------------------------------------------------------------------------

class TestExtensionForEncoding:
    def test_mp3(self):
        assert extension_for_encoding(AudioEncoding.MP3) == (".mp3", None)

    def test_opus(self):
        assert extension_for_encoding(AudioEncoding.OGG_OPUS) == (".ogg", None)

    @pytest.mark.parametrize("encoding", [AudioEncoding.LINEAR16, AudioEncoding.MULAW, AudioEncoding.ALAW])
    def test_unrecognized_falls_back_to_mp3_with_warning(self, encoding, caplog):
        with caplog.at_level(logging.WARNING, logger="ssmlcaster.renderer"):
            ext, warning = extension_for_encoding(encoding)
        assert ext == ".mp3"
        assert encoding.value in warning
        assert "ENCODING_FALLBACK" in caplog.text

    def test_output_path_uses_document_name(self, tmp_path: Path):
        doc = SourceDocument(path=tmp_path / "texts" / "chapter1.xml")
        assert output_path_for(doc, tmp_path / "audio", ".ogg") == tmp_path / "audio" / "chapter1.ogg"

    def test_relative_display_never_absolute(self, tmp_path: Path):
        shown = relative_display(tmp_path / "texts" / "a.xml", tmp_path / "texts")
        assert shown == "texts/a.xml"
        assert str(tmp_path) not in shown

    def test_relative_display_of_current_dir(self, tmp_path: Path, monkeypatch):
        (tmp_path / "texts").mkdir()
        monkeypatch.chdir(tmp_path / "texts")
        shown = relative_display(Path(".") / "a.xml", Path("."))
        assert shown == "texts/a.xml"
        assert not shown.startswith("/")

    def test_relative_display_of_filesystem_root(self):
        assert relative_display(Path("/a.xml"), Path("/")) == "a.xml"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------

class TestWriteAtomic:
    def test_writes_and_replaces(self, tmp_path: Path):
        path = tmp_path / "out.mp3"
        write_atomic(path, b"one")
        write_atomic(path, b"two")
        assert path.read_bytes() == b"two"
        assert not list(tmp_path.glob("*.tmp"))

    def test_missing_parent_raises_and_leaves_nothing(self, tmp_path: Path):
        with pytest.raises(OSError):
            write_atomic(tmp_path / "missing" / "out.mp3", b"x")
        assert not (tmp_path / "missing").exists()


# ---------------------------------------------------------------------------
# Testable properties of a run
# ---------------------------------------------------------------------------

class TestFirstObservation:
    def test_snapshots_and_writes_output(self, workspace):
        workspace.write_doc("intro", "<speak>Hello</speak>")
        engine = FakeTTSEngine()

        report = _run(workspace, engine)

        assert report.ok
        [result] = report.documents
        assert result.decision is Decision.SNAPSHOT_AND_REGENERATE
        assert result.snapshot_created
        assert result.output_written
        assert (workspace.audio / "intro.mp3").read_bytes() == fake_audio("<speak>Hello</speak>")
        assert len(workspace.snapshot_files()) == 1
        assert workspace.snapshot_files()[0].read_text(encoding="utf-8") == "<speak>Hello</speak>"

    def test_passes_config_to_engine(self, workspace):
        workspace.write_doc("intro")
        engine = FakeTTSEngine()
        config = SynthesisConfig(voice_name="vi-VN-Wavenet-B", audio_encoding=AudioEncoding.OGG_OPUS)

        report = _run(workspace, engine, config)

        assert engine.calls[0].config == config
        assert report.documents[0].output == "audio/intro.ogg"
        assert (workspace.audio / "intro.ogg").exists()

    def test_bootstraps_output_and_snapshot_dirs(self, workspace):
        workspace.write_doc("intro")
        assert not workspace.audio.exists()
        _run(workspace, FakeTTSEngine())
        assert workspace.audio.is_dir()
        assert workspace.snapshots.is_dir()


class TestIdempotence:
    def test_second_run_skips_everything(self, workspace):
        workspace.write_doc("a", "<speak>A</speak>")
        workspace.write_doc("b", "<speak>B</speak>")
        engine = FakeTTSEngine()

        first = _run(workspace, engine)
        snapshots_after_first = workspace.snapshot_files()
        mtimes = {p.name: p.stat().st_mtime_ns for p in workspace.audio.iterdir()}

        second = _run(workspace, engine)

        assert first.regenerated == 2
        assert second.ok
        assert [d.decision for d in second.documents] == [Decision.SKIP, Decision.SKIP]
        assert second.skipped == 2
        assert second.regenerated == 0
        assert second.snapshotted == 0
        assert len(engine.calls) == 2
        assert workspace.snapshot_files() == snapshots_after_first
        assert {p.name: p.stat().st_mtime_ns for p in workspace.audio.iterdir()} == mtimes

    def test_third_run_still_skips(self, workspace):
        workspace.write_doc("a")
        engine = FakeTTSEngine()
        for _ in range(3):
            report = _run(workspace, engine)
        assert report.documents[0].decision is Decision.SKIP
        assert len(workspace.snapshot_files()) == 1


class TestChangeDetection:
    def test_edit_creates_exactly_one_snapshot_and_regenerates(self, workspace):
        path = workspace.write_doc("a", "<speak>v1</speak>")
        engine = FakeTTSEngine()
        _run(workspace, engine)

        path.write_text("<speak>v2</speak>", encoding="utf-8")
        report = _run(workspace, engine)

        [result] = report.documents
        assert result.decision is Decision.SNAPSHOT_AND_REGENERATE
        assert result.snapshot_created
        assert result.output_written
        assert len(workspace.snapshot_files()) == 2
        assert (workspace.audio / "a.mp3").read_bytes() == fake_audio("<speak>v2</speak>")

        stable = _run(workspace, engine)
        assert stable.documents[0].decision is Decision.SKIP
        assert len(workspace.snapshot_files()) == 2

    def test_only_changed_document_is_resynthesized(self, workspace):
        workspace.write_doc("a", "<speak>A</speak>")
        b = workspace.write_doc("b", "<speak>B</speak>")
        engine = FakeTTSEngine()
        _run(workspace, engine)

        b.write_text("<speak>B2</speak>", encoding="utf-8")
        report = _run(workspace, engine)

        decisions = {d.source: d.decision for d in report.documents}
        assert decisions == {
            "texts/a.xml": Decision.SKIP,
            "texts/b.xml": Decision.SNAPSHOT_AND_REGENERATE,
        }
        assert [c.ssml for c in engine.calls[2:]] == ["<speak>B2</speak>"]


class TestMissingArtifactRecovery:
    def test_deleted_output_regenerates_without_snapshot(self, workspace):
        workspace.write_doc("a", "<speak>A</speak>")
        engine = FakeTTSEngine()
        _run(workspace, engine)
        (workspace.audio / "a.mp3").unlink()

        report = _run(workspace, engine)

        [result] = report.documents
        assert result.decision is Decision.REGENERATE_ONLY
        assert not result.snapshot_created
        assert result.output_written
        assert (workspace.audio / "a.mp3").exists()
        assert len(workspace.snapshot_files()) == 1

    def test_encoding_change_counts_as_missing_artifact(self, workspace):
        workspace.write_doc("a")
        engine = FakeTTSEngine()
        _run(workspace, engine)

        report = _run(workspace, engine, SynthesisConfig(audio_encoding=AudioEncoding.OGG_OPUS))

        assert report.documents[0].decision is Decision.REGENERATE_ONLY
        assert (workspace.audio / "a.ogg").exists()


class TestIsolation:
    def test_synthesis_failure_does_not_stop_siblings(self, workspace):
        workspace.write_doc("a", "<speak>FAIL here</speak>")
        workspace.write_doc("b", "<speak>fine</speak>")
        engine = FakeTTSEngine(fail_when_contains="FAIL")

        report = _run(workspace, engine)

        results = {d.source: d for d in report.documents}
        a, b = results["texts/a.xml"], results["texts/b.xml"]
        assert a.error_kind is ErrorKind.SYNTHESIS_FAILURE
        assert "Fake TTS failure" in a.error_message
        assert a.describe() == "Error processing 'texts/a.xml': Fake TTS failure"
        assert b.ok
        assert b.decision is Decision.SNAPSHOT_AND_REGENERATE
        assert (workspace.audio / "b.mp3").exists()
        assert not (workspace.audio / "a.mp3").exists()
        assert report.failed == 1
        assert not report.ok

    def test_failed_synthesis_is_retried_next_run_without_new_snapshot(self, workspace):
        workspace.write_doc("a", "<speak>A</speak>")
        _run(workspace, FakeTTSEngine(fail_on_call=0))
        assert len(workspace.snapshot_files()) == 1

        report = _run(workspace, FakeTTSEngine())

        assert report.documents[0].decision is Decision.REGENERATE_ONLY
        assert report.documents[0].output_written
        assert len(workspace.snapshot_files()) == 1

    def test_failed_synthesis_of_edit_drops_old_output(self, workspace):
        workspace.write_doc("a", "<speak>v1</speak>")
        _run(workspace, FakeTTSEngine())
        workspace.write_doc("a", "<speak>v2</speak>")

        failed = _run(workspace, FakeTTSEngine(fail_on_call=0))

        assert failed.documents[0].error_kind is ErrorKind.SYNTHESIS_FAILURE
        assert failed.documents[0].snapshot_created
        assert not (workspace.audio / "a.mp3").exists()

        report = _run(workspace, FakeTTSEngine())

        assert report.documents[0].decision is Decision.REGENERATE_ONLY
        assert (workspace.audio / "a.mp3").read_bytes() == fake_audio("<speak>v2</speak>")
        assert len(workspace.snapshot_files()) == 2

    def test_io_failure_is_confined_to_document(self, workspace):
        workspace.write_doc("a")
        workspace.write_doc("b")
        store = _FailingSnapshotStore(workspace.snapshots, failing_name="a")

        report = _run(workspace, FakeTTSEngine(), store=store)

        results = {d.source: d for d in report.documents}
        assert results["texts/a.xml"].error_kind is ErrorKind.DOCUMENT_IO_FAILURE
        assert "Permission denied" in results["texts/a.xml"].error_message
        assert results["texts/b.xml"].ok
        assert (workspace.audio / "b.mp3").exists()

    def test_undecodable_document_is_io_failure(self, workspace):
        (workspace.texts / "bad.xml").write_bytes(b"\xff\xfe\x00bad")
        workspace.write_doc("good")

        report = _run(workspace, FakeTTSEngine())

        results = {d.source: d for d in report.documents}
        assert results["texts/bad.xml"].error_kind is ErrorKind.DOCUMENT_IO_FAILURE
        assert results["texts/good.xml"].ok

    def test_error_messages_use_relative_paths(self, workspace):
        workspace.write_doc("a", "<speak>FAIL</speak>")
        report = _run(workspace, FakeTTSEngine(fail_when_contains="FAIL"))
        line = report.documents[0].describe()
        assert "texts/a.xml" in line
        assert str(workspace.root) not in line


class TestSourceNotFound:
    def test_missing_source_is_fatal_and_does_nothing(self, tmp_path: Path):
        engine = FakeTTSEngine()
        report = process_all(
            tmp_path / "texts",
            tmp_path / "audio",
            tmp_path / "snapshots",
            SynthesisConfig(),
            engine=engine,
        )
        assert report.fatal_error is ErrorKind.SOURCE_NOT_FOUND
        assert "texts" in report.fatal_message
        assert str(tmp_path) not in report.fatal_message
        assert report.documents == []
        assert not report.ok
        assert engine.calls == []
        assert not (tmp_path / "snapshots").exists()


class TestEnumeration:
    def test_only_xml_files(self, workspace):
        workspace.write_doc("a")
        workspace.write_doc("notes", ext=".txt")
        (workspace.texts / "dir.xml").mkdir()

        docs = find_documents(workspace.texts)

        assert [d.file_name for d in docs] == ["a.xml"]

    def test_empty_source_dir(self, workspace):
        report = _run(workspace, FakeTTSEngine())
        assert report.ok
        assert report.total == 0

    def test_progress_callback(self, workspace):
        workspace.write_doc("a")
        workspace.write_doc("b")
        seen = []

        _run(workspace, FakeTTSEngine(), progress_callback=lambda cur, total, res: seen.append((cur, total, res.source)))

        assert [(c, t) for c, t, _ in seen] == [(1, 2), (2, 2)]
        assert sorted(s for _, _, s in seen) == ["texts/a.xml", "texts/b.xml"]


class TestDryRun:
    def test_reports_decisions_without_side_effects(self, workspace):
        workspace.write_doc("a")
        engine = FakeTTSEngine()

        report = _run(workspace, engine, dry_run=True)

        assert report.documents[0].decision is Decision.SNAPSHOT_AND_REGENERATE
        assert not report.documents[0].output_written
        assert engine.calls == []
        assert not workspace.audio.exists()
        assert not workspace.snapshots.exists()

    def test_dry_run_does_not_need_an_engine(self, workspace):
        workspace.write_doc("a")
        report = process_all(workspace.texts, workspace.audio, workspace.snapshots, SynthesisConfig(), dry_run=True)
        assert report.ok


class TestProcessDocument:
    def test_malformed_snapshot_names_reach_result_warnings(self, workspace):
        workspace.write_doc("a")
        _run(workspace, FakeTTSEngine())
        (workspace.snapshots / "a-not-a-date.xml").write_text("x", encoding="utf-8")

        report = _run(workspace, FakeTTSEngine())

        [result] = report.documents
        assert result.decision is Decision.SKIP
        assert result.warnings == ["Skipped snapshot with unparsable timestamp: a-not-a-date.xml"]

    def test_unrecognized_encoding_warning_in_result(self, workspace):
        path = workspace.write_doc("a")
        workspace.audio.mkdir()
        result = process_document(
            SourceDocument(path=path),
            workspace.texts,
            workspace.audio,
            DirectorySnapshotStore(workspace.snapshots),
            SynthesisConfig(audio_encoding=AudioEncoding.LINEAR16),
            FakeTTSEngine(),
        )
        assert result.ok
        assert result.output == "audio/a.mp3"
        assert any("LINEAR16" in w for w in result.warnings)


class TestFailureReport:
    def test_report_collects_failures(self, workspace, tmp_path: Path):
        workspace.write_doc("a", "<speak>FAIL</speak>")
        workspace.write_doc("b")
        config = SynthesisConfig()
        report = _run(workspace, FakeTTSEngine(fail_when_contains="FAIL"), config)

        bundle = ConversionFailureReport.from_report(report, config)
        path = bundle.save(tmp_path / "reports" / "failures.json")
        loaded = ConversionFailureReport.load(path)

        assert loaded.total_documents == 2
        assert loaded.failed_count == 1
        assert loaded.regenerated == 1
        assert loaded.config["voice_name"] == "vi-VN-Wavenet-A"
        [failed] = loaded.failed_documents
        assert failed.source == "texts/a.xml"
        assert failed.error_kind == "synthesis_failure"
        assert failed.snapshot_created
        assert "SynthesisError" in failed.stack_trace

    def test_fatal_error_recorded(self, tmp_path: Path):
        report = process_all(tmp_path / "texts", tmp_path / "audio", tmp_path / "snap", SynthesisConfig())
        bundle = ConversionFailureReport.from_report(report)
        assert bundle.fatal_error == "source_not_found"
        assert bundle.failed_documents == []
