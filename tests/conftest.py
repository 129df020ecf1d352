"""
Shared fixtures: a run workspace with texts/, audio/ and snapshots/.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest


SAMPLE_SSML = (
    '<speak>Xin chào. <break time="500ms"/> Đây là một bài kiểm tra.</speak>'
)


@dataclass
class Workspace:
    root: Path
    texts: Path
    audio: Path
    snapshots: Path

    def write_doc(self, name: str, content: str = SAMPLE_SSML, ext: str = ".xml") -> Path:
        path = self.texts / f"{name}{ext}"
        path.write_text(content, encoding="utf-8")
        return path

    def snapshot_files(self) -> list[Path]:
        if not self.snapshots.exists():
            return []
        return sorted(p for p in self.snapshots.iterdir() if p.is_file())


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    texts = tmp_path / "texts"
    texts.mkdir()
    return Workspace(
        root=tmp_path,
        texts=texts,
        audio=tmp_path / "audio",
        snapshots=tmp_path / "snapshots",
    )
