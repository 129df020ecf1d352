"""Test fakes for ssmlcaster tests."""

from tests.fakes.fake_tts import FakeTTSEngine

__all__ = ["FakeTTSEngine"]
