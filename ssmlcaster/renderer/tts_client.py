"""
Google Cloud Text-to-Speech client — wraps the API for mockability and logging.

The google-cloud-texttospeech import is deferred until the first request
so the rest of the package works without it installed.
"""

from __future__ import annotations

import logging
import time

from ssmlcaster.models import SynthesisConfig
from ssmlcaster.renderer.protocols import SynthesisError

logger = logging.getLogger("ssmlcaster.tts")


class GoogleTTSEngine:
    """Synthesizes SSML with Google Cloud Text-to-Speech. Default in production."""

    def __init__(self, client=None) -> None:
        self._client = client
        self._texttospeech = None

    def _module(self):
        if self._texttospeech is None:
            try:
                from google.cloud import texttospeech
            except ImportError:
                raise SynthesisError(
                    "google-cloud-texttospeech is required for synthesis. "
                    "Install it with:\n"
                    "  pip install google-cloud-texttospeech"
                )
            self._texttospeech = texttospeech
        return self._texttospeech

    def _get_client(self):
        if self._client is None:
            texttospeech = self._module()
            from google.auth.exceptions import DefaultCredentialsError

            try:
                self._client = texttospeech.TextToSpeechClient()
            except DefaultCredentialsError as e:
                raise SynthesisError(f"Google Cloud credentials not found: {e}") from e
        return self._client

    def synthesize(self, ssml: str, config: SynthesisConfig) -> bytes:
        texttospeech = self._module()
        client = self._get_client()

        from google.api_core.exceptions import GoogleAPIError

        synthesis_input = texttospeech.SynthesisInput(ssml=ssml)
        voice = texttospeech.VoiceSelectionParams(
            language_code=config.language_code,
            name=config.voice_name,
            ssml_gender=texttospeech.SsmlVoiceGender[config.ssml_gender.value],
        )
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding[config.audio_encoding.value],
        )

        start = time.time()
        try:
            response = client.synthesize_speech(
                input=synthesis_input,
                voice=voice,
                audio_config=audio_config,
            )
        except GoogleAPIError as e:
            raise SynthesisError(f"Text-to-Speech request failed: {e}") from e

        logger.debug(
            f"TTS_OK: voice={config.voice_name} encoding={config.audio_encoding.value} "
            f"chars={len(ssml)} bytes={len(response.audio_content)} "
            f"elapsed={time.time() - start:.2f}s"
        )
        return response.audio_content
