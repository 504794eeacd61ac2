"""Text-to-speech for assistant answers."""
from __future__ import annotations

import base64
import logging
from functools import lru_cache
from typing import Any

from google.genai import types

from .config import Settings, settings
from .genai_client import get_client
from .utils import bounded

logger = logging.getLogger(__name__)


class SpeechError(RuntimeError):
    """No audio could be produced for the text."""


def _audio_data(response: Any) -> bytes | str | None:
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                return inline.data
    return None


class SpeechClient:
    def __init__(self, client: Any | None = None, config: Settings = settings) -> None:
        self._client = client
        self.config = config

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_client()
        return self._client

    def _speech_config(self) -> types.GenerateContentConfig:
        voice = types.VoiceConfig(
            prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.config.speech_voice)
        )
        return types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(voice_config=voice),
        )

    async def synthesize(self, text: str) -> str:
        """Return base64-encoded audio of ``text`` read aloud."""
        outcome = await bounded(
            self.client.aio.models.generate_content(
                model=self.config.speech_model,
                contents=f"Recommendation: {text}",
                config=self._speech_config(),
            ),
            self.config.completion_timeout,
            "speech synthesis",
        )
        if not outcome.ok:
            reason = "timed out" if outcome.error is None else str(outcome.error)
            raise SpeechError(f"Speech service unavailable: {reason}")
        data = _audio_data(outcome.value)
        if not data:
            raise SpeechError("Speech service returned no audio")
        if isinstance(data, str):
            return data
        logger.info("synthesized %s bytes of audio for %s chars", len(data), len(text))
        return base64.b64encode(data).decode("ascii")


@lru_cache(maxsize=1)
def get_speech() -> SpeechClient:
    return SpeechClient()
