"""Gemini client factory.

A single ``google.genai.Client`` is shared by the embedding, preprocessing and
completion code. Callers use its ``aio`` surface so requests never block the
event loop.
"""
from __future__ import annotations

import logging
from functools import lru_cache

from google import genai

from .config import ConfigurationError, settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_client() -> genai.Client:
    if not settings.gemini_api_key:
        raise ConfigurationError("GEMINI_API_KEY is not configured")
    logger.info("Creating Gemini client (chat=%s, embeddings=%s)", settings.chat_model, settings.embedding_model)
    return genai.Client(api_key=settings.gemini_api_key)
