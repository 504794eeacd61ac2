"""Query preprocessing: expansion of terse queries and decomposition of long enquiries.

Both steps are best-effort. Any timeout or API failure falls back to the
original query so the search always has something to work with.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Sequence

from google.genai import types

from .config import Settings, settings
from .genai_client import get_client
from .heuristics import has_product_code, is_meta_query
from .models import ConversationTurn
from .prompts import DECOMPOSITION_PROMPT, EXPANSION_PROMPT
from .utils import bounded

logger = logging.getLogger(__name__)

DECOMPOSE_MIN_LENGTH = 150
EXPAND_MIN_LENGTH = 10
MIN_PHRASE_LENGTH = 5
MAX_PHRASES = 4
_LIST_MARKER_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


class QueryPreprocessor:
    def __init__(self, client: Any | None = None, config: Settings = settings) -> None:
        self._client = client
        self.config = config

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_client()
        return self._client

    async def _generate(self, prompt: str, max_tokens: int) -> str:
        response = await self.client.aio.models.generate_content(
            model=self.config.expansion_model,
            contents=prompt,
            config=types.GenerateContentConfig(temperature=0.1, max_output_tokens=max_tokens),
        )
        return (response.text or "").strip()

    async def expand_query(self, query: str, history: Sequence[ConversationTurn] | None = None) -> str:
        """Rewrite a vague query into a fuller search phrase, or return it untouched."""
        if has_product_code(query) or "_" in query or "-" in query or is_meta_query(query):
            return query
        if len(query) <= EXPAND_MIN_LENGTH and " " not in query.strip():
            return query

        summary = "\n".join(f"{turn.role.upper()}: {turn.content}" for turn in (history or [])[-3:])
        outcome = await bounded(
            self._generate(EXPANSION_PROMPT.format(history=summary or "(none)", query=query), 60),
            self.config.expansion_timeout,
            "query expansion",
        )
        expanded = outcome.value_or("").strip().strip('"').strip()
        if not expanded:
            return query
        logger.info("expanded %r -> %r", query, expanded)
        return expanded

    async def decompose_enquiry(self, query: str) -> list[str]:
        """Split a long multi-requirement enquiry into independent search phrases."""
        if len(query) < DECOMPOSE_MIN_LENGTH:
            return [query]
        outcome = await bounded(
            self._generate(DECOMPOSITION_PROMPT.format(query=query), 200),
            self.config.decompose_timeout,
            "enquiry decomposition",
        )
        phrases = []
        for line in outcome.value_or("").splitlines():
            phrase = _LIST_MARKER_RE.sub("", line).strip().strip('"').strip()
            if len(phrase) > MIN_PHRASE_LENGTH:
                phrases.append(phrase)
        if not phrases:
            return [query]
        logger.info("decomposed enquiry into %s phrase(s): %s", len(phrases[:MAX_PHRASES]), phrases[:MAX_PHRASES])
        return phrases[:MAX_PHRASES]
