"""Streaming answer generation with Gemini."""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Sequence

from google.genai import types

from .config import Settings, settings
from .context import build_conversation_context
from .genai_client import get_client
from .models import AttachedFile, ConversationTurn
from .prompts import CUT_SHORT_MARKER, SYSTEM_INSTRUCTION
from .utils import bounded

logger = logging.getLogger(__name__)

FILE_CONTENT_CHARS = 20000


class CompletionError(RuntimeError):
    """The completion call could not be started."""


def build_prompt(
    query: str,
    context: str,
    history: Sequence[ConversationTurn] | None = None,
    files: Sequence[AttachedFile] | None = None,
) -> str:
    sections = [context]
    conversation = build_conversation_context(history or [])
    if conversation:
        sections.append(conversation)
    if files:
        attached = []
        for item in files:
            content = item.content
            if len(content) > FILE_CONTENT_CHARS:
                content = content[:FILE_CONTENT_CHARS] + "\n[truncated]"
            attached.append(f"--- {item.name} ---\n{content}")
        sections.append("ATTACHED FILES:\n" + "\n\n".join(attached))
    sections.append(f"CUSTOMER QUESTION: {query}")
    return "\n\n".join(sections)


class CompletionClient:
    def __init__(self, client: Any | None = None, config: Settings = settings) -> None:
        self._client = client
        self.config = config

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_client()
        return self._client

    async def _open(self, prompt: str) -> AsyncIterator[Any]:
        return await self.client.aio.models.generate_content_stream(
            model=self.config.chat_model,
            contents=prompt,
            config=types.GenerateContentConfig(system_instruction=SYSTEM_INSTRUCTION, temperature=0.0),
        )

    async def stream(
        self,
        query: str,
        context: str,
        history: Sequence[ConversationTurn] | None = None,
        files: Sequence[AttachedFile] | None = None,
    ) -> AsyncIterator[str]:
        """Yield answer text fragments in generation order.

        Raises :class:`CompletionError` if the stream cannot be opened. A
        failure after the first fragment ends the stream with a visible
        cut-short marker instead.
        """
        prompt = build_prompt(query, context, history, files)
        opened = await bounded(self._open(prompt), self.config.completion_timeout, "completion")
        if not opened.ok:
            reason = "timed out" if opened.error is None else str(opened.error)
            raise CompletionError(f"AI service unavailable: {reason}")

        try:
            async for chunk in opened.value:
                text = getattr(chunk, "text", None)
                if text:
                    yield text
        except Exception as exc:
            logger.warning("completion stream interrupted: %s", exc)
            yield CUT_SHORT_MARKER
