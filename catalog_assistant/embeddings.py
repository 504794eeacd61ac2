"""Query embeddings via the Gemini embedding endpoint."""
from __future__ import annotations

import logging
from typing import Any, Sequence

from google.genai import types

from .config import settings
from .genai_client import get_client

logger = logging.getLogger(__name__)


class Embedder:
    """Turns text into a fixed-length vector.

    ``task_type`` distinguishes query embeddings from the document embeddings
    written by the importer; both share ``settings.embedding_dimensions``.
    """

    def __init__(self, client: Any | None = None, model: str | None = None, dimensions: int | None = None) -> None:
        self._client = client
        self.model = model or settings.embedding_model
        self.dimensions = dimensions or settings.embedding_dimensions

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_client()
        return self._client

    async def embed_query(self, text: str) -> list[float]:
        vectors = await self._embed([text], "RETRIEVAL_QUERY")
        return vectors[0]

    async def embed_documents(self, texts: Sequence[str]) -> list[list[float]]:
        return await self._embed(list(texts), "RETRIEVAL_DOCUMENT")

    async def _embed(self, texts: list[str], task_type: str) -> list[list[float]]:
        result = await self.client.aio.models.embed_content(
            model=self.model,
            contents=texts,
            config=types.EmbedContentConfig(output_dimensionality=self.dimensions, task_type=task_type),
        )
        vectors = [list(embedding.values or []) for embedding in result.embeddings or []]
        if len(vectors) != len(texts) or not all(vectors):
            raise ValueError(f"Embedding response had {len(vectors)} vectors for {len(texts)} inputs")
        logger.debug("embedded %s text(s) with %s dims", len(texts), len(vectors[0]))
        return vectors
