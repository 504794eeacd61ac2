"""End-to-end chat pipeline: preprocess, search, assemble context, stream, cite."""
from __future__ import annotations

import logging
from functools import lru_cache
from time import perf_counter
from typing import Any, AsyncIterator, Dict

from .citations import filter_datasheets_by_citations
from .completion import CompletionClient, CompletionError
from .config import Settings, settings
from .context import assemble, build_kb_overview, needs_overview, to_datasheet_reference
from .heuristics import is_meta_query
from .models import ChatRequest, ChatResponse, DatasheetReference, SearchResult
from .preprocess import QueryPreprocessor
from .search import HybridSearchEngine, get_engine
from .stats import CatalogStats, get_stats

logger = logging.getLogger(__name__)

Event = Dict[str, Any]


def status(message: str) -> Event:
    return {"type": "status", "message": message}


def candidate_datasheets(results: list[SearchResult], base_url: str | None = None) -> list[DatasheetReference]:
    seen: set[str] = set()
    datasheets = []
    for result in results:
        if not result.productCode or result.productCode in seen:
            continue
        seen.add(result.productCode)
        datasheets.append(to_datasheet_reference(result, base_url))
    return datasheets


class ChatPipeline:
    def __init__(
        self,
        engine: HybridSearchEngine,
        preprocessor: QueryPreprocessor,
        completion: CompletionClient,
        stats: CatalogStats,
        config: Settings = settings,
    ) -> None:
        self.engine = engine
        self.preprocessor = preprocessor
        self.completion = completion
        self.stats = stats
        self.config = config

    async def events(self, request: ChatRequest) -> AsyncIterator[Event]:
        """Yield ``status``, ``chunk``, and finally ``done`` or ``error`` events."""
        query = request.query.strip()
        history = request.history
        t0 = perf_counter()

        yield status("Understanding your question...")
        phrases = await self.preprocessor.decompose_enquiry(query)
        if len(phrases) == 1:
            phrases = [await self.preprocessor.expand_query(query, history)]

        yield status("Searching the catalog...")
        results = await self.engine.search_enquiry(phrases, history=history)
        overview = ""
        if needs_overview(results, is_meta_query(query)):
            overview = build_kb_overview(await self.stats.get())
        base_url = self.config.datasheet_base_url
        context = assemble(results, overview, base_url)
        candidates = candidate_datasheets(results, base_url)
        t1 = perf_counter()

        yield status(f"Found {len(results)} matching products, writing answer...")
        parts: list[str] = []
        try:
            async for delta in self.completion.stream(query, context, history, request.files):
                parts.append(delta)
                yield {"type": "chunk", "text": delta}
        except CompletionError as exc:
            logger.error("completion failed: %s", exc)
            yield {"type": "error", "message": str(exc)}
            return

        text = "".join(parts)
        datasheets = filter_datasheets_by_citations(text, candidates)
        logger.info(
            "chat phrases=%s results=%s datasheets=%s/%s retrieval=%.1fms total=%.1fms",
            len(phrases),
            len(results),
            len(datasheets),
            len(candidates),
            (t1 - t0) * 1000,
            (perf_counter() - t0) * 1000,
        )
        yield {"type": "done", "text": text, "datasheets": [sheet.model_dump() for sheet in datasheets]}

    async def answer(self, request: ChatRequest) -> ChatResponse:
        """Run the pipeline to completion and return the final answer."""
        async for event in self.events(request):
            if event["type"] == "error":
                raise CompletionError(event["message"])
            if event["type"] == "done":
                return ChatResponse(text=event["text"], referencedDatasheets=event["datasheets"])
        raise CompletionError("no answer was produced")


@lru_cache(maxsize=1)
def get_pipeline() -> ChatPipeline:
    return ChatPipeline(get_engine(), QueryPreprocessor(), CompletionClient(), get_stats())
