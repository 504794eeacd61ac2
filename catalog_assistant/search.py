"""Hybrid product search: keyword, fuzzy and vector strategies fused by id.

Flow for one query:

    1. Run the three primary strategies concurrently. Each is bounded by its
       own timeout and contributes an empty batch when it fails.
    2. Merge batches by record id. A record keeps its first-seen position; a
       later sighting with a higher similarity replaces the similarity and
       match type. Sort (stable) by similarity and cut to ``match_count``.
    3. Apply supplemental passes in order (spec value, category, feature,
       history carry-over). Each is triggered by the query text, adds records
       under the same id rule, and widens the result bound.

The engine never raises for upstream failures; the worst case is ``[]``.
"""
from __future__ import annotations

import asyncio
import json
import logging
from functools import lru_cache
from time import perf_counter
from typing import Iterable, Protocol, Sequence

from .config import Settings, settings
from .embeddings import Embedder
from .heuristics import (
    detect_categories,
    detect_features,
    detect_spec_tokens,
    extract_product_codes,
    fuzzy_terms,
    spec_text_matches,
)
from .models import ConversationTurn, MatchType, ProductRecord, SearchResult
from .store import get_store
from .utils import bounded, normalize_code

logger = logging.getLogger(__name__)

KEYWORD_FIELDS = ("product_code", "name")
FUZZY_FIELDS = ("name", "category", "description", "applications")
CATEGORY_FIELDS = ("name", "category", "description")
FEATURE_FIELDS = ("description", "applications", "spec_text")


class Store(Protocol):
    async def find_contains(self, terms: Iterable[str], fields: Sequence[str], size: int = 20) -> list[ProductRecord]: ...

    async def find_by_codes(self, codes: Iterable[str], size: int = 50) -> list[ProductRecord]: ...

    async def similarity_search(self, vector: Sequence[float], k: int) -> list[tuple[ProductRecord, float]]: ...

    async def scan(self, limit: int) -> list[ProductRecord]: ...


class QueryEmbedder(Protocol):
    async def embed_query(self, text: str) -> list[float]: ...


def tag(record: ProductRecord, similarity: float, match_type: MatchType) -> SearchResult:
    data = record.model_dump(exclude={"similarity", "matchType"})
    return SearchResult(**data, similarity=similarity, matchType=match_type)


def merge_into(merged: dict[str, SearchResult], batch: Iterable[SearchResult]) -> dict[str, SearchResult]:
    """Fold ``batch`` into ``merged`` keyed by id; the higher similarity wins."""
    for result in batch:
        existing = merged.get(result.id)
        if existing is None:
            merged[result.id] = result
        elif result.similarity > existing.similarity:
            merged[result.id] = existing.model_copy(
                update={"similarity": result.similarity, "matchType": result.matchType}
            )
    return merged


def rank(results: Iterable[SearchResult], limit: int) -> list[SearchResult]:
    # sorted() is stable, so equal similarities keep first-seen order
    return sorted(results, key=lambda result: result.similarity, reverse=True)[:limit]


def searchable_text(record: ProductRecord) -> str:
    specs = json.dumps(record.specifications, ensure_ascii=False, default=str)
    return " ".join((specs, record.description, record.applications))


class HybridSearchEngine:
    def __init__(self, store: Store, embedder: QueryEmbedder, config: Settings = settings) -> None:
        self.store = store
        self.embedder = embedder
        self.config = config

    # ------------------------------------------------------------------
    # primary strategies
    # ------------------------------------------------------------------

    async def keyword_strategy(self, query: str, limit: int) -> list[SearchResult]:
        codes = extract_product_codes(query)
        if not codes:
            return []
        outcome = await bounded(
            self.store.find_contains(codes, KEYWORD_FIELDS, size=max(limit, len(codes) * 5)),
            self.config.db_timeout,
            "keyword search",
        )
        return [tag(record, self.config.keyword_weight, MatchType.KEYWORD) for record in outcome.value_or([])]

    async def fuzzy_strategy(self, query: str, limit: int) -> list[SearchResult]:
        terms = fuzzy_terms(query)
        if not terms:
            return []
        outcome = await bounded(
            self.store.find_contains(terms, FUZZY_FIELDS, size=max(limit, 20)),
            self.config.db_timeout,
            "fuzzy search",
        )
        return [tag(record, self.config.fuzzy_weight, MatchType.FUZZY) for record in outcome.value_or([])]

    async def vector_strategy(self, query: str, limit: int) -> list[SearchResult]:
        embedding = await bounded(self.embedder.embed_query(query), self.config.embed_timeout, "query embedding")
        if not embedding.ok:
            return []
        outcome = await bounded(
            self.store.similarity_search(embedding.value, limit),
            self.config.db_timeout,
            "vector search",
        )
        return [tag(record, score, MatchType.VECTOR) for record, score in outcome.value_or([])]

    # ------------------------------------------------------------------
    # supplemental passes
    # ------------------------------------------------------------------

    def _absorb(
        self,
        results: list[SearchResult],
        records: Iterable[ProductRecord],
        similarity: float,
        match_type: MatchType,
        bound: int,
    ) -> list[SearchResult]:
        merged = {result.id: result for result in results}
        merge_into(merged, (tag(record, similarity, match_type) for record in records))
        return rank(merged.values(), bound)

    async def spec_pass(self, query: str, results: list[SearchResult], bound: int) -> tuple[list[SearchResult], int]:
        tokens = detect_spec_tokens(query)
        if not tokens:
            return results, bound
        outcome = await bounded(self.store.scan(self.config.spec_scan_limit), self.config.db_timeout, "spec filter")
        if not outcome.ok:
            return results, bound
        # any token qualifies; records matching more tokens come first
        scored = []
        for record in outcome.value:
            text = searchable_text(record)
            hits = sum(1 for token in tokens if spec_text_matches(text, token))
            if hits:
                scored.append((hits, record))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        matches = [record for _, record in scored]
        logger.debug("spec filter tokens=%s matches=%s", tokens, len(matches))
        bound = max(bound, self.config.spec_bound)
        return self._absorb(results, matches, self.config.spec_weight, MatchType.SPEC_FILTER, bound), bound

    async def category_pass(self, query: str, results: list[SearchResult], bound: int) -> tuple[list[SearchResult], int]:
        categories = detect_categories(query)
        if not categories:
            return results, bound
        terms = [term for entry in categories for term in entry.terms]
        outcome = await bounded(
            self.store.find_contains(terms, CATEGORY_FIELDS, size=self.config.browse_fetch_limit),
            self.config.db_timeout,
            "category filter",
        )
        if not outcome.ok:
            return results, bound
        logger.debug("category filter %s matches=%s", [entry.name for entry in categories], len(outcome.value))
        bound = max(bound, self.config.category_bound)
        return self._absorb(results, outcome.value, self.config.category_weight, MatchType.CATEGORY, bound), bound

    async def feature_pass(self, query: str, results: list[SearchResult], bound: int) -> tuple[list[SearchResult], int]:
        features = detect_features(query)
        if not features:
            return results, bound
        terms = [term for entry in features for term in entry.terms]
        outcome = await bounded(
            self.store.find_contains(terms, FEATURE_FIELDS, size=self.config.browse_fetch_limit),
            self.config.db_timeout,
            "feature filter",
        )
        if not outcome.ok:
            return results, bound
        logger.debug("feature filter %s matches=%s", [entry.name for entry in features], len(outcome.value))
        bound = max(bound, self.config.feature_bound)
        return self._absorb(results, outcome.value, self.config.feature_weight, MatchType.FEATURE_FILTER, bound), bound

    async def history_pass(
        self, history: Sequence[ConversationTurn], results: list[SearchResult], bound: int
    ) -> tuple[list[SearchResult], int]:
        present = {normalize_code(result.productCode) for result in results}
        codes: list[str] = []
        for turn in history:
            for code in extract_product_codes(turn.content):
                if code not in present and code not in codes:
                    codes.append(code)
        if not codes:
            return results, bound
        outcome = await bounded(self.store.find_by_codes(codes), self.config.db_timeout, "history carry-over")
        if not outcome.ok:
            return results, bound
        known = {result.id for result in results}
        carried = [record for record in outcome.value if record.id not in known]
        logger.debug("history carry-over codes=%s carried=%s", codes, len(carried))
        bound = bound + len(carried)
        return self._absorb(results, carried, self.config.history_weight, MatchType.HISTORY_CARRYOVER, bound), bound

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    async def search_products(
        self,
        query: str,
        match_count: int | None = None,
        history: Sequence[ConversationTurn] | None = None,
    ) -> list[SearchResult]:
        limit = match_count or self.config.match_count
        t0 = perf_counter()
        keyword, fuzzy, vector = await asyncio.gather(
            self.keyword_strategy(query, limit),
            self.fuzzy_strategy(query, limit),
            self.vector_strategy(query, limit),
        )
        merged: dict[str, SearchResult] = {}
        for batch in (keyword, fuzzy, vector):
            merge_into(merged, batch)
        results = rank(merged.values(), limit)
        t1 = perf_counter()

        bound = limit
        results, bound = await self.spec_pass(query, results, bound)
        results, bound = await self.category_pass(query, results, bound)
        results, bound = await self.feature_pass(query, results, bound)
        if history:
            results, bound = await self.history_pass(history, results, bound)
        t2 = perf_counter()

        logger.info(
            "search q=%r keyword=%s fuzzy=%s vector=%s final=%s primary=%.1fms passes=%.1fms",
            query,
            len(keyword),
            len(fuzzy),
            len(vector),
            len(results),
            (t1 - t0) * 1000,
            (t2 - t1) * 1000,
        )
        return results

    async def search_enquiry(
        self,
        phrases: Sequence[str],
        match_count: int | None = None,
        history: Sequence[ConversationTurn] | None = None,
    ) -> list[SearchResult]:
        """Search every decomposed phrase concurrently and fuse the results."""
        if len(phrases) <= 1:
            return await self.search_products(phrases[0] if phrases else "", match_count, history)
        limit = match_count or self.config.match_count
        batches = await asyncio.gather(*(self.search_products(phrase, limit, history) for phrase in phrases))
        merged: dict[str, SearchResult] = {}
        for batch in batches:
            merge_into(merged, batch)
        bound = max(max(len(batch) for batch in batches), limit * len(phrases))
        return rank(merged.values(), bound)


@lru_cache(maxsize=1)
def get_engine() -> HybridSearchEngine:
    return HybridSearchEngine(get_store(), Embedder())
