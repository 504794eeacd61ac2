"""Read access to the product index in Elasticsearch.

The search engine only needs a handful of primitives: case-insensitive
"contains" over text columns, an ``IN`` filter on product codes, k-nearest
neighbour similarity search, a bounded scan, and a few aggregates for the
catalog overview. Each one is exposed as a coroutine that runs the blocking
client call in a worker thread.
"""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Any, Iterable, Sequence

from elasticsearch import Elasticsearch

from .config import settings
from .es_client import get_client
from .models import ProductRecord

logger = logging.getLogger(__name__)

# Logical column -> wildcard subfield used for case-insensitive contains.
CONTAINS_FIELDS = {
    "product_code": "product_code.wc",
    "name": "name.wc",
    "category": "category.wc",
    "description": "description.wc",
    "applications": "applications.wc",
    "spec_text": "spec_text.wc",
}
SOURCE_EXCLUDES = ["embedding", "spec_text"]


def _escape_wildcard(term: str) -> str:
    return term.replace("\\", "\\\\").replace("*", "\\*").replace("?", "\\?")


def _datasheet_filename(source: dict[str, Any]) -> str:
    filename = source.get("datasheet_filename") or ""
    if not filename and source.get("pdf_storage_url"):
        filename = PurePosixPath(str(source["pdf_storage_url"]).split("?")[0]).name
    return filename


def to_record(hit: dict[str, Any]) -> ProductRecord:
    source = hit.get("_source", {})
    specifications = source.get("specifications")
    return ProductRecord(
        id=str(hit.get("_id") or source.get("id") or source.get("product_code")),
        productCode=source.get("product_code") or "",
        name=source.get("name") or "",
        category=source.get("category") or "",
        specifications=specifications if isinstance(specifications, dict) else {},
        description=source.get("description") or "",
        applications=source.get("applications") or "",
        datasheetFilename=_datasheet_filename(source),
    )


class ProductStore:
    """Thin async facade over the products index."""

    def __init__(self, es: Elasticsearch | None = None, index: str | None = None) -> None:
        self._es = es
        self.index = index or settings.es_index

    @property
    def es(self) -> Elasticsearch:
        if self._es is None:
            self._es = get_client()
        return self._es

    async def _search(self, **kwargs: Any) -> dict[str, Any]:
        return await asyncio.to_thread(
            self.es.search, index=self.index, source_excludes=SOURCE_EXCLUDES, **kwargs
        )

    async def find_contains(
        self, terms: Iterable[str], fields: Sequence[str], size: int = 20
    ) -> list[ProductRecord]:
        """Records where any field contains any term, ignoring case."""
        terms = [term for term in terms if term]
        should = [
            {
                "wildcard": {
                    CONTAINS_FIELDS[field]: {
                        "value": f"*{_escape_wildcard(term)}*",
                        "case_insensitive": True,
                    }
                }
            }
            for term in terms
            for field in fields
        ]
        if not should:
            return []
        response = await self._search(
            query={"bool": {"should": should, "minimum_should_match": 1}},
            size=size,
        )
        hits = response.get("hits", {}).get("hits", [])
        logger.debug("contains terms=%s fields=%s hits=%s", terms, list(fields), len(hits))
        return [to_record(hit) for hit in hits]

    async def find_by_codes(self, codes: Iterable[str], size: int = 50) -> list[ProductRecord]:
        lowered = sorted({code.lower() for code in codes if code})
        if not lowered:
            return []
        response = await self._search(query={"terms": {"product_code": lowered}}, size=size)
        return [to_record(hit) for hit in response.get("hits", {}).get("hits", [])]

    async def similarity_search(self, vector: Sequence[float], k: int) -> list[tuple[ProductRecord, float]]:
        response = await self._search(
            knn={
                "field": "embedding",
                "query_vector": list(vector),
                "k": k,
                "num_candidates": max(100, k * 10),
            },
            size=k,
        )
        return [
            (to_record(hit), float(hit.get("_score") or 0.0))
            for hit in response.get("hits", {}).get("hits", [])
        ]

    async def scan(self, limit: int) -> list[ProductRecord]:
        response = await self._search(query={"match_all": {}}, size=limit)
        return [to_record(hit) for hit in response.get("hits", {}).get("hits", [])]

    async def count(self) -> int:
        response = await asyncio.to_thread(self.es.count, index=self.index)
        return int(response.get("count", 0))

    async def categories(self, size: int = 100) -> list[str]:
        response = await asyncio.to_thread(
            self.es.search,
            index=self.index,
            size=0,
            aggs={"categories": {"terms": {"field": "category.keyword", "size": size}}},
        )
        buckets = response.get("aggregations", {}).get("categories", {}).get("buckets", [])
        return sorted(bucket["key"] for bucket in buckets if bucket.get("key"))

    async def sample_codes(self, size: int = 10) -> list[str]:
        response = await asyncio.to_thread(
            self.es.search,
            index=self.index,
            size=size,
            source_includes=["product_code"],
            sort=[{"product_code": "asc"}],
        )
        return [
            hit["_source"]["product_code"]
            for hit in response.get("hits", {}).get("hits", [])
            if hit.get("_source", {}).get("product_code")
        ]


@lru_cache(maxsize=1)
def get_store() -> ProductStore:
    return ProductStore()
