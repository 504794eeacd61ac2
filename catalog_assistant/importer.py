"""Catalog importer: load products from JSON, embed them and bulk-index."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Iterable

from elasticsearch import Elasticsearch, helpers

from .config import settings
from .embeddings import Embedder
from .indexing import drop_index, ensure_index

logger = logging.getLogger(__name__)

EMBED_BATCH_SIZE = 50


def _load_catalog(path: Path) -> list[dict]:
    if not path.exists():
        logger.warning("Catalog file %s is missing", path)
        return []
    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("products", [])
    return [item for item in data if isinstance(item, dict)]


def flatten_specifications(specs: Any, prefix: str = "") -> list[str]:
    """Turn nested specification values into ``key: value`` lines."""
    if isinstance(specs, dict):
        lines = []
        for key, value in specs.items():
            label = f"{prefix} {key}".strip()
            lines.extend(flatten_specifications(value, label))
        return lines
    if isinstance(specs, list):
        return [f"{prefix}: {', '.join(str(item) for item in specs)}"] if specs else []
    if specs is None or specs == "":
        return []
    return [f"{prefix}: {specs}"]


def _prepare_product(raw: dict) -> dict:
    product_code = raw.get("product_code") or raw.get("productCode") or raw.get("code") or ""
    specifications = raw.get("specifications") if isinstance(raw.get("specifications"), dict) else {}
    product = {
        "id": str(raw.get("id") or product_code),
        "product_code": product_code,
        "name": raw.get("name") or raw.get("title") or "",
        "category": raw.get("category") or "",
        "description": raw.get("description") or "",
        "applications": raw.get("applications") or "",
        "specifications": specifications,
        "spec_text": "\n".join(flatten_specifications(specifications)),
    }
    for field in ("pdf_storage_url", "datasheet_filename"):
        if raw.get(field):
            product[field] = raw[field]
    return product


def embedding_text(product: dict) -> str:
    parts = (
        product["product_code"],
        product["name"],
        product["category"],
        product["description"],
        product["applications"],
        product["spec_text"],
    )
    return "\n".join(part for part in parts if part)


async def _attach_embeddings(products: list[dict], embedder: Embedder) -> None:
    for start in range(0, len(products), EMBED_BATCH_SIZE):
        batch = products[start : start + EMBED_BATCH_SIZE]
        vectors = await embedder.embed_documents([embedding_text(product) for product in batch])
        for product, vector in zip(batch, vectors):
            product["embedding"] = vector
        logger.info("Embedded %s/%s products", start + len(batch), len(products))


def _iter_actions(index: str, products: Iterable[dict]) -> Iterable[dict]:
    for product in products:
        yield {
            "_index": index,
            "_id": product["id"],
            "_source": product,
        }


async def import_catalog(es: Elasticsearch, path: Path | None = None, embedder: Embedder | None = None) -> int:
    """Index every product in the catalog file; returns the number indexed."""
    catalog = _load_catalog(path or Path(settings.catalog_path))
    products = [_prepare_product(item) for item in catalog]
    products = [product for product in products if product["id"]]
    if not products:
        return 0
    await ensure_index(es)
    await _attach_embeddings(products, embedder or Embedder())
    actions = list(_iter_actions(settings.es_index, products))
    await asyncio.to_thread(helpers.bulk, es, actions)
    logger.info("Indexed %s products into %s", len(actions), settings.es_index)
    return len(actions)


async def reindex_catalog(es: Elasticsearch, path: Path | None = None) -> int:
    await drop_index(es)
    return await import_catalog(es, path)
