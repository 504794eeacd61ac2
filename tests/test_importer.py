"""Catalog ingestion helpers."""

import asyncio
import dataclasses
import json
from pathlib import Path
from types import SimpleNamespace

from catalog_assistant import importer, indexing
from catalog_assistant.config import settings

MAPPING = Path(__file__).resolve().parent.parent / "product-mapping.json"


def test_flatten_specifications_handles_nesting():
    lines = importer.flatten_specifications(
        {"IP Rating": "IP56", "Dimensions": {"Height": "800 mm", "Width": ""}, "Colours": ["red", "yellow"]}
    )

    assert lines == ["IP Rating: IP56", "Dimensions Height: 800 mm", "Colours: red, yellow"]


def test_prepare_product_accepts_alternate_keys():
    product = importer._prepare_product(
        {"productCode": "FH100", "title": "Hose cabinet", "specifications": {"Material": "GRP"}}
    )

    assert product["id"] == "FH100"
    assert product["product_code"] == "FH100"
    assert product["name"] == "Hose cabinet"
    assert product["spec_text"] == "Material: GRP"
    assert "Material: GRP" in importer.embedding_text(product)


def test_load_catalog_accepts_wrapped_lists(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"products": [{"product_code": "LJ10"}, "junk"]}), encoding="utf-8")

    assert importer._load_catalog(path) == [{"product_code": "LJ10"}]
    assert importer._load_catalog(tmp_path / "missing.json") == []


def test_ensure_index_creates_from_mapping(monkeypatch):
    """The mapping file is sent once and the vector size follows settings."""

    created = {}

    def create(index, **body):
        created.update(body, index=index)

    es = SimpleNamespace(indices=SimpleNamespace(exists=lambda index: False, create=create))
    monkeypatch.setattr(
        indexing, "settings", dataclasses.replace(settings, mapping_path=str(MAPPING), embedding_dimensions=256)
    )

    assert asyncio.run(indexing.ensure_index(es)) is True
    assert created["index"] == settings.es_index
    assert created["mappings"]["properties"]["embedding"]["dims"] == 256
    assert created["settings"]["analysis"]["normalizer"]["lowercase_normalizer"]["type"] == "custom"


def test_ensure_index_skips_existing():
    es = SimpleNamespace(indices=SimpleNamespace(exists=lambda index: True))

    assert asyncio.run(indexing.ensure_index(es)) is False
