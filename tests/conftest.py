"""In-memory stand-ins for Elasticsearch and Gemini used across the tests."""

import asyncio
import json
from types import SimpleNamespace

import pytest

from catalog_assistant.config import Settings
from catalog_assistant.models import ProductRecord

FIELD_ATTRS = {
    "product_code": "productCode",
    "name": "name",
    "category": "category",
    "description": "description",
    "applications": "applications",
}


def make_record(code, name="", category="", description="", applications="", specifications=None):
    return ProductRecord(
        id=code.lower(),
        productCode=code,
        name=name,
        category=category,
        description=description,
        applications=applications,
        specifications=specifications or {},
    )


class FakeStore:
    """Implements the store primitives over a list of records."""

    def __init__(self, records, vector_hits=None, vector_delay=0.0, fail=()):
        self.records = list(records)
        self.vector_hits = list(vector_hits or [])
        self.vector_delay = vector_delay
        self.fail = set(fail)
        self.calls = []

    def _check(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    def _field_text(self, record, field):
        if field == "spec_text":
            return json.dumps(record.specifications)
        return getattr(record, FIELD_ATTRS[field])

    async def find_contains(self, terms, fields, size=20):
        self._check("find_contains")
        terms = [term.lower() for term in terms if term]
        hits = [
            record
            for record in self.records
            if any(term in self._field_text(record, field).lower() for term in terms for field in fields)
        ]
        return hits[:size]

    async def find_by_codes(self, codes, size=50):
        self._check("find_by_codes")
        wanted = {code.lower() for code in codes}
        return [record for record in self.records if record.productCode.lower() in wanted][:size]

    async def similarity_search(self, vector, k):
        self._check("similarity_search")
        if self.vector_delay:
            await asyncio.sleep(self.vector_delay)
        return self.vector_hits[:k]

    async def scan(self, limit):
        self._check("scan")
        return self.records[:limit]

    async def count(self):
        self._check("count")
        return len(self.records)

    async def categories(self, size=100):
        self._check("categories")
        return sorted({record.category for record in self.records if record.category})[:size]

    async def sample_codes(self, size=10):
        self._check("sample_codes")
        return sorted(record.productCode for record in self.records)[:size]


class FakeEmbedder:
    def __init__(self, delay=0.0, error=None):
        self.delay = delay
        self.error = error
        self.calls = 0

    async def embed_query(self, text):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return [0.1, 0.2, 0.3]

    async def embed_documents(self, texts):
        return [[0.1, 0.2, 0.3] for _ in texts]


class FakeStream:
    def __init__(self, chunks, error=None):
        self.chunks = list(chunks)
        self.error = error

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield SimpleNamespace(text=chunk)
        if self.error:
            raise self.error


class FakeModels:
    """Mimics ``client.aio.models`` from google-genai."""

    def __init__(
        self, text="", chunks=(), stream_error=None, open_error=None, generate_error=None, audio=None, delay=0.0
    ):
        self.text = text
        self.chunks = chunks
        self.stream_error = stream_error
        self.open_error = open_error
        self.generate_error = generate_error
        self.audio = audio
        self.delay = delay
        self.prompts = []
        self.configs = []
        self.stream_kwargs = None

    async def generate_content(self, model, contents, config=None):
        self.prompts.append(contents)
        self.configs.append(config)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.generate_error:
            raise self.generate_error
        candidates = []
        if self.audio is not None:
            part = SimpleNamespace(inline_data=SimpleNamespace(data=self.audio, mime_type="audio/L16;rate=24000"))
            candidates.append(SimpleNamespace(content=SimpleNamespace(parts=[part])))
        return SimpleNamespace(text=self.text, candidates=candidates)

    async def generate_content_stream(self, model, contents, config=None):
        self.stream_kwargs = {"model": model, "contents": contents, "config": config}
        if self.open_error:
            raise self.open_error
        return FakeStream(self.chunks, self.stream_error)


def fake_genai(**kwargs):
    models = FakeModels(**kwargs)
    return SimpleNamespace(aio=SimpleNamespace(models=models)), models


@pytest.fixture
def test_settings():
    return Settings(
        db_timeout=1.0,
        embed_timeout=0.2,
        expansion_timeout=0.5,
        decompose_timeout=0.5,
        completion_timeout=0.5,
        gemini_api_key="test-key",
        es_host="http://es.test:9200",
        datasheet_base_url="https://files.example.com/datasheets",
    )


@pytest.fixture
def catalog():
    return [
        make_record(
            "JB02HR",
            name="Junction box enclosure",
            category="Electrical",
            description="GRP enclosure with hinged door",
            specifications={"Material": "GRP", "IP Rating": "IP 56"},
        ),
        make_record("FH100", name="Fire hose cabinet single", category="Fire Hose", description="Holds one fire hose"),
        make_record("FH200", name="Twin hose cabinet", category="Fire Hose", description="Two hose reels"),
        make_record("FH300", name="Hose reel chest", category="Fire Hose", description="Hose chest with lock"),
        make_record(
            "LJ10",
            name="Lifejacket chest",
            category="Life Jacket",
            description="Stores 10 lifejackets",
            specifications={"Material": "Stainless steel hinges"},
        ),
    ]
