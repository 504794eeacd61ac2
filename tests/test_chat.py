"""End-to-end chat pipeline with fake search, model and store."""

import asyncio

import pytest

from catalog_assistant.cache import InMemoryCache
from catalog_assistant.chat import ChatPipeline
from catalog_assistant.completion import CompletionClient, CompletionError, build_prompt
from catalog_assistant.models import AttachedFile, ChatRequest
from catalog_assistant.preprocess import QueryPreprocessor
from catalog_assistant.prompts import CUT_SHORT_MARKER
from catalog_assistant.search import HybridSearchEngine
from catalog_assistant.stats import CatalogStats

from conftest import FakeEmbedder, FakeStore, fake_genai


def _pipeline(catalog, settings, **genai_kwargs):
    client, models = fake_genai(**genai_kwargs)
    store = FakeStore(catalog)
    pipeline = ChatPipeline(
        HybridSearchEngine(store, FakeEmbedder(), settings),
        QueryPreprocessor(client, settings),
        CompletionClient(client, settings),
        CatalogStats(store, InMemoryCache(), settings),
        settings,
    )
    return pipeline, models


def _collect(pipeline, query, **kwargs):
    async def run():
        return [event async for event in pipeline.events(ChatRequest(query=query, **kwargs))]

    return asyncio.run(run())


def test_stream_ends_with_cited_datasheets(catalog, test_settings):
    """Chunks arrive in order and only the cited datasheet is returned."""

    pipeline, _ = _pipeline(catalog, test_settings, chunks=["The **JB02HR** ", "is GRP."])
    events = _collect(pipeline, "JB02HR")

    types = [event["type"] for event in events]
    assert types[0] == "status"
    assert [event["text"] for event in events if event["type"] == "chunk"] == ["The **JB02HR** ", "is GRP."]
    done = events[-1]
    assert done["type"] == "done"
    assert done["text"] == "The **JB02HR** is GRP."
    assert [sheet["productCode"] for sheet in done["datasheets"]] == ["JB02HR"]
    assert done["datasheets"][0]["url"] == "https://files.example.com/datasheets/JB02HR.pdf"


def test_prompt_carries_context_and_overview(catalog, test_settings):
    pipeline, models = _pipeline(catalog, test_settings, chunks=["ok"])
    _collect(pipeline, "JB02HR")

    prompt = models.stream_kwargs["contents"]
    assert "Product Code: JB02HR" in prompt
    assert "KNOWLEDGE BASE OVERVIEW" in prompt
    assert prompt.rstrip().endswith("CUSTOMER QUESTION: JB02HR")
    assert models.stream_kwargs["config"].temperature == 0.0


def test_completion_failure_is_one_error_event(catalog, test_settings):
    pipeline, _ = _pipeline(catalog, test_settings, open_error=RuntimeError("503 overloaded"))
    events = _collect(pipeline, "JB02HR")

    assert events[-1]["type"] == "error"
    assert [event for event in events if event["type"] in ("chunk", "done")] == []


def test_interrupted_stream_is_marked(catalog, test_settings):
    pipeline, _ = _pipeline(catalog, test_settings, chunks=["Partial"], stream_error=ConnectionError("reset"))
    events = _collect(pipeline, "JB02HR")

    assert events[-1]["type"] == "done"
    assert events[-1]["text"] == "Partial" + CUT_SHORT_MARKER


def test_answer_collects_full_response(catalog, test_settings):
    pipeline, _ = _pipeline(catalog, test_settings, chunks=["Try the ", "**FH200**."])
    response = asyncio.run(pipeline.answer(ChatRequest(query="twin hose cabinet")))

    assert response.text == "Try the **FH200**."
    assert [sheet.productCode for sheet in response.referencedDatasheets] == ["FH200"]


def test_answer_raises_on_completion_failure(catalog, test_settings):
    pipeline, _ = _pipeline(catalog, test_settings, open_error=RuntimeError("down"))

    with pytest.raises(CompletionError):
        asyncio.run(pipeline.answer(ChatRequest(query="JB02HR")))


def test_attached_files_are_appended():
    prompt = build_prompt("compare", "CTX", files=[AttachedFile(name="spec.txt", content="needs IP66")])

    assert "ATTACHED FILES:" in prompt
    assert "--- spec.txt ---\nneeds IP66" in prompt
