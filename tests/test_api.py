"""HTTP surface exercised through FastAPI's TestClient."""

import asyncio
import base64
import dataclasses
import json

import pytest
from fastapi.testclient import TestClient

from catalog_assistant import main
from catalog_assistant.cache import InMemoryCache
from catalog_assistant.chat import ChatPipeline
from catalog_assistant.completion import CompletionClient
from catalog_assistant.preprocess import QueryPreprocessor
from catalog_assistant.search import HybridSearchEngine
from catalog_assistant.speech import SpeechClient
from catalog_assistant.stats import CatalogStats

from conftest import FakeEmbedder, FakeStore, fake_genai


def _events(body):
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


@pytest.fixture
def api(monkeypatch, catalog, test_settings):
    genai, _ = fake_genai(chunks=["Our **FH100** ", "fits one hose."])
    store = FakeStore(catalog)
    engine = HybridSearchEngine(store, FakeEmbedder(), test_settings)
    stats = CatalogStats(store, InMemoryCache(), test_settings)
    pipeline = ChatPipeline(
        engine, QueryPreprocessor(genai, test_settings), CompletionClient(genai, test_settings), stats, test_settings
    )
    monkeypatch.setattr(main, "settings", dataclasses.replace(test_settings, app_password="open-sesame"))
    monkeypatch.setattr(main, "get_pipeline", lambda: pipeline)
    monkeypatch.setattr(main, "get_engine", lambda: engine)
    monkeypatch.setattr(main, "get_stats", lambda: stats)
    return TestClient(main.app)


def test_blank_query_is_rejected(api):
    """Blank queries fail with 400 before any stream starts."""

    assert api.post("/api/chat/stream", json={"query": "   "}).status_code == 400
    assert api.post("/api/chat/stream", json={}).status_code == 400
    assert api.post("/api/search", json={"query": ""}).status_code == 400


def test_chat_stream_emits_sse_events(api):
    response = api.post("/api/chat/stream", json={"query": "single fire hose cabinet", "history": []})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = _events(response.text)
    assert events[0]["type"] == "status"
    assert events[-1]["type"] == "done"
    assert events[-1]["text"] == "Our **FH100** fits one hose."
    assert [sheet["productCode"] for sheet in events[-1]["datasheets"]] == ["FH100"]


def test_chat_returns_referenced_datasheets(api):
    response = api.post("/api/chat", json={"query": "single fire hose cabinet"})

    assert response.status_code == 200
    body = response.json()
    assert body["text"] == "Our **FH100** fits one hose."
    assert body["referencedDatasheets"][0]["filename"] == "FH100.pdf"


def test_search_returns_tagged_results(api):
    response = api.post("/api/search", json={"query": "JB02HR", "matchCount": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["query"] == "JB02HR"
    assert body["results"][0]["productCode"] == "JB02HR"
    assert body["results"][0]["matchType"] == "keyword"
    assert body["results"][0]["similarity"] == 2.0


def test_stats_with_category_matches(api):
    response = api.get("/api/stats", params={"category": "hose"})

    body = response.json()
    assert body["totalProducts"] == 5
    assert body["categoryMatches"] == [{"keyword": "hose", "count": 3, "products": ["FH100", "FH200", "FH300"]}]
    assert "categoryMatches" not in api.get("/api/stats").json()


def test_verify_password(api):
    assert api.post("/api/verify-password", json={"password": "open-sesame"}).json() == {"valid": True}
    assert api.post("/api/verify-password", json={"password": "nope"}).json() == {"valid": False}


def test_public_config_exposes_datasheet_base(api):
    body = api.get("/api/config").json()

    assert body["DATASHEET_BASE_URL"] == "https://files.example.com/datasheets"
    assert "GEMINI_API_KEY" not in body


def test_unconfigured_service_reports_errors(api, monkeypatch, test_settings):
    monkeypatch.setattr(main, "settings", dataclasses.replace(test_settings, gemini_api_key="", es_host=""))

    stream = api.post("/api/chat/stream", json={"query": "hello there"})
    assert _events(stream.text)[-1]["type"] == "error"
    assert api.post("/api/chat", json={"query": "hello there"}).status_code == 503
    assert api.post("/api/search", json={"query": "hose"}).status_code == 503
    assert api.get("/health").json()["status"] == "degraded"


def test_deadline_sends_heartbeats_then_error():
    """A stalled pipeline gets keep-alives and then a terminal error."""

    async def stalled():
        yield {"type": "status", "message": "working"}
        await asyncio.sleep(5)
        yield {"type": "done", "text": "late", "datasheets": []}

    async def run():
        return [frame async for frame in main.stream_with_deadline(stalled(), deadline=0.3, heartbeat=0.1)]

    frames = asyncio.run(run())

    assert json.loads(frames[0][len("data: "):])["type"] == "status"
    assert main.KEEPALIVE in frames
    assert json.loads(frames[-1][len("data: "):])["type"] == "error"
    assert not any('"done"' in frame for frame in frames)


def test_speech_returns_base64_audio(api, monkeypatch, test_settings):
    """Text is read aloud with the configured prebuilt voice."""

    audio = b"\x00\x01pcm-audio"
    genai, models = fake_genai(audio=audio)
    monkeypatch.setattr(main, "get_speech", lambda: SpeechClient(genai, test_settings))

    response = api.post("/api/speech", json={"text": "The FH100 suits a single hose."})

    assert response.status_code == 200
    assert base64.b64decode(response.json()["audio"]) == audio
    assert models.prompts == ["Recommendation: The FH100 suits a single hose."]
    voice = models.configs[0].speech_config.voice_config.prebuilt_voice_config
    assert voice.voice_name == "Kore"


def test_speech_rejects_blank_text_and_reports_failures(api, monkeypatch, test_settings):
    genai, _ = fake_genai(generate_error=RuntimeError("quota"))
    monkeypatch.setattr(main, "get_speech", lambda: SpeechClient(genai, test_settings))

    assert api.post("/api/speech", json={"text": "  "}).status_code == 400
    assert api.post("/api/speech", json={"text": "hello"}).status_code == 502


def test_speech_without_audio_is_an_error(api, monkeypatch, test_settings):
    genai, _ = fake_genai(text="no audio here")
    monkeypatch.setattr(main, "get_speech", lambda: SpeechClient(genai, test_settings))

    assert api.post("/api/speech", json={"text": "hello"}).status_code == 502
