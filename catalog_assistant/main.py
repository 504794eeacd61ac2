"""FastAPI application exposing the chat, search and catalog endpoints."""
from __future__ import annotations

import asyncio
import hmac
import json
import logging
from time import perf_counter
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import StreamingResponse

from .chat import get_pipeline
from .completion import CompletionError
from .config import settings
from .es_client import get_client
from .models import (
    ChatRequest,
    ChatResponse,
    PasswordRequest,
    SearchRequest,
    SearchResponse,
    SpeechRequest,
    SpeechResponse,
    StatsResponse,
)
from .search import get_engine
from .speech import SpeechError, get_speech
from .stats import get_stats
from .utils import bounded

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

KEEPALIVE = ": keepalive\n\n"
SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
_END = object()

app = FastAPI(title="Catalog Sales Assistant")


def sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def _require_query(query: str) -> str:
    query = query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query must not be empty")
    return query


def _require_configured(*names: str) -> None:
    missing = [name for name in settings.missing() if not names or name in names]
    if missing:
        raise HTTPException(status_code=503, detail=f"Service is not configured: {', '.join(missing)}")


async def stream_with_deadline(
    events: AsyncIterator[Dict[str, Any]], deadline: float, heartbeat: float
) -> AsyncIterator[str]:
    """Relay pipeline events as SSE frames.

    A keep-alive comment is written whenever the pipeline is quiet for
    ``heartbeat`` seconds. Once ``deadline`` passes a terminal ``error`` event
    is sent and the pipeline task is cancelled.
    """
    queue: asyncio.Queue = asyncio.Queue()

    async def produce() -> None:
        try:
            async for event in events:
                await queue.put(event)
        except Exception as exc:
            logger.exception("chat pipeline failed")
            queue.put_nowait({"type": "error", "message": f"Something went wrong: {exc}"})
        finally:
            queue.put_nowait(_END)

    producer = asyncio.create_task(produce())
    loop = asyncio.get_running_loop()
    expires_at = loop.time() + deadline
    try:
        while True:
            remaining = expires_at - loop.time()
            if remaining <= 0:
                logger.warning("chat request exceeded %.0fs deadline", deadline)
                yield sse({"type": "error", "message": "The request took too long. Please try again."})
                return
            try:
                item = await asyncio.wait_for(queue.get(), timeout=min(heartbeat, remaining))
            except asyncio.TimeoutError:
                if expires_at - loop.time() > 0:
                    yield KEEPALIVE
                continue
            if item is _END:
                return
            yield sse(item)
            if item.get("type") in ("done", "error"):
                return
    finally:
        producer.cancel()


async def _error_stream(message: str) -> AsyncIterator[str]:
    yield sse({"type": "error", "message": message})


@app.on_event("startup")
async def startup_event() -> None:
    for name, value in (
        ("GEMINI_API_KEY", settings.gemini_api_key),
        ("ES_HOST", settings.es_host),
        ("REDIS_URL", settings.redis_url),
        ("DATASHEET_BASE_URL", settings.datasheet_base_url),
        ("APP_PASSWORD", settings.app_password),
    ):
        logger.info("%s: %s", name, "configured" if value else "MISSING")
    if settings.missing():
        logger.error("Chat is unavailable until configured: %s", ", ".join(settings.missing()))


@app.get("/health")
async def health() -> dict:
    store: Optional[str] = None
    if settings.es_host:
        outcome = await bounded(asyncio.to_thread(get_client().cluster.health), settings.db_timeout, "cluster health")
        store = outcome.value.get("status") if outcome.ok else "unreachable"
    return {
        "status": "ok" if not settings.missing() else "degraded",
        "elasticsearch": store or "not configured",
        "index": settings.es_index,
        "ai": "configured" if settings.gemini_api_key else "not configured",
    }


@app.post("/api/chat/stream")
async def chat_stream(request: ChatRequest) -> StreamingResponse:
    query = _require_query(request.query)
    missing = settings.missing()
    if missing:
        body = _error_stream(f"Service is not configured: {', '.join(missing)}")
    else:
        events = get_pipeline().events(request.model_copy(update={"query": query}))
        body = stream_with_deadline(events, settings.request_deadline, settings.heartbeat_interval)
    return StreamingResponse(body, media_type="text/event-stream", headers=SSE_HEADERS)


@app.post("/api/chat", response_model=ChatResponse)
async def chat(request: ChatRequest) -> ChatResponse:
    query = _require_query(request.query)
    _require_configured()
    try:
        return await asyncio.wait_for(
            get_pipeline().answer(request.model_copy(update={"query": query})), timeout=settings.request_deadline
        )
    except CompletionError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except asyncio.TimeoutError as exc:
        raise HTTPException(status_code=504, detail="The request took too long") from exc


@app.post("/api/search", response_model=SearchResponse)
async def search(request: SearchRequest) -> SearchResponse:
    query = _require_query(request.query)
    _require_configured("ES_HOST")
    t0 = perf_counter()
    results = await get_engine().search_products(query, request.matchCount)
    return SearchResponse(query=query, results=results, took_ms=(perf_counter() - t0) * 1000)


@app.get("/api/stats", response_model=StatsResponse, response_model_exclude_none=True)
async def stats(category: Optional[str] = Query(None, description="Comma-separated category keywords")) -> StatsResponse:
    _require_configured("ES_HOST")
    service = get_stats()
    payload = await service.get()
    response = StatsResponse(**payload)
    if category:
        keywords = [keyword.strip() for keyword in category.split(",") if keyword.strip()]
        response.categoryMatches = [await service.category_matches(keyword) for keyword in keywords]
    return response


@app.post("/api/verify-password")
async def verify_password(request: PasswordRequest) -> dict:
    if not settings.app_password:
        logger.warning("password check requested but APP_PASSWORD is not set")
        return {"valid": False}
    valid = hmac.compare_digest(request.password.encode("utf-8"), settings.app_password.encode("utf-8"))
    return {"valid": valid}


@app.get("/api/config")
async def public_config() -> dict:
    return settings.public_config()


@app.post("/api/speech", response_model=SpeechResponse)
async def speech(request: SpeechRequest) -> SpeechResponse:
    text = request.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Text is required")
    _require_configured("GEMINI_API_KEY")
    try:
        audio = await get_speech().synthesize(text)
    except SpeechError as exc:
        logger.error("speech failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return SpeechResponse(audio=audio)
