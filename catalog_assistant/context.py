"""Assemble the prompt context from search results, catalog stats and history."""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Mapping, Sequence
from urllib.parse import quote

from .config import settings
from .models import ConversationTurn, DatasheetReference, SearchResult
from .prompts import NO_RESULTS_CONTEXT

OVERVIEW_RESULT_THRESHOLD = 3
HISTORY_TURNS = 10
HISTORY_TURN_CHARS = 500


def datasheet_url(filename: str, base_url: str | None = None) -> str:
    base = settings.datasheet_base_url if base_url is None else base_url
    if not base:
        return quote(filename)
    return f"{base.rstrip('/')}/{quote(filename)}"


def to_datasheet_reference(result: SearchResult, base_url: str | None = None) -> DatasheetReference:
    filename = result.datasheet_filename
    display = f"{result.productCode} — {result.name}" if result.name else result.productCode
    return DatasheetReference(
        filename=filename,
        productCode=result.productCode,
        displayName=display,
        url=datasheet_url(filename, base_url),
    )


def _flatten_specs(specs: Mapping[str, Any]) -> Iterable[str]:
    for key, value in specs.items():
        if value is None or value == "":
            continue
        if isinstance(value, (dict, list)):
            yield f"{key}: {json.dumps(value, ensure_ascii=False)}"
        else:
            yield f"{key}: {value}"


def format_product(result: SearchResult, base_url: str | None = None) -> str:
    lines = [
        f"Product Code: {result.productCode}",
        f"Name: {result.name}",
        f"Category: {result.category}",
    ]
    specs = list(_flatten_specs(result.specifications))
    if specs:
        lines.append("Specifications:")
        lines.extend(f"  {spec}" for spec in specs)
    if result.applications:
        lines.append(f"Applications: {result.applications}")
    if result.description:
        lines.append(f"Description: {result.description}")
    lines.append(f"Datasheet URL: {datasheet_url(result.datasheet_filename, base_url)}")
    return "\n".join(lines)


def build_context(results: Sequence[SearchResult], base_url: str | None = None) -> str:
    if not results:
        return NO_RESULTS_CONTEXT
    return "\n\n".join(format_product(result, base_url) for result in results)


def needs_overview(results: Sequence[SearchResult], meta_query: bool) -> bool:
    return meta_query or len(results) < OVERVIEW_RESULT_THRESHOLD


def build_kb_overview(stats: Dict[str, Any]) -> str:
    categories = stats.get("categories") or []
    samples = stats.get("sampleProducts") or []
    lines = [
        "KNOWLEDGE BASE OVERVIEW:",
        f"Total products in catalog: {stats.get('totalProducts', 0)}",
        f"Categories: {', '.join(categories) if categories else 'unknown'}",
    ]
    if samples:
        lines.append(f"Example product codes: {', '.join(samples)}")
    return "\n".join(lines)


def build_conversation_context(history: Sequence[ConversationTurn]) -> str:
    if not history:
        return ""
    lines = []
    for turn in history[-HISTORY_TURNS:]:
        content = turn.content
        if len(content) > HISTORY_TURN_CHARS:
            content = content[:HISTORY_TURN_CHARS] + "..."
        lines.append(f"{turn.role.upper()}: {content}")
    return "CONVERSATION CONTEXT:\n" + "\n".join(lines)


def assemble(results: Sequence[SearchResult], overview: str = "", base_url: str | None = None) -> str:
    sections = [overview, "PRODUCT KNOWLEDGE BASE:\n" + build_context(results, base_url)]
    return "\n\n".join(section for section in sections if section)
