"""Pydantic models for catalog records and request/response payloads."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class MatchType(str, Enum):
    KEYWORD = "keyword"
    FUZZY = "fuzzy"
    VECTOR = "vector"
    SPEC_FILTER = "spec-filter"
    CATEGORY = "category"
    FEATURE_FILTER = "feature-filter"
    HISTORY_CARRYOVER = "history-carryover"


class ProductRecord(BaseModel):
    id: str
    productCode: str = ""
    name: str = ""
    category: str = ""
    specifications: dict[str, Any] = Field(default_factory=dict)
    description: str = ""
    applications: str = ""
    datasheetFilename: str = ""

    @property
    def datasheet_filename(self) -> str:
        return self.datasheetFilename or f"{self.productCode}.pdf"


class SearchResult(ProductRecord):
    similarity: float = 0.0
    matchType: MatchType = MatchType.VECTOR


class DatasheetReference(BaseModel):
    filename: str
    productCode: str
    displayName: str
    url: str


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str = ""
    timestamp: datetime | None = None


class AttachedFile(BaseModel):
    name: str
    content: str = ""


class ChatRequest(BaseModel):
    query: str = ""
    history: list[ConversationTurn] = Field(default_factory=list)
    files: list[AttachedFile] | None = None


class ChatResponse(BaseModel):
    text: str
    referencedDatasheets: list[DatasheetReference]


class SearchRequest(BaseModel):
    query: str = ""
    matchCount: int = Field(10, ge=1, le=50)


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResult]
    took_ms: float


class PasswordRequest(BaseModel):
    password: str = ""


class CategoryMatch(BaseModel):
    keyword: str
    count: int
    products: list[str]


class StatsResponse(BaseModel):
    totalProducts: int
    categories: list[str]
    sampleProducts: list[str]
    categoryMatches: list[CategoryMatch] | None = None


class SpeechRequest(BaseModel):
    text: str = ""


class SpeechResponse(BaseModel):
    audio: str
