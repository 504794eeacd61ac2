"""Utility helpers for bounded upstream calls and code normalization.

Every call to Elasticsearch or Gemini goes through :func:`bounded`, which races
the awaitable against a timer and reports what happened instead of raising.
Call sites pick their own fallback for each outcome.
"""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Outcome(str, Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass
class Bounded(Generic[T]):
    outcome: Outcome
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    def value_or(self, fallback: T) -> T:
        return self.value if self.outcome is Outcome.OK else fallback


async def bounded(awaitable: Awaitable[T], timeout: float, label: str) -> Bounded[T]:
    """Await ``awaitable`` for at most ``timeout`` seconds.

    A timed-out call is cancelled; work already handed to a thread by
    ``asyncio.to_thread`` finishes in the background and its result is dropped.
    """
    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs", label, timeout)
        return Bounded(Outcome.TIMEOUT)
    except Exception as exc:
        logger.warning("%s failed: %s", label, exc)
        return Bounded(Outcome.ERROR, error=exc)
    return Bounded(Outcome.OK, value=value)


def normalize_code(code: Optional[str]) -> str:
    """Lowercase a product code and drop surrounding punctuation."""
    if not code:
        return ""
    return re.sub(r"^[^0-9A-Za-z]+|[^0-9A-Za-z]+$", "", code).lower()
