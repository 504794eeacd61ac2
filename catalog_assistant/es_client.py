"""Elasticsearch client factory.

The rest of the code works against the official synchronous client. Blocking
calls are wrapped via ``asyncio.to_thread`` by the caller where necessary.
"""
from __future__ import annotations

import logging
from functools import lru_cache

from elasticsearch import Elasticsearch

from .config import ConfigurationError, settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch:
    if not settings.es_host:
        raise ConfigurationError("ES_HOST is not configured")
    logger.info("Connecting to Elasticsearch at %s", settings.es_host)
    if settings.es_api_key:
        return Elasticsearch(settings.es_host, api_key=settings.es_api_key)
    return Elasticsearch(settings.es_host)
