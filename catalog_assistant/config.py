"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_float(name: str, default: float) -> float:
    return float(_get_env(name, str(default)))


class ConfigurationError(RuntimeError):
    """Raised when a required credential or endpoint is not configured."""


PUBLIC_CONFIG_KEYS = (
    "VITE_FIREBASE_API_KEY",
    "VITE_FIREBASE_AUTH_DOMAIN",
    "VITE_FIREBASE_PROJECT_ID",
    "VITE_FIREBASE_STORAGE_BUCKET",
    "VITE_FIREBASE_MESSAGING_SENDER_ID",
    "VITE_FIREBASE_APP_ID",
    "VITE_FIREBASE_MEASUREMENT_ID",
)


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    # record store
    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_api_key: str = _get_env("ES_API_KEY", "")
    es_index: str = _get_env("ES_INDEX", "products")
    mapping_path: str = _get_env("MAPPING_PATH", "product-mapping.json")
    catalog_path: str = _get_env("CATALOG_PATH", "catalog.json")

    # stats cache
    redis_url: str = _get_env("REDIS_URL", "")
    stats_ttl_seconds: int = int(_get_env("STATS_TTL_SECONDS", "600"))

    # generative AI
    gemini_api_key: str = _get_env("GEMINI_API_KEY", "")
    chat_model: str = _get_env("CHAT_MODEL", "gemini-2.5-flash")
    expansion_model: str = _get_env("EXPANSION_MODEL", "gemini-2.0-flash-lite")
    embedding_model: str = _get_env("EMBEDDING_MODEL", "gemini-embedding-001")
    embedding_dimensions: int = int(_get_env("EMBEDDING_DIMENSIONS", "768"))
    speech_model: str = _get_env("SPEECH_MODEL", "gemini-2.5-flash-preview-tts")
    speech_voice: str = _get_env("SPEECH_VOICE", "Kore")

    # timeouts (seconds)
    db_timeout: float = _get_float("DB_TIMEOUT", 5.0)
    embed_timeout: float = _get_float("EMBED_TIMEOUT", 15.0)
    expansion_timeout: float = _get_float("EXPANSION_TIMEOUT", 8.0)
    decompose_timeout: float = _get_float("DECOMPOSE_TIMEOUT", 10.0)
    completion_timeout: float = _get_float("COMPLETION_TIMEOUT", 30.0)
    request_deadline: float = _get_float("REQUEST_DEADLINE", 90.0)
    heartbeat_interval: float = _get_float("HEARTBEAT_INTERVAL", 15.0)

    # ranking tiers; the store's own vector similarity is usually in [0, 1]
    keyword_weight: float = _get_float("KEYWORD_WEIGHT", 2.0)
    spec_weight: float = _get_float("SPEC_WEIGHT", 1.9)
    category_weight: float = _get_float("CATEGORY_WEIGHT", 1.85)
    feature_weight: float = _get_float("FEATURE_WEIGHT", 1.8)
    fuzzy_weight: float = _get_float("FUZZY_WEIGHT", 1.5)
    history_weight: float = _get_float("HISTORY_WEIGHT", 1.0)

    # result bounds
    match_count: int = int(_get_env("MATCH_COUNT", "10"))
    spec_bound: int = int(_get_env("SPEC_BOUND", "20"))
    category_bound: int = int(_get_env("CATEGORY_BOUND", "30"))
    feature_bound: int = int(_get_env("FEATURE_BOUND", "25"))
    spec_scan_limit: int = int(_get_env("SPEC_SCAN_LIMIT", "200"))
    browse_fetch_limit: int = int(_get_env("BROWSE_FETCH_LIMIT", "60"))

    datasheet_base_url: str = _get_env("DATASHEET_BASE_URL", "")
    app_password: str = _get_env("APP_PASSWORD", "")
    log_level: str = _get_env("LOG_LEVEL", "INFO")

    def missing(self) -> list[str]:
        """Names of required settings that are not configured."""
        missing = []
        if not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")
        if not self.es_host:
            missing.append("ES_HOST")
        return missing

    def public_config(self) -> dict[str, str]:
        config = {key: _get_env(key, "") for key in PUBLIC_CONFIG_KEYS}
        config["DATASHEET_BASE_URL"] = self.datasheet_base_url
        return config


settings = Settings()
