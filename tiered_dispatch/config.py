"""
Configuration for tiered-dispatch.

This module handles environment variables and configuration settings
for the cache, storage and logging layers.
"""

import os
from typing import Literal

from pydantic import BaseModel, Field, HttpUrl

from .exceptions import ConfigurationError

DEFAULT_MODEL_NAME = "default"
DEFAULT_STORAGE_INDEX = "default"


class Config(BaseModel):
    """Configuration model for tiered-dispatch."""

    # Cache Configuration
    cache_backend: Literal["memory", "redis"] = Field(
        "memory", description="Cache tier backend"
    )
    redis_url: str = Field(
        "redis://localhost:6379", description="Redis connection URL"
    )
    cache_key_prefix: str = Field(
        "tiered:", description="Prefix applied to every Redis key"
    )
    default_cache_ttl: int = Field(
        7200, ge=0, description="Default cache lifetime in seconds (0 = forever)"
    )
    cache_maxsize: int = Field(
        1000, ge=10, description="Maximum in-memory cache entries"
    )

    # Storage Configuration
    storage_enabled: bool = Field(
        False, description="Whether the document store tier is consulted"
    )
    elasticsearch_url: HttpUrl | None = Field(
        None, description="Elasticsearch base URL for the document store tier"
    )
    storage_index: str = Field(
        DEFAULT_STORAGE_INDEX, min_length=1, description="Document store index name"
    )

    # Request Configuration
    request_timeout: int = Field(30, ge=1, description="Request timeout in seconds")
    max_retries: int = Field(3, ge=1, description="Maximum attempts per storage request")

    # Dispatch
    key_strategy: Literal["legacy", "canonical"] = Field(
        "legacy", description="Cache key derivation strategy"
    )
    trace_enabled: bool = Field(True, description="Record dispatch trace entries")

    # Logging
    log_level: str = Field("INFO", description="Logging level")
    structured_logging: bool = Field(True, description="Use structured logging")


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Configured Config instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    try:
        config_data = {}

        # Cache configuration
        if cache_backend := os.getenv("TIERED_CACHE_BACKEND"):
            config_data["cache_backend"] = cache_backend.lower()

        if redis_url := os.getenv("TIERED_REDIS_URL"):
            config_data["redis_url"] = redis_url

        if cache_key_prefix := os.getenv("TIERED_CACHE_KEY_PREFIX"):
            config_data["cache_key_prefix"] = cache_key_prefix

        if default_cache_ttl := os.getenv("TIERED_DEFAULT_CACHE_TTL"):
            config_data["default_cache_ttl"] = int(default_cache_ttl)

        if cache_maxsize := os.getenv("TIERED_CACHE_MAXSIZE"):
            config_data["cache_maxsize"] = int(cache_maxsize)

        # Storage configuration
        if storage_enabled := os.getenv("TIERED_STORAGE_ENABLED"):
            config_data["storage_enabled"] = _as_bool(storage_enabled)

        if elasticsearch_url := os.getenv("TIERED_ELASTICSEARCH_URL"):
            config_data["elasticsearch_url"] = elasticsearch_url

        if storage_index := os.getenv("TIERED_STORAGE_INDEX"):
            config_data["storage_index"] = storage_index

        # Request configuration
        if request_timeout := os.getenv("TIERED_REQUEST_TIMEOUT"):
            config_data["request_timeout"] = int(request_timeout)

        if max_retries := os.getenv("TIERED_MAX_RETRIES"):
            config_data["max_retries"] = int(max_retries)

        # Dispatch
        if key_strategy := os.getenv("TIERED_KEY_STRATEGY"):
            config_data["key_strategy"] = key_strategy.lower()

        if trace_enabled := os.getenv("TIERED_TRACE_ENABLED"):
            config_data["trace_enabled"] = _as_bool(trace_enabled)

        # Logging
        if log_level := os.getenv("TIERED_LOG_LEVEL"):
            config_data["log_level"] = log_level.upper()

        if structured_logging := os.getenv("TIERED_STRUCTURED_LOGGING"):
            config_data["structured_logging"] = _as_bool(structured_logging)

        config = Config(**config_data)

    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    if config.storage_enabled and config.elasticsearch_url is None:
        raise ConfigurationError(
            "TIERED_ELASTICSEARCH_URL is required when storage is enabled",
            setting="elasticsearch_url",
        )

    return config


def get_elasticsearch_headers() -> dict[str, str]:
    """
    Get Elasticsearch request headers.

    Returns:
        Dictionary of headers for document store requests
    """
    return {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": "tiered-dispatch/0.1.0",
    }
