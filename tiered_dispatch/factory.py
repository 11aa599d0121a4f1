"""
Builders wiring configured backends into a dispatcher.

Backends are chosen here, once, and injected into each dispatcher; the
dispatcher itself never selects a backend by name.
"""

from collections.abc import Mapping

from .clients.elasticsearch_client import ElasticsearchDocumentStore
from .config import Config
from .dispatcher import TieredDispatcher
from .exceptions import ConfigurationError
from .logging import get_logger
from .operations import OperationConfig, OperationRegistry, OriginHandler
from .types import AccessControls
from .utils.cache import CacheStore, InMemoryCache
from .utils.document_store import DocumentStore
from .utils.key_codec import KeyCodec
from .utils.redis_cache import RedisCache

logger = get_logger(__name__)


def create_cache_store(config: Config) -> CacheStore:
    """
    Create the cache tier selected by ``config.cache_backend``.

    Args:
        config: Configuration instance

    Returns:
        Cache store instance
    """
    if config.cache_backend == "redis":
        logger.info("Using Redis cache tier", url=config.redis_url)
        return RedisCache(url=config.redis_url, key_prefix=config.cache_key_prefix)

    logger.info("Using in-memory cache tier", maxsize=config.cache_maxsize)
    return InMemoryCache(maxsize=config.cache_maxsize)


def create_document_store(config: Config) -> DocumentStore | None:
    """
    Create the document store tier, or None when storage is disabled.

    Raises:
        ConfigurationError: If storage is enabled without an Elasticsearch URL
    """
    if not config.storage_enabled:
        return None
    if config.elasticsearch_url is None:
        raise ConfigurationError(
            "Storage is enabled but no Elasticsearch URL is configured",
            setting="elasticsearch_url",
        )
    logger.info("Using Elasticsearch storage tier", url=str(config.elasticsearch_url))
    return ElasticsearchDocumentStore(config)


def create_dispatcher(
    config: Config,
    handlers: OperationRegistry | Mapping[str, OriginHandler],
    cache: CacheStore | None = None,
    document_store: DocumentStore | None = None,
    operations: OperationConfig | None = None,
    access_controls: AccessControls | None = None,
    **kwargs,
) -> TieredDispatcher:
    """
    Build a dispatcher for one request.

    Shared backends should be created once and passed in; they are only
    created from ``config`` when omitted.

    Args:
        config: Configuration instance
        handlers: Origin handlers by operation name
        cache: Shared cache tier
        document_store: Shared document store tier
        operations: Per-operation configuration
        access_controls: Tier bypass flags for this request
        **kwargs: Passed through to TieredDispatcher (model_name, ...)

    Returns:
        Configured dispatcher
    """
    if cache is None:
        cache = create_cache_store(config)
    if document_store is None:
        document_store = create_document_store(config)

    return TieredDispatcher(
        handlers,
        cache=cache,
        document_store=document_store,
        operations=operations or OperationConfig(default_cache_ttl=config.default_cache_ttl),
        access_controls=access_controls,
        storage_index=kwargs.pop("storage_index", config.storage_index),
        key_codec=KeyCodec(strategy=config.key_strategy),
        trace_enabled=config.trace_enabled,
        **kwargs,
    )
