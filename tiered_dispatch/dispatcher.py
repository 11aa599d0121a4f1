"""
Tiered read-through/write-through dispatcher.

A call is served by the first tier that has a usable value, in the order
cache -> storage -> origin. Origin results are wrapped in an envelope and
written back to the cache and then the document store.
"""

import time
from collections.abc import Mapping, Sequence
from typing import Any

from .config import DEFAULT_MODEL_NAME, DEFAULT_STORAGE_INDEX
from .diagnostics import Diagnostics
from .exceptions import (
    ConfigurationError,
    DispatchError,
    HandlerNotFoundError,
    KeyDerivationError,
    MalformedEnvelopeError,
    NoDataError,
    OriginFailureError,
    StorageWriteError,
)
from .logging import get_logger, log_tier_access
from .operations import OperationConfig, OperationRegistry, OriginHandler
from .types import AccessControls, DispatchResult, ErrorState, Tier
from .utils.cache import CacheStore
from .utils.document_store import DocumentStore
from .utils.envelope import pack, unpack
from .utils.key_codec import KeyCodec


class TieredDispatcher:
    """
    Serve operation calls from cache, storage or origin.

    Instances hold per-request state (access controls and the session trace)
    and should not be shared between concurrent requests. The cache and
    document store backends may be shared.
    """

    def __init__(
        self,
        handlers: OperationRegistry | Mapping[str, OriginHandler],
        cache: CacheStore | None = None,
        document_store: DocumentStore | None = None,
        operations: OperationConfig | None = None,
        access_controls: AccessControls | None = None,
        model_name: str = DEFAULT_MODEL_NAME,
        storage_index: str = DEFAULT_STORAGE_INDEX,
        key_codec: KeyCodec | None = None,
        use_storage: bool | None = None,
        trace_enabled: bool = True,
    ):
        """
        Initialize the dispatcher.

        Args:
            handlers: Origin handlers by operation name
            cache: Cache tier, or None to run without one
            document_store: Document store tier, or None to run without one
            operations: Model and lifetime configuration per operation
            access_controls: Tier bypass flags derived from the inbound request
            model_name: Model used for keys and document types unless the
                operation is mapped to another one
            storage_index: Document store index
            key_codec: Key derivation strategy
            use_storage: Whether to consult the document store; defaults to
                True when one is provided
            trace_enabled: Whether trace entries are recorded
        """
        if isinstance(handlers, OperationRegistry):
            self.handlers = handlers
        else:
            self.handlers = OperationRegistry(handlers)

        self.cache = cache
        self.document_store = document_store
        self.operations = operations or OperationConfig()
        self.access_controls = access_controls or AccessControls()
        self.model_name = model_name
        self.storage_index = storage_index
        self.key_codec = key_codec or KeyCodec()
        self.diagnostics = Diagnostics(enabled=trace_enabled)
        self.logger = get_logger(__name__)

        self._use_cache = cache is not None
        self._use_storage = document_store is not None if use_storage is None else use_storage
        if self._use_storage and document_store is None:
            raise ConfigurationError("Storage is enabled but no document store is set")

    @property
    def use_cache(self) -> bool:
        """Whether the cache tier is read and written for this instance."""
        return self._use_cache and not self.access_controls.cache_disabled

    @use_cache.setter
    def use_cache(self, enabled: bool) -> None:
        if enabled and self.cache is None:
            raise ConfigurationError("Cannot enable the cache tier without a cache store")
        self._use_cache = enabled

    @property
    def use_storage(self) -> bool:
        """Whether the storage tier is read and written for this instance."""
        return self._use_storage and not self.access_controls.storage_disabled

    @use_storage.setter
    def use_storage(self, enabled: bool) -> None:
        if enabled and self.document_store is None:
            raise ConfigurationError("Cannot enable the storage tier without a document store")
        self._use_storage = enabled

    @property
    def trace(self) -> list[str]:
        """Trace entries recorded by every call on this instance."""
        return self.diagnostics.entries

    @property
    def last_error(self) -> ErrorState | None:
        return self.diagnostics.last_error

    def set_cache_lifetime(self, operation: str, ttl: int) -> None:
        self.operations.set_cache_lifetime(operation, ttl)

    def fetch(self, operation: str, *arguments: Any) -> Any:
        """
        Dispatch a call and return its value.

        Raises:
            DispatchError: The error that made the dispatch fail
        """
        return self.invoke(operation, arguments).raise_for_error().value

    def invoke(self, operation: str, arguments: Sequence[Any] = ()) -> DispatchResult:
        """
        Dispatch a call through the cache, storage and origin tiers.

        Args:
            operation: Operation name
            arguments: Positional arguments passed to the origin handler

        Returns:
            DispatchResult describing the value and the tier that served it
        """
        start_time = time.time()
        call = self.diagnostics.child()
        arguments = tuple(arguments)

        handler = self.handlers.get(operation) if operation else None
        if handler is None:
            return self._fail(call, HandlerNotFoundError(operation))

        model_name = self.operations.resolve_model_name(operation, self.model_name)
        try:
            key = self.key_codec.derive_key(model_name, operation, arguments, trace=call.record)
        except KeyDerivationError as e:
            return self._fail(call, e)

        if self.use_cache and not self.access_controls.clear_cache_on_read:
            found, value = self._read_cache(key, call)
            if found:
                call.record(f"{operation} from: cache")
                return self._succeed(call, operation, key, value, Tier.CACHE, start_time)

        if self.use_storage and not self.access_controls.clear_storage_on_read:
            found, value = self._read_storage(operation, model_name, key, call)
            if found:
                call.record(f"{operation} from: storage")
                return self._succeed(call, operation, key, value, Tier.STORAGE, start_time)

        try:
            value = handler(*arguments)
        except Exception as e:
            self.logger.error(
                "Origin handler failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            error = OriginFailureError(str(e), operation=operation, error_type=type(e).__name__)
            error.__cause__ = e
            return self._fail(call, error, key=key)

        if value is None:
            error = NoDataError(operation, arguments)
            self.logger.error(error.message, operation=operation)
            return self._fail(call, error, key=key)

        self._write_back(operation, model_name, key, value, call)
        call.record(f"{operation} from: origin")
        return self._succeed(call, operation, key, value, Tier.ORIGIN, start_time)

    def _read_cache(self, key: str, call: Diagnostics) -> tuple[bool, Any]:
        stored = self.cache.get(key)
        if stored is None:
            return False, None
        try:
            _, value = unpack(stored)
        except MalformedEnvelopeError as e:
            call.record(f"Ignoring malformed cache entry {key}: {e.message}")
            return False, None
        return True, value

    def _read_storage(
        self, operation: str, model_name: str, key: str, call: Diagnostics
    ) -> tuple[bool, Any]:
        stored = self.document_store.get_by_id(self.storage_index, model_name, key)
        if stored is None:
            return False, None
        try:
            _, value = unpack(stored)
        except MalformedEnvelopeError as e:
            call.record(f"Ignoring malformed document {key}: {e.message}")
            return False, None

        # Repopulate the faster tier with the document as stored
        if self.use_cache:
            self._put_cache(operation, key, stored)
        return True, value

    def _put_cache(self, operation: str, key: str, document: Any) -> None:
        ttl = self.operations.cache_lifetime(operation)
        if ttl:
            self.cache.put(key, document, ttl)
        else:
            self.cache.put_forever(key, document)

    def _write_back(
        self, operation: str, model_name: str, key: str, value: Any, call: Diagnostics
    ) -> None:
        document = pack(value).to_document()

        if self.use_cache:
            self._put_cache(operation, key, document)

        if self.use_storage:
            stored = self.document_store.create(self.storage_index, model_name, key, document)
            if not stored:
                error = StorageWriteError(
                    f"Storage error: {self.document_store.last_error_message}",
                    index=self.storage_index,
                    doc_id=key,
                )
                call.set_error(error.code, error.message)
                self.logger.warning(
                    "Document store write failed",
                    operation=operation,
                    index=self.storage_index,
                    model=model_name,
                    key=key,
                    error=self.document_store.last_error_message,
                )

    def _succeed(
        self,
        call: Diagnostics,
        operation: str,
        key: str,
        value: Any,
        source: Tier,
        start_time: float,
    ) -> DispatchResult:
        log_tier_access(
            self.logger,
            operation,
            source.value,
            key,
            (time.time() - start_time) * 1000,
        )
        return DispatchResult(
            success=True,
            value=value,
            source=source,
            key=key,
            error=call.last_error,
            trace=call.entries,
        )

    def _fail(
        self, call: Diagnostics, error: DispatchError, key: str | None = None
    ) -> DispatchResult:
        call.set_error(error.code, error.message)
        return DispatchResult(
            success=False,
            key=key,
            error=call.last_error,
            trace=call.entries,
            exception=error,
        )
