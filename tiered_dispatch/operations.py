"""
Operation configuration and origin handler registry.

An operation is identified by name. Its handler computes the origin value;
its configuration decides the model (collection) it is stored under and how
long cached results live.
"""

from collections.abc import Callable, Iterator, Mapping
from numbers import Real
from typing import Any

from .config import DEFAULT_MODEL_NAME
from .exceptions import ValidationError

OriginHandler = Callable[..., Any]


class OperationConfig:
    """Per-operation model names and cache lifetimes."""

    def __init__(
        self,
        default_cache_ttl: int = 7200,
        model_map: Mapping[str, str] | None = None,
        cache_ttls: Mapping[str, int] | None = None,
    ):
        """
        Initialize operation configuration.

        Args:
            default_cache_ttl: Lifetime in seconds for operations without an override
            model_map: Static operation name -> model name mapping
            cache_ttls: Operation name -> lifetime overrides in seconds
        """
        self.default_cache_ttl = default_cache_ttl
        self._model_map: dict[str, str] = dict(model_map or {})
        self._cache_ttls: dict[str, int] = {}
        for name, ttl in (cache_ttls or {}).items():
            self.set_cache_lifetime(name, ttl)

    @property
    def model_map(self) -> dict[str, str]:
        return dict(self._model_map)

    @model_map.setter
    def model_map(self, value: Mapping[str, str]) -> None:
        self._model_map = dict(value)

    def cache_lifetime(self, operation: str) -> int:
        """Return the cache lifetime for ``operation`` in seconds (0 = forever)."""
        return self._cache_ttls.get(operation, self.default_cache_ttl)

    def set_cache_lifetime(self, operation: str, ttl: int) -> None:
        """
        Override the cache lifetime for an operation.

        Args:
            operation: Operation name
            ttl: Lifetime in seconds, 0 to cache without expiry

        Raises:
            ValidationError: If the name is empty or the lifetime is not a
                non-negative number
        """
        if not operation:
            raise ValidationError("Operation name cannot be empty", field="operation")
        if isinstance(ttl, bool) or not isinstance(ttl, Real) or ttl < 0:
            raise ValidationError(
                "Cache lifetime must be a non-negative number of seconds",
                field="ttl",
                value=repr(ttl),
            )
        self._cache_ttls[operation] = int(ttl)

    def resolve_model_name(self, operation: str, current: str | None) -> str:
        """
        Resolve the model an operation call is stored under.

        An explicitly configured model name wins; the static mapping only
        applies while the current name is unset or the default sentinel.
        """
        if not current or current == DEFAULT_MODEL_NAME:
            mapped = self._model_map.get(operation)
            if mapped:
                return mapped
        return current or DEFAULT_MODEL_NAME


class OperationRegistry:
    """Explicit registry of origin handlers by operation name."""

    def __init__(self, handlers: Mapping[str, OriginHandler] | None = None):
        self._handlers: dict[str, OriginHandler] = {}
        for name, handler in (handlers or {}).items():
            self.add(name, handler)

    def add(self, name: str, handler: OriginHandler) -> None:
        """Register ``handler`` for operation ``name``."""
        if not name:
            raise ValidationError("Operation name cannot be empty", field="name")
        if not callable(handler):
            raise ValidationError(f"Handler for {name} is not callable", field="handler")
        self._handlers[name] = handler

    def register(self, name: str | None = None) -> Callable[[OriginHandler], OriginHandler]:
        """
        Decorator registering a function as an origin handler.

        Usage:
            @registry.register("listUsers")
            def list_users():
                ...

        Without a name the function's ``__name__`` is used.
        """

        def decorator(func: OriginHandler) -> OriginHandler:
            self.add(name or func.__name__, func)
            return func

        return decorator

    def get(self, name: str) -> OriginHandler | None:
        return self._handlers.get(name)

    def names(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)
