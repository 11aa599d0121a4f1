"""
Cache key derivation.

Keys are derived from ``(model_name, operation_name, *arguments)`` and must
fit the 250 character limit shared by memcached-style backends.
"""

import hashlib
import json
import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Literal

from ..exceptions import KeyDerivationError

MAX_KEY_LENGTH = 250

_INVALID_KEY_CHARS = re.compile(r"[^A-Za-z0-9\-#]")
_KEY_CONTENT = re.compile(r"[A-Za-z0-9]")

KeyStrategy = Literal["legacy", "canonical"]


def _scalar_to_string(value: Any) -> str:
    if value is None:
        return ""
    # Booleans render as "1" and "" so keys match those already in shared caches
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, (str, int, float)):
        return str(value)
    raise KeyDerivationError(
        f"Cannot derive a key from value of type {type(value).__name__}",
        code="KEY_UNSERIALIZABLE",
        value_type=type(value).__name__,
    )


def _is_composite(value: Any) -> bool:
    return isinstance(value, Mapping) or (
        isinstance(value, Sequence) and not isinstance(value, (str, bytes))
    )


def flatten(value: Any) -> str:
    """
    Flatten a scalar or composite into a key fragment.

    Each entry of a composite becomes ``key#value`` with no separator between
    entries; sequences use their positional index as the key. The result is
    one-way and cannot be parsed back.
    """
    if not _is_composite(value):
        return _scalar_to_string(value)

    items = value.items() if isinstance(value, Mapping) else enumerate(value)
    return "".join(f"{_scalar_to_string(k)}#{flatten(v)}" for k, v in items)


def _canonical(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if _is_composite(value):
        return [_canonical(v) for v in value]
    _scalar_to_string(value)
    return value


class KeyCodec:
    """Derives cache keys and document ids for dispatched operations."""

    def __init__(self, strategy: KeyStrategy = "legacy"):
        """
        Initialize the codec.

        Args:
            strategy: ``legacy`` strips and concatenates the arguments,
                ``canonical`` serializes them as canonical JSON and hashes
                the result when it is too long
        """
        if strategy not in ("legacy", "canonical"):
            raise ValueError(f"Unknown key strategy: {strategy}")
        self.strategy = strategy

    def derive_key(
        self,
        model_name: str,
        operation_name: str,
        arguments: Sequence[Any] = (),
        trace: Callable[[str], None] | None = None,
    ) -> str:
        """
        Derive the cache key for an operation call.

        Args:
            model_name: Logical collection the operation belongs to
            operation_name: Operation name
            arguments: Positional arguments of the call
            trace: Optional callback receiving a trace entry with the final key

        Returns:
            Non-empty key of at most 250 characters

        Raises:
            KeyDerivationError: If the key is empty or an argument cannot be serialized
        """
        parts = [model_name, operation_name, *arguments]

        if self.strategy == "canonical":
            key = self._derive_canonical(parts)
        else:
            key = self._derive_legacy(parts)

        if trace is not None:
            trace(f"generate key: {key}")
        return key

    def _derive_legacy(self, parts: list[Any]) -> str:
        key = "-".join(flatten(part) for part in parts)
        key = _INVALID_KEY_CHARS.sub("", key)

        # Separators alone do not identify anything
        if not _KEY_CONTENT.search(key):
            raise KeyDerivationError("Cache key cannot be empty")

        if len(key) > MAX_KEY_LENGTH:
            key = hashlib.md5(key.encode("utf-8")).hexdigest()
        return key

    def _derive_canonical(self, parts: list[Any]) -> str:
        if len(parts) == 2 and not _KEY_CONTENT.search(f"{parts[0]}{parts[1]}"):
            raise KeyDerivationError("Cache key cannot be empty")

        body = json.dumps(
            [_canonical(p) for p in parts],
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
        )
        digest = hashlib.sha256(body.encode("utf-8")).hexdigest()

        # Readable prefix for operators; uniqueness comes from the digest
        prefix = _INVALID_KEY_CHARS.sub("", f"{parts[0]}-{parts[1]}").strip("-")
        key = f"{prefix}-{digest}" if prefix else digest
        if len(key) > MAX_KEY_LENGTH:
            key = digest
        return key
