"""Envelope packing for values written to the cache and storage tiers."""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import MalformedEnvelopeError
from ..types import Envelope, EnvelopeMeta


def pack(result: Any) -> Envelope:
    """
    Wrap an origin result with the current timestamp.

    Args:
        result: Value returned by the origin handler

    Returns:
        Immutable envelope around the result
    """
    # Stored timestamps carry second precision only
    now = datetime.now().replace(microsecond=0)
    return Envelope(payload=result, meta=EnvelopeMeta(updated_at=now))


def unpack(stored: Envelope | Mapping[str, Any]) -> tuple[EnvelopeMeta, Any]:
    """
    Split a stored envelope into its metadata and payload.

    Args:
        stored: Envelope instance or its stored-document mapping

    Returns:
        Tuple of (meta, payload)

    Raises:
        MalformedEnvelopeError: If the value is not a well-formed envelope
    """
    if isinstance(stored, Envelope):
        return stored.meta, stored.payload

    if not isinstance(stored, Mapping) or "doc" not in stored:
        raise MalformedEnvelopeError(
            "Stored value is not an envelope", value_type=type(stored).__name__
        )

    try:
        envelope = Envelope.model_validate(stored)
    except PydanticValidationError as e:
        raise MalformedEnvelopeError(f"Invalid envelope metadata: {e}") from e

    return envelope.meta, envelope.payload
