"""
Shared type definitions for tiered-dispatch.

This module contains the Pydantic models passed between the dispatcher,
its tier adapters and its callers.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

UPDATE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class Tier(str, Enum):
    """Tiers consulted by the dispatcher, in fallback order."""

    CACHE = "cache"
    STORAGE = "storage"
    ORIGIN = "origin"


class EnvelopeMeta(BaseModel):
    """Metadata stored alongside a computed result."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    updated_at: datetime = Field(
        ..., alias="updateTime", description="When the origin produced the payload"
    )


class Envelope(BaseModel):
    """A computed result wrapped with its metadata."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    payload: Any = Field(..., alias="doc", description="Opaque origin result")
    meta: EnvelopeMeta

    def to_document(self) -> dict[str, Any]:
        """Render the stored form written to cache and document tiers."""
        return {
            "doc": self.payload,
            "meta": {"updateTime": self.meta.updated_at.strftime(UPDATE_TIME_FORMAT)},
        }


class AccessControls(BaseModel):
    """Per-instance flags gating which tiers are read and written."""

    model_config = ConfigDict(frozen=True)

    cache_disabled: bool = Field(False, description="Skip the cache tier entirely")
    storage_disabled: bool = Field(False, description="Skip the storage tier entirely")
    clear_cache_on_read: bool = Field(
        False, description="Bypass cache reads; write-back overwrites the entry"
    )
    clear_storage_on_read: bool = Field(
        False, description="Bypass storage reads; write-back overwrites the document"
    )

    @classmethod
    def from_params(
        cls, disable: str | None = None, clear: str | None = None
    ) -> "AccessControls":
        """
        Build access controls from inbound request parameters.

        Both parameters accept ``cache``, ``storage`` or ``both``; any other
        value leaves the corresponding flags unset.

        Args:
            disable: Tiers to disable for this request
            clear: Tiers to bypass on read and refresh on write

        Returns:
            AccessControls instance
        """
        disable = (disable or "").lower()
        clear = (clear or "").lower()
        return cls(
            cache_disabled=disable in ("cache", "both"),
            storage_disabled=disable in ("storage", "both"),
            clear_cache_on_read=clear in ("cache", "both"),
            clear_storage_on_read=clear in ("storage", "both"),
        )


class ErrorState(BaseModel):
    """The last error recorded by a dispatcher."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")


class DispatchResult(BaseModel):
    """Outcome of a single dispatch."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    value: Any = None
    source: Tier | None = Field(None, description="Tier that served the value")
    key: str | None = Field(None, description="Derived cache key")
    error: ErrorState | None = None
    trace: list[str] = Field(default_factory=list)
    exception: Exception | None = Field(None, exclude=True, repr=False)

    def as_tuple(self) -> tuple[bool, Any]:
        """Return ``(success, value)``."""
        return self.success, self.value

    def raise_for_error(self) -> "DispatchResult":
        """Raise the recorded exception if the dispatch failed."""
        if not self.success and self.exception is not None:
            raise self.exception
        return self
