"""
tiered-dispatch: read-through/write-through dispatch over cache, document
store and origin tiers.
"""

from .dispatcher import TieredDispatcher
from .exceptions import (
    DispatchError,
    HandlerNotFoundError,
    KeyDerivationError,
    NoDataError,
    OriginFailureError,
)
from .operations import OperationConfig, OperationRegistry
from .types import AccessControls, DispatchResult, Envelope, ErrorState, Tier

__version__ = "0.1.0"

__all__ = [
    "AccessControls",
    "DispatchError",
    "DispatchResult",
    "Envelope",
    "ErrorState",
    "HandlerNotFoundError",
    "KeyDerivationError",
    "NoDataError",
    "OperationConfig",
    "OperationRegistry",
    "OriginFailureError",
    "Tier",
    "TieredDispatcher",
]
