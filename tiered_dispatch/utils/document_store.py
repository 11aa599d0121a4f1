"""
Document store tier interface.

Documents are addressed by ``(index, type, id)``; the dispatcher uses the
storage index, the resolved model name and the cache key respectively.
"""

import copy
import threading
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from ..logging import get_logger


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store implementations."""

    @property
    def last_error_message(self) -> str: ...

    def get_by_id(self, index: str, doc_type: str, doc_id: str) -> Mapping[str, Any] | None: ...
    def create(self, index: str, doc_type: str, doc_id: str, body: Mapping[str, Any]) -> bool: ...


class InMemoryDocumentStore:
    """Process-local document store, mainly for tests and single-node setups."""

    def __init__(self):
        self._documents: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._last_error_message = ""
        self._logger = get_logger(__name__, backend="memory")

    @property
    def last_error_message(self) -> str:
        return self._last_error_message

    def get_by_id(self, index: str, doc_type: str, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            document = self._documents.get((index, doc_type, doc_id))
        if document is None:
            return None
        return copy.deepcopy(document)

    def create(self, index: str, doc_type: str, doc_id: str, body: Mapping[str, Any]) -> bool:
        if not doc_id:
            self._last_error_message = "Document id cannot be empty"
            return False
        with self._lock:
            self._documents[(index, doc_type, doc_id)] = copy.deepcopy(dict(body))
        self._logger.debug("Stored document", index=index, doc_type=doc_type, doc_id=doc_id)
        return True

    def __len__(self) -> int:
        return len(self._documents)
