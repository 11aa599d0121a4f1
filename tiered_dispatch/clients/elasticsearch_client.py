"""
Elasticsearch document store client for tiered-dispatch.

This module provides a synchronous client that stores dispatcher envelopes
as Elasticsearch documents, with retry logic and structured logging.
"""

import re
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import Config, get_elasticsearch_headers
from ..exceptions import ConfigurationError, DocumentStoreError, ValidationError
from ..logging import get_logger, log_storage_request

_INVALID_INDEX_CHARS = re.compile(r"[\\/*?\"<>|,#:\s]+")


def index_name(index: str, doc_type: str) -> str:
    """
    Build the physical index for an ``(index, type)`` pair.

    Mapping types were removed from Elasticsearch, so the model name is
    folded into the index name instead. Characters Elasticsearch rejects in
    index names are replaced with ``_``.

    Raises:
        ValidationError: If nothing usable is left of the name
    """
    name = _INVALID_INDEX_CHARS.sub("_", f"{index}-{doc_type}".lower()).lstrip("-_+")
    if name in ("", ".", ".."):
        raise ValidationError(
            f"Invalid document index name: {index}-{doc_type}", field="index"
        )
    return name


def document_path(index: str, doc_type: str, doc_id: str) -> str:
    """Build the escaped ``/{index}/_doc/{id}`` path for a document."""
    return f"/{quote(index_name(index, doc_type), safe='')}/_doc/{quote(doc_id, safe='')}"


class ElasticsearchDocumentStore:
    """Document store backed by the Elasticsearch document REST API."""

    def __init__(self, config: Config, client: httpx.Client | None = None):
        """
        Initialize the Elasticsearch client.

        Args:
            config: Configuration instance
            client: Pre-built httpx client, or None to create one from config

        Raises:
            ConfigurationError: If no Elasticsearch URL is configured
        """
        if client is None and config.elasticsearch_url is None:
            raise ConfigurationError(
                "Elasticsearch URL is not configured", setting="elasticsearch_url"
            )

        self.config = config
        self.logger = get_logger(__name__, client="elasticsearch")
        self._last_error_message = ""

        self.client = client or httpx.Client(
            base_url=str(config.elasticsearch_url),
            timeout=config.request_timeout,
            headers=get_elasticsearch_headers(),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
        )

        self._send = retry(
            stop=stop_after_attempt(config.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )(self._request)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self.client.close()

    @property
    def last_error_message(self) -> str:
        """Message describing the most recent failed request."""
        return self._last_error_message

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        start_time = time.time()
        response = self.client.request(method, url, **kwargs)
        duration_ms = (time.time() - start_time) * 1000

        log_storage_request(
            self.logger,
            method,
            str(response.url),
            response.status_code,
            duration_ms,
        )
        return response

    def search_document_by_id(self, index: str, doc_type: str, doc_id: str) -> dict[str, Any]:
        """
        Fetch a document by id.

        Args:
            index: Storage index name
            doc_type: Document type (model name)
            doc_id: Document id

        Returns:
            Raw Elasticsearch response for the document

        Raises:
            DocumentStoreError: If the request fails for a reason other than a miss
            ValidationError: If the index name is unusable
        """
        url = document_path(index, doc_type, doc_id)
        try:
            response = self._send("GET", url)
        except httpx.TransportError as e:
            raise DocumentStoreError(f"Elasticsearch request failed: {e}", url=url) from e

        if response.status_code == 404:
            return {"found": False}

        if response.status_code >= 400:
            raise DocumentStoreError(
                f"Elasticsearch returned {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
                url=url,
            )

        return response.json()

    def get_by_id(self, index: str, doc_type: str, doc_id: str) -> dict[str, Any] | None:
        """Return the document source, or None on a miss or request failure."""
        try:
            data = self.search_document_by_id(index, doc_type, doc_id)
        except (DocumentStoreError, ValidationError) as e:
            self._last_error_message = e.message
            self.logger.warning(
                "Document lookup failed", index=index, doc_type=doc_type, doc_id=doc_id, error=e.message
            )
            return None

        if not data.get("found"):
            return None
        return data.get("_source")

    def create(self, index: str, doc_type: str, doc_id: str, body: Mapping[str, Any]) -> bool:
        """
        Index a document, replacing any existing document with the same id.

        Returns:
            True if Elasticsearch acknowledged the write, False otherwise
        """
        try:
            url = document_path(index, doc_type, doc_id)
        except ValidationError as e:
            self._last_error_message = e.message
            self.logger.warning("Document write failed", index=index, doc_type=doc_type, error=e.message)
            return False

        try:
            response = self._send("PUT", url, json=dict(body))
        except httpx.TransportError as e:
            self._last_error_message = f"Elasticsearch request failed: {e}"
            self.logger.warning("Document write failed", url=url, error=str(e))
            return False

        if response.status_code not in (200, 201):
            self._last_error_message = (
                f"Elasticsearch returned {response.status_code}: {response.text}"
            )
            self.logger.warning(
                "Document write rejected", url=url, status_code=response.status_code
            )
            return False

        return True
