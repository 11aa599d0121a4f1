"""
Tests for the tiered dispatcher.
"""

from unittest.mock import MagicMock

import pytest

from tiered_dispatch.dispatcher import TieredDispatcher
from tiered_dispatch.exceptions import (
    ConfigurationError,
    HandlerNotFoundError,
    NoDataError,
    OriginFailureError,
)
from tiered_dispatch.operations import OperationConfig, OperationRegistry
from tiered_dispatch.types import AccessControls, Tier
from tiered_dispatch.utils.cache import InMemoryCache
from tiered_dispatch.utils.document_store import InMemoryDocumentStore
from tiered_dispatch.utils.envelope import pack


class ComputeError(Exception):
    """Error raised by origin handlers under test."""


@pytest.fixture
def cache():
    """Create an in-memory cache."""
    return InMemoryCache(maxsize=100)


@pytest.fixture
def document_store():
    """Create an in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def list_users():
    """Create an origin handler returning two users."""
    return MagicMock(return_value=["alice", "bob"])


@pytest.fixture
def dispatcher(cache, document_store, list_users):
    """Create a dispatcher with cache and storage enabled."""
    return TieredDispatcher(
        {"listUsers": list_users},
        cache=cache,
        document_store=document_store,
        model_name="users",
    )


class TestOriginAndWriteBack:
    """Tests for full misses served by the origin handler."""

    def test_list_users_scenario(self, dispatcher, list_users):
        """Test that a second call is served from cache without calling origin."""
        first = dispatcher.invoke("listUsers", [])

        assert first.success is True
        assert first.value == ["alice", "bob"]
        assert first.source == Tier.ORIGIN

        second = dispatcher.invoke("listUsers", [])

        assert second.success is True
        assert second.value == ["alice", "bob"]
        assert second.source == Tier.CACHE
        list_users.assert_called_once_with()

    def test_write_back_targets_both_tiers(self, dispatcher, cache, document_store):
        """Test that the origin result is enveloped into cache and storage."""
        result = dispatcher.invoke("listUsers")

        cached = cache.get(result.key)
        assert cached["doc"] == ["alice", "bob"]
        assert "updateTime" in cached["meta"]

        stored = document_store.get_by_id("default", "users", result.key)
        assert stored == cached

    def test_arguments_are_passed_to_origin(self, cache):
        """Test that the call arguments reach the handler."""
        handler = MagicMock(return_value={"id": 7})
        dispatcher = TieredDispatcher({"getUser": handler}, cache=cache)

        result = dispatcher.invoke("getUser", [7, {"fields": ["name"]}])

        assert result.value == {"id": 7}
        handler.assert_called_once_with(7, {"fields": ["name"]})
        assert result.key == "default-getUser-7-fields#0#name"

    def test_trace_records_origin(self, dispatcher):
        """Test the trace entries of an origin call."""
        result = dispatcher.invoke("listUsers")

        assert result.trace[0] == f"generate key: {result.key}"
        assert result.trace[-1] == "listUsers from: origin"
        assert dispatcher.trace == result.trace

    def test_cache_lifetime_is_applied(self, document_store):
        """Test that write-back uses the operation's cache lifetime."""
        cache = MagicMock()
        cache.get.return_value = None
        operations = OperationConfig(default_cache_ttl=60, cache_ttls={"listUsers": 300})
        dispatcher = TieredDispatcher(
            {"listUsers": lambda: ["alice"]}, cache=cache, operations=operations
        )

        result = dispatcher.invoke("listUsers")

        cache.put.assert_called_once()
        key, document, ttl = cache.put.call_args[0]
        assert key == result.key
        assert document["doc"] == ["alice"]
        assert ttl == 300

    def test_zero_lifetime_caches_forever(self):
        """Test that a zero lifetime stores the entry without expiry."""
        cache = MagicMock()
        cache.get.return_value = None
        dispatcher = TieredDispatcher(
            {"listUsers": lambda: ["alice"]},
            cache=cache,
            operations=OperationConfig(default_cache_ttl=0),
        )

        dispatcher.invoke("listUsers")

        cache.put.assert_not_called()
        cache.put_forever.assert_called_once()

    def test_fetch_returns_value(self, dispatcher):
        """Test the raising convenience wrapper."""
        assert dispatcher.fetch("listUsers") == ["alice", "bob"]


class TestCacheTier:
    """Tests for cache reads."""

    def test_cache_hit_skips_storage_and_origin(self, cache, list_users):
        """Test that a cached value short-circuits storage and origin."""
        document_store = MagicMock()
        dispatcher = TieredDispatcher(
            {"listUsers": list_users},
            cache=cache,
            document_store=document_store,
            model_name="users",
        )
        cache.put("users-listUsers", pack(["carol"]).to_document(), 60)

        result = dispatcher.invoke("listUsers")

        assert result.success is True
        assert result.value == ["carol"]
        assert result.source == Tier.CACHE
        assert "listUsers from: cache" in result.trace
        list_users.assert_not_called()
        document_store.get_by_id.assert_not_called()

    def test_clear_cache_recomputes_and_overwrites(self, cache, list_users):
        """Test that clear-cache ignores the cached value and refreshes it."""
        cache.put("users-listUsers", pack(["stale"]).to_document(), 60)
        dispatcher = TieredDispatcher(
            {"listUsers": list_users},
            cache=cache,
            model_name="users",
            access_controls=AccessControls(clear_cache_on_read=True),
        )

        result = dispatcher.invoke("listUsers")

        assert result.value == ["alice", "bob"]
        assert result.source == Tier.ORIGIN
        assert cache.get("users-listUsers")["doc"] == ["alice", "bob"]

    def test_malformed_cache_entry_is_a_miss(self, cache, list_users):
        """Test that a value that is not an envelope falls through to origin."""
        cache.put("users-listUsers", "garbage", 60)
        dispatcher = TieredDispatcher({"listUsers": list_users}, cache=cache, model_name="users")

        result = dispatcher.invoke("listUsers")

        assert result.success is True
        assert result.source == Tier.ORIGIN
        assert any("malformed cache entry" in entry for entry in result.trace)

    def test_disabled_cache_is_untouched(self, list_users, document_store):
        """Test that a disabled cache is neither read nor written."""
        cache = MagicMock()
        dispatcher = TieredDispatcher(
            {"listUsers": list_users},
            cache=cache,
            document_store=document_store,
            access_controls=AccessControls(cache_disabled=True),
        )

        result = dispatcher.invoke("listUsers")

        assert result.success is True
        cache.get.assert_not_called()
        cache.put.assert_not_called()
        cache.put_forever.assert_not_called()


class TestStorageTier:
    """Tests for document store reads and writes."""

    def test_storage_hit_repopulates_cache(self, cache, document_store, list_users):
        """Test that a storage hit is returned and copied into the cache."""
        document = pack({"name": "dave"}).to_document()
        document_store.create("default", "users", "users-listUsers", document)
        dispatcher = TieredDispatcher(
            {"listUsers": list_users},
            cache=cache,
            document_store=document_store,
            model_name="users",
        )

        result = dispatcher.invoke("listUsers")

        assert result.value == {"name": "dave"}
        assert result.source == Tier.STORAGE
        assert "listUsers from: storage" in result.trace
        assert cache.get("users-listUsers") == document
        list_users.assert_not_called()

    def test_storage_hit_with_cache_disabled(self, document_store, list_users):
        """Test that storage serves the value while the disabled cache stays untouched."""
        cache = MagicMock()
        document_store.create(
            "default", "users", "users-listUsers", pack(["erin"]).to_document()
        )
        dispatcher = TieredDispatcher(
            {"listUsers": list_users},
            cache=cache,
            document_store=document_store,
            model_name="users",
            access_controls=AccessControls(cache_disabled=True),
        )

        result = dispatcher.invoke("listUsers")

        assert result.value == ["erin"]
        cache.put.assert_not_called()
        cache.put_forever.assert_not_called()

    def test_clear_storage_recomputes(self, cache, document_store, list_users):
        """Test that clear-storage bypasses the stored document and overwrites it."""
        document_store.create(
            "default", "users", "users-listUsers", pack(["old"]).to_document()
        )
        dispatcher = TieredDispatcher(
            {"listUsers": list_users},
            cache=cache,
            document_store=document_store,
            model_name="users",
            access_controls=AccessControls.from_params(disable="cache", clear="storage"),
        )

        result = dispatcher.invoke("listUsers")

        assert result.source == Tier.ORIGIN
        stored = document_store.get_by_id("default", "users", "users-listUsers")
        assert stored["doc"] == ["alice", "bob"]

    def test_storage_write_failure_is_not_fatal(self, cache, list_users):
        """Test that a failed document write still returns the origin value."""
        document_store = MagicMock()
        document_store.get_by_id.return_value = None
        document_store.create.return_value = False
        document_store.last_error_message = "index read-only"
        dispatcher = TieredDispatcher(
            {"listUsers": list_users},
            cache=cache,
            document_store=document_store,
            model_name="users",
        )

        result = dispatcher.invoke("listUsers")

        assert result.success is True
        assert result.value == ["alice", "bob"]
        assert cache.get(result.key)["doc"] == ["alice", "bob"]
        assert any("Storage error: index read-only" in entry for entry in result.trace)
        assert dispatcher.last_error.code == "STORAGE_WRITE_FAILURE"

    def test_storage_uses_index_and_resolved_model(self, cache, list_users):
        """Test the document address used for reads and writes."""
        document_store = MagicMock()
        document_store.get_by_id.return_value = None
        document_store.create.return_value = True
        dispatcher = TieredDispatcher(
            {"listUsers": list_users},
            cache=cache,
            document_store=document_store,
            operations=OperationConfig(model_map={"listUsers": "accounts"}),
            storage_index="crm",
        )

        result = dispatcher.invoke("listUsers")

        assert result.key == "accounts-listUsers"
        document_store.get_by_id.assert_called_once_with("crm", "accounts", "accounts-listUsers")
        index, doc_type, doc_id, _ = document_store.create.call_args[0]
        assert (index, doc_type, doc_id) == ("crm", "accounts", "accounts-listUsers")
        assert dispatcher.model_name == "default"

    def test_storage_disabled_without_store(self, cache):
        """Test that storage is off when no document store is supplied."""
        dispatcher = TieredDispatcher({"listUsers": lambda: []}, cache=cache)

        assert dispatcher.use_storage is False
        with pytest.raises(ConfigurationError):
            dispatcher.use_storage = True


class TestFailures:
    """Tests for failed dispatches."""

    def test_unknown_operation(self, dispatcher, list_users):
        """Test that an unknown operation fails without touching any tier."""
        result = dispatcher.invoke("listGroups")

        assert result.success is False
        assert result.error.code == "HANDLER_NOT_FOUND"
        assert result.key is None
        assert isinstance(result.exception, HandlerNotFoundError)
        list_users.assert_not_called()

    def test_empty_operation(self, dispatcher):
        """Test that an empty operation name fails."""
        result = dispatcher.invoke("")

        assert result.success is False
        assert result.error.code == "HANDLER_NOT_FOUND"

    def test_unserializable_argument(self, dispatcher, list_users):
        """Test that key derivation errors abort before any tier is read."""
        result = dispatcher.invoke("listUsers", [object()])

        assert result.success is False
        assert result.error.code == "KEY_UNSERIALIZABLE"
        list_users.assert_not_called()

    def test_origin_exception(self, cache, document_store):
        """Test that a raising handler fails the call without write-back."""
        handler = MagicMock(side_effect=ComputeError("timeout"))
        dispatcher = TieredDispatcher(
            {"listUsers": handler}, cache=cache, document_store=document_store
        )

        result = dispatcher.invoke("listUsers")

        assert result.success is False
        assert result.value is None
        assert dispatcher.last_error.message == "timeout"
        assert dispatcher.last_error.code == "ORIGIN_FAILURE"
        assert cache.get("default-listUsers") is None
        assert len(document_store) == 0

    def test_origin_no_data(self, cache, document_store):
        """Test that a handler returning None fails the call without write-back."""
        dispatcher = TieredDispatcher(
            {"getUser": lambda user_id: None}, cache=cache, document_store=document_store
        )

        result = dispatcher.invoke("getUser", [42])

        assert result.success is False
        assert result.error.code == "ORIGIN_NO_DATA"
        assert any("No data returned from method: getUser" in e for e in result.trace)
        assert cache.get(result.key) is None
        assert len(document_store) == 0

    def test_fetch_raises_recorded_error(self, cache):
        """Test that fetch raises the dispatch error."""
        dispatcher = TieredDispatcher(
            {"listUsers": MagicMock(side_effect=ComputeError("timeout"))}, cache=cache
        )

        with pytest.raises(OriginFailureError, match="timeout"):
            dispatcher.fetch("listUsers")

        with pytest.raises(HandlerNotFoundError):
            dispatcher.fetch("missing")

    def test_no_data_error_is_origin_failure(self, cache):
        """Test the no-data error hierarchy."""
        dispatcher = TieredDispatcher({"listUsers": lambda: None}, cache=cache)

        with pytest.raises(NoDataError):
            dispatcher.fetch("listUsers")

    def test_last_error_is_overwritten(self, cache):
        """Test that only the latest error is kept while the trace accumulates."""
        dispatcher = TieredDispatcher(
            {"listUsers": MagicMock(side_effect=ComputeError("timeout"))}, cache=cache
        )

        dispatcher.invoke("missing")
        dispatcher.invoke("listUsers")

        assert dispatcher.last_error.code == "ORIGIN_FAILURE"
        assert any(e.startswith("HANDLER_NOT_FOUND|") for e in dispatcher.trace)
        assert any(e.startswith("ORIGIN_FAILURE|") for e in dispatcher.trace)


class TestConfiguration:
    """Tests for dispatcher mutators."""

    def test_registry_handlers(self, cache):
        """Test dispatching through an OperationRegistry."""
        registry = OperationRegistry()

        @registry.register("listUsers")
        def list_users():
            return ["frank"]

        dispatcher = TieredDispatcher(registry, cache=cache)

        assert dispatcher.fetch("listUsers") == ["frank"]

    def test_use_cache_toggle(self, cache, list_users):
        """Test that turning the cache off forces origin calls."""
        dispatcher = TieredDispatcher({"listUsers": list_users}, cache=cache)
        dispatcher.use_cache = False

        dispatcher.invoke("listUsers")
        dispatcher.invoke("listUsers")

        assert list_users.call_count == 2
        assert cache.get("default-listUsers") is None

    def test_set_cache_lifetime(self, cache):
        """Test the per-operation lifetime mutator."""
        dispatcher = TieredDispatcher({"listUsers": lambda: []}, cache=cache)

        dispatcher.set_cache_lifetime("listUsers", 30)

        assert dispatcher.operations.cache_lifetime("listUsers") == 30

    def test_trace_disabled(self, cache):
        """Test that disabled tracing still keeps the last error."""
        dispatcher = TieredDispatcher({}, cache=cache, trace_enabled=False)

        result = dispatcher.invoke("listUsers")

        assert result.trace == []
        assert dispatcher.trace == []
        assert dispatcher.last_error.code == "HANDLER_NOT_FOUND"

    def test_as_tuple(self, dispatcher):
        """Test the (success, value) view of a result."""
        success, value = dispatcher.invoke("listUsers").as_tuple()

        assert success is True
        assert value == ["alice", "bob"]
