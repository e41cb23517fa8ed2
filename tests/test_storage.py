"""Unit tests for KeyStore component."""

import pytest

from mini_kv.errors import CommandError, StorageUnavailableError
from mini_kv.storage import REMOVE, KeyStore, LockTable, Record


@pytest.fixture
def store(clock) -> KeyStore:
    """Create a fresh KeyStore instance for each test."""
    return KeyStore("strings", LockTable(4), clock=clock)


class TestKeyStoreBasics:
    """Test basic key-value operations."""

    def test_get_nonexistent_key_returns_none(self, store: KeyStore) -> None:
        """Test that getting a non-existent key returns None."""
        assert store.get("nonexistent") is None
        assert store.get_record("nonexistent") is None

    def test_upsert_creates_record_and_returns_none(self, store: KeyStore) -> None:
        """Test that upserting an absent key creates it and reports no previous value."""
        assert store.upsert("foo", "bar") is None
        assert store.get("foo") == "bar"

    def test_upsert_returns_previous_value(self, store: KeyStore) -> None:
        """Test that upserting an existing key returns the old value."""
        store.upsert("key", "value1")
        assert store.upsert("key", "value2") == "value1"
        assert store.get("key") == "value2"

    def test_delete_existing_key_returns_true(self, store: KeyStore) -> None:
        """Test that deleting an existing key returns True."""
        store.upsert("foo", "bar")
        assert store.delete("foo") is True
        assert store.get("foo") is None

    def test_delete_nonexistent_key_returns_false(self, store: KeyStore) -> None:
        """Test that deleting a non-existent key returns False."""
        assert store.delete("nonexistent") is False

    def test_exists(self, store: KeyStore) -> None:
        """Test that exists reflects inserts and deletes."""
        assert store.exists("foo") is False
        store.upsert("foo", "bar")
        assert store.exists("foo") is True

    def test_keys_and_len(self, store: KeyStore) -> None:
        """Test that keys() returns a snapshot of all keys."""
        store.upsert("a", "1")
        store.upsert("b", "2")
        assert sorted(store.keys()) == ["a", "b"]
        assert len(store) == 2


class TestTryInsert:
    """Test insert-if-absent semantics."""

    def test_try_insert_absent_key(self, store: KeyStore) -> None:
        """Test that inserting an absent key succeeds."""
        assert store.try_insert("foo", "bar") is True
        assert store.get("foo") == "bar"

    def test_try_insert_existing_key_does_not_mutate(self, store: KeyStore, clock) -> None:
        """Test that a failed insert leaves the record untouched."""
        store.try_insert("foo", "bar")
        before = store.get_record("foo")
        clock.advance(5)

        assert store.try_insert("foo", "baz") is False
        assert store.get_record("foo") == before


class TestMutate:
    """Test read-modify-write operations."""

    def test_mutate_absent_key_receives_none(self, store: KeyStore) -> None:
        """Test that the transform sees None for an absent key."""
        seen = []

        def fn(current):
            seen.append(current)
            return "x"

        assert store.mutate("foo", fn) == "x"
        assert seen == [None]

    def test_mutate_existing_key(self, store: KeyStore) -> None:
        """Test that the transform result replaces the value."""
        store.upsert("foo", "ab")
        assert store.mutate("foo", lambda current: current + "c") == "abc"
        assert store.get("foo") == "abc"

    def test_mutate_remove_deletes_record(self, store: KeyStore) -> None:
        """Test that returning REMOVE deletes the record."""
        store.upsert("foo", "bar")
        assert store.mutate("foo", lambda current: REMOVE) is None
        assert store.exists("foo") is False

    def test_mutate_remove_on_absent_key_creates_nothing(self, store: KeyStore) -> None:
        """Test that returning REMOVE for an absent key is a no-op."""
        assert store.mutate("foo", lambda current: REMOVE) is None
        assert store.exists("foo") is False

    def test_mutate_exception_writes_nothing(self, store: KeyStore) -> None:
        """Test that a failing transform leaves the record unchanged."""
        store.upsert("foo", "bar")

        def fail(current):
            raise ValueError("boom")

        with pytest.raises(ValueError):
            store.mutate("foo", fail)
        assert store.get("foo") == "bar"


class TestTimestamps:
    """Test created_at / updated_at bookkeeping."""

    def test_new_record_has_equal_timestamps(self, store: KeyStore, clock) -> None:
        """Test that a fresh record is created and updated at the same instant."""
        store.upsert("foo", "bar")
        record = store.get_record("foo")
        assert isinstance(record, Record)
        assert record.created_at == record.updated_at == clock.now

    def test_update_keeps_created_at(self, store: KeyStore, clock) -> None:
        """Test that updates refresh updated_at but never created_at."""
        store.upsert("foo", "bar")
        created = clock.now
        clock.advance(10)

        store.upsert("foo", "baz")
        record = store.get_record("foo")

        assert record.created_at == created
        assert record.updated_at == clock.now

    def test_mutate_refreshes_updated_at(self, store: KeyStore, clock) -> None:
        """Test that mutate refreshes updated_at."""
        store.upsert("foo", "a")
        clock.advance(3)
        store.mutate("foo", lambda current: current + "b")
        assert store.get_record("foo").updated_at == clock.now

    def test_reads_do_not_touch_updated_at(self, store: KeyStore, clock) -> None:
        """Test that reads never refresh updated_at."""
        store.upsert("foo", "bar")
        clock.advance(10)
        store.get("foo")
        store.exists("foo")
        assert store.get_record("foo").updated_at != clock.now


class TestKeyValidation:
    """Test rejection of malformed keys."""

    @pytest.mark.parametrize("key", ["", None, 42, b"bytes"])
    def test_invalid_key_raises_command_error(self, store: KeyStore, key) -> None:
        """Test that non-string or empty keys are rejected."""
        with pytest.raises(CommandError, match="invalid key"):
            store.upsert(key, "value")
        assert len(store) == 0


class TestClose:
    """Test storage unavailability."""

    def test_operations_after_close_raise(self, store: KeyStore) -> None:
        """Test that every operation fails once the store is closed."""
        store.upsert("foo", "bar")
        store.close()

        with pytest.raises(StorageUnavailableError):
            store.get("foo")
        with pytest.raises(StorageUnavailableError):
            store.upsert("foo", "baz")
        with pytest.raises(StorageUnavailableError):
            store.try_insert("new", "x")
        with pytest.raises(StorageUnavailableError):
            store.keys()

    def test_close_is_idempotent(self, store: KeyStore) -> None:
        """Test that closing twice is allowed."""
        store.close()
        store.close()


class TestLockTable:
    """Test lock striping."""

    def test_stripe_is_stable_and_in_range(self) -> None:
        """Test that a key always maps to the same stripe."""
        table = LockTable(16)
        stripe = table.stripe_for("foo")
        assert 0 <= stripe < 16
        assert table.stripe_for("foo") == stripe

    def test_hold_is_reentrant(self) -> None:
        """Test that a thread can re-acquire stripes it already holds."""
        table = LockTable(2)
        with table.hold("a", "b", "c"):
            with table.hold("a"):
                pass

    def test_zero_stripes_rejected(self) -> None:
        """Test that a lock table needs at least one stripe."""
        with pytest.raises(ValueError):
            LockTable(0)
