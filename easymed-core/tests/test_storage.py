"""
Tests for the in-memory key-value store.
"""


class TestInMemoryStore:
    """Tests for TTL expiry and atomic updates."""

    def test_set_get_delete(self, store):
        store.set("a", 1)

        assert store.get("a") == 1
        assert store.delete("a") is True
        assert store.get("a") is None
        assert store.delete("a") is False

    def test_ttl_expiry_is_lazy(self, store, clock):
        """Should hide a value once its TTL has elapsed."""
        store.set("a", 1, ttl=10)

        clock.advance(9.9)
        assert store.get("a") == 1

        clock.advance(0.1)
        assert store.get("a") is None

    def test_update_returns_result_and_stores_value(self, store):
        result = store.update("counter", lambda current: ((current or 0) + 1, "ok"))

        assert result == "ok"
        assert store.get("counter") == 1

    def test_update_with_none_deletes(self, store):
        store.set("a", 1)

        store.update("a", lambda current: (None, current))

        assert store.get("a") is None

    def test_update_keeps_existing_expiry(self, store, clock):
        """Updating without a TTL should not extend the key's lifetime."""
        store.set("a", 1, ttl=10)
        clock.advance(5)

        store.update("a", lambda current: (current + 1, None))
        clock.advance(5)

        assert store.get("a") is None

    def test_keys_and_cleanup(self, store, clock):
        store.set("quota:a", 1, ttl=5)
        store.set("quota:b", 2)
        store.set("other", 3)

        assert sorted(store.keys("quota:")) == ["quota:a", "quota:b"]

        clock.advance(5)
        assert store.cleanup() == 1
        assert len(store) == 2
