"""
Tests for the session registry.

Run tests:
    pytest tests/test_sessions.py -v
"""

import threading

from api.sessions import SessionRegistry


class TestResolve:
    """Test token resolution."""

    def test_absent_token_creates_session(self):
        registry = SessionRegistry()
        token, is_new = registry.resolve(None)
        assert is_new is True
        assert token in registry
        assert registry.get(token).data == {}

    def test_known_token_is_returned_unchanged(self):
        registry = SessionRegistry()
        token, _ = registry.resolve(None)
        registry.get(token).data["cursor"] = 12

        again, is_new = registry.resolve(token)
        assert again == token
        assert is_new is False
        assert registry.get(token).data == {"cursor": 12}
        assert len(registry) == 1

    def test_unknown_token_mints_a_new_one(self):
        registry = SessionRegistry()
        token, is_new = registry.resolve("forged-token")
        assert is_new is True
        assert token != "forged-token"
        assert "forged-token" not in registry

    def test_empty_string_counts_as_absent(self):
        registry = SessionRegistry()
        token, is_new = registry.resolve("")
        assert is_new is True
        assert token

    def test_tokens_are_unique(self):
        registry = SessionRegistry()
        tokens = {registry.resolve(None)[0] for _ in range(200)}
        assert len(tokens) == 200


class TestConcurrency:
    """Test that concurrent resolution never duplicates sessions."""

    def test_concurrent_resolve_of_known_token(self):
        registry = SessionRegistry()
        token, _ = registry.resolve(None)
        results = []

        def worker():
            for _ in range(100):
                results.append(registry.resolve(token))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(result == (token, False) for result in results)
        assert len(registry) == 1

    def test_concurrent_creation(self):
        registry = SessionRegistry()

        def worker():
            for _ in range(50):
                registry.create()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 400
        assert len({s.token for s in registry.list()}) == 400


class TestListing:
    """Test registry listing."""

    def test_list_is_oldest_first(self):
        registry = SessionRegistry()
        first = registry.create()
        second = registry.create()
        listed = registry.list()
        assert [s.token for s in listed] == [first.token, second.token]

    def test_get_unknown(self):
        registry = SessionRegistry()
        assert registry.get("nope") is None
        assert registry.get(None) is None

    def test_to_dict(self):
        registry = SessionRegistry()
        session = registry.create()
        data = session.to_dict()
        assert data["token"] == session.token
        assert data["data"] == {}
        assert "created_at" in data
