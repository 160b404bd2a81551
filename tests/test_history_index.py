"""
Tests for pixelai.services.history_index (title derivation and the capped,
per-namespace session lists).
"""

from datetime import datetime, timedelta, timezone

from pixelai.models import Message, Namespace, RemoteSession, Role, SessionRecord
from pixelai.services.history_index import HistoryIndex, derive_title
from pixelai.services.store import MemoryStore, PersistentStore


def record(title, **kwargs):
    return SessionRecord(title=title, **kwargs)


class TestDeriveTitle:
    def test_short_message_is_kept(self):
        assert derive_title("Hello") == "Hello"

    def test_exactly_thirty_characters_has_no_ellipsis(self):
        text = "a" * 30
        assert derive_title(text) == text

    def test_long_message_is_cut_with_ellipsis(self):
        text = "Explain the theory of relativity in simple terms"
        assert derive_title(text) == text[:30] + "..."

    def test_whitespace_is_collapsed(self):
        assert derive_title("  what\n is   this  ") == "what is this"

    def test_blank_message(self):
        assert derive_title("   ") == "New chat"


class TestHistoryIndexAdd:
    def test_newest_first(self, store):
        index = HistoryIndex(store)
        index.add(Namespace.GUEST, record("first"))
        index.add(Namespace.GUEST, record("second"))
        assert [r.title for r in index.list_for(Namespace.GUEST)] == ["second", "first"]

    def test_capped_at_twenty_oldest_evicted(self, store):
        index = HistoryIndex(store)
        for i in range(21):
            index.add(Namespace.GUEST, record(f"chat {i}"))
        titles = [r.title for r in index.list_for(Namespace.GUEST)]
        assert len(titles) == 20
        assert titles[0] == "chat 20"
        assert titles[-1] == "chat 1"
        assert "chat 0" not in titles

    def test_never_exceeds_custom_limit(self, store):
        index = HistoryIndex(store, limit=3)
        for i in range(10):
            index.add(Namespace.GUEST, record(f"chat {i}"))
            assert len(index.list_for(Namespace.GUEST)) <= 3

    def test_same_conversation_moves_to_top(self, store):
        index = HistoryIndex(store)
        first = record("first")
        index.add(Namespace.GUEST, first)
        index.add(Namespace.GUEST, record("second"))
        updated = first.model_copy(update={"messages": [Message(role=Role.USER, content="again")]})
        index.add(Namespace.GUEST, updated)
        entries = index.list_for(Namespace.GUEST)
        assert [r.title for r in entries] == ["first", "second"]
        assert entries[0].messages[0].content == "again"

    def test_binding_does_not_duplicate(self, store):
        index = HistoryIndex(store)
        unbound = record("chat")
        index.add(Namespace.GUEST, unbound)
        index.add(Namespace.GUEST, unbound.bind("abc123"))
        entries = index.list_for(Namespace.GUEST)
        assert len(entries) == 1
        assert entries[0].id == "abc123"

    def test_persists_to_store(self, store):
        index = HistoryIndex(store)
        assert index.add(Namespace.GUEST, record("Hello")) is True
        saved = store.load(Namespace.GUEST, "chat_history")
        assert [entry["title"] for entry in saved] == ["Hello"]

    def test_store_failure_keeps_memory_list(self):
        index = HistoryIndex(MemoryStore(fail_writes=True))
        assert index.add(Namespace.GUEST, record("Hello")) is False
        assert [r.title for r in index.list_for(Namespace.GUEST)] == ["Hello"]


class TestHistoryIndexNamespaces:
    def test_lists_are_independent(self, store):
        index = HistoryIndex(store)
        index.add(Namespace.GUEST, record("guest chat"))
        index.add(Namespace.AUTHENTICATED, record("account chat"))
        assert [r.title for r in index.list_for(Namespace.GUEST)] == ["guest chat"]
        assert [r.title for r in index.list_for(Namespace.AUTHENTICATED)] == ["account chat"]

    def test_clear_only_touches_one_namespace(self, store):
        index = HistoryIndex(store)
        index.add(Namespace.GUEST, record("guest chat"))
        index.add(Namespace.AUTHENTICATED, record("account chat"))
        index.clear(Namespace.GUEST)
        assert index.list_for(Namespace.GUEST) == []
        assert store.load(Namespace.GUEST, "chat_history") is None
        assert len(index.list_for(Namespace.AUTHENTICATED)) == 1

    def test_discard_keeps_stored_copy(self, store):
        index = HistoryIndex(store)
        index.add(Namespace.AUTHENTICATED, record("cached"))
        index.discard(Namespace.AUTHENTICATED)
        assert store.load(Namespace.AUTHENTICATED, "chat_history") is not None


class TestHistoryIndexLoading:
    def test_reads_fresh_from_disk(self, tmp_path):
        HistoryIndex(PersistentStore(tmp_path)).add(
            Namespace.GUEST,
            record("Hello", messages=[Message(role=Role.USER, content="Hello")]),
        )
        reloaded = HistoryIndex(PersistentStore(tmp_path)).list_for(Namespace.GUEST)
        assert len(reloaded) == 1
        assert reloaded[0].title == "Hello"
        assert reloaded[0].messages[0].role is Role.USER

    def test_skips_unreadable_entries(self, store):
        good = record("good").model_dump(mode="json")
        store.save(Namespace.GUEST, "chat_history", [good, {"no": "title"}, "junk"])
        assert [r.title for r in HistoryIndex(store).load(Namespace.GUEST)] == ["good"]

    def test_non_list_payload_is_ignored(self, store):
        store.save(Namespace.GUEST, "chat_history", {"oops": True})
        assert HistoryIndex(store).list_for(Namespace.GUEST) == []

    def test_stored_list_longer_than_limit_is_capped(self, store):
        store.save(Namespace.GUEST, "chat_history", [record(f"c{i}").model_dump(mode="json") for i in range(25)])
        assert len(HistoryIndex(store).list_for(Namespace.GUEST)) == 20


class TestHistoryIndexReplace:
    def test_sorted_newest_first_and_capped(self, store):
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        remote = [
            record(f"r{i}", id=f"s{i}", remote=True, last_activity=base + timedelta(hours=i))
            for i in range(25)
        ]
        index = HistoryIndex(store)
        index.replace(Namespace.AUTHENTICATED, remote)
        entries = index.list_for(Namespace.AUTHENTICATED)
        assert len(entries) == 20
        assert entries[0].title == "r24"
        assert entries[-1].title == "r5"
        assert index.list_for(Namespace.GUEST) == []

    def test_undated_remote_sessions_go_last_in_backend_order(self, store):
        dated = record("dated", id="s1", remote=True, last_activity=datetime(2026, 1, 1, tzinfo=timezone.utc))
        undated = [
            RemoteSession(session_id="u1", title="first undated").to_record(),
            RemoteSession(session_id="u2", title="second undated", last_message_at="not a date").to_record(),
        ]
        index = HistoryIndex(store)
        index.replace(Namespace.AUTHENTICATED, undated + [dated])
        assert [r.title for r in index.list_for(Namespace.AUTHENTICATED)] == [
            "dated", "first undated", "second undated",
        ]


class TestHistoryIndexReset:
    def test_empties_memory_and_store(self, store):
        index = HistoryIndex(store)
        index.add(Namespace.AUTHENTICATED, record("previous account"))
        assert index.reset(Namespace.AUTHENTICATED) is True
        assert index.list_for(Namespace.AUTHENTICATED) == []
        assert store.load(Namespace.AUTHENTICATED, "chat_history") is None

    def test_does_not_reload_stale_cache(self, store):
        store.save(Namespace.AUTHENTICATED, "chat_history", [record("stale").model_dump(mode="json")])
        index = HistoryIndex(store)
        index.reset(Namespace.AUTHENTICATED)
        assert index.list_for(Namespace.AUTHENTICATED) == []

    def test_leaves_other_namespace_alone(self, store):
        index = HistoryIndex(store)
        index.add(Namespace.GUEST, record("guest chat"))
        index.reset(Namespace.AUTHENTICATED)
        assert [r.title for r in index.list_for(Namespace.GUEST)] == ["guest chat"]
