"""Tests for pixelai.services.identity."""

import pytest

from pixelai.models import IdentityState, Namespace
from pixelai.services.identity import IdentityContext
from pixelai.services.store import MemoryStore


class TestIdentityContext:
    def test_defaults_to_guest(self):
        identity = IdentityContext()
        assert identity.namespace is Namespace.GUEST
        assert identity.credential is None
        assert identity.is_authenticated is False

    def test_login_and_logout_notify_listeners(self):
        identity = IdentityContext()
        events = []
        identity.subscribe(lambda previous, current: events.append((previous.namespace, current.namespace)))

        identity.login("tok-1", email="ada@example.com")
        assert identity.is_authenticated
        assert identity.credential == "tok-1"
        assert identity.state.email == "ada@example.com"

        identity.logout()
        assert identity.namespace is Namespace.GUEST
        assert identity.credential is None
        assert events == [
            (Namespace.GUEST, Namespace.AUTHENTICATED),
            (Namespace.AUTHENTICATED, Namespace.GUEST),
        ]

    def test_no_event_when_nothing_changes(self):
        identity = IdentityContext()
        events = []
        identity.subscribe(lambda previous, current: events.append(current))
        identity.logout()
        assert events == []

    def test_unsubscribe(self):
        identity = IdentityContext()
        events = []
        listener = lambda previous, current: events.append(current)  # noqa: E731
        identity.subscribe(listener)
        identity.unsubscribe(listener)
        identity.login("tok")
        assert events == []

    def test_login_requires_credential(self):
        with pytest.raises(ValueError):
            IdentityContext().login("   ")


class TestIdentityFromStore:
    def test_token_in_store_starts_authenticated(self):
        store = MemoryStore()
        store.save(Namespace.AUTHENTICATED, "token", "stored-token")
        store.save(Namespace.AUTHENTICATED, "email", "ada@example.com")
        identity = IdentityContext.from_store(store)
        assert identity.state == IdentityState(
            namespace=Namespace.AUTHENTICATED,
            credential="stored-token",
            email="ada@example.com",
        )

    def test_no_token_starts_as_guest(self):
        assert IdentityContext.from_store(MemoryStore()).namespace is Namespace.GUEST
