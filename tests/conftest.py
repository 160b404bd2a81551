"""Shared fixtures and helpers for the PixelAI client tests."""

from typing import Iterable, Optional
from unittest.mock import MagicMock

import pytest

from pixelai.models import InferenceReply, RemoteSession
from pixelai.services.conversation import ConversationController
from pixelai.services.identity import IdentityContext
from pixelai.services.store import MemoryStore


def make_mock_client(
    replies: Optional[Iterable] = None,
    sessions: Optional[list] = None,
    history: Optional[list] = None,
) -> MagicMock:
    """
    A stand-in for InferenceClient. ask() returns the given replies in order
    (plain strings become InferenceReply(text=...)); an exception in the list
    is raised instead.
    """
    client = MagicMock()
    queue = [
        InferenceReply(text=r) if isinstance(r, str) else r
        for r in (replies if replies is not None else ["Hi there"])
    ]
    client.ask.side_effect = queue
    client.list_sessions.return_value = sessions if sessions is not None else []
    client.fetch_history.return_value = history if history is not None else []
    return client


def make_controller(client=None, store=None, identity=None) -> ConversationController:
    return ConversationController(
        client if client is not None else make_mock_client(),
        store if store is not None else MemoryStore(),
        identity=identity or IdentityContext(),
        app_name="PixelAI",
    )


def remote_session(session_id: str, title: str, when: str) -> RemoteSession:
    return RemoteSession(session_id=session_id, title=title, last_message_at=when)


@pytest.fixture
def store():
    return MemoryStore()
