"""
IDENTITY CONTEXT MODULE
=======================

Who is using the client right now: guest, or authenticated with an opaque
bearer credential. The login/signup flow lives elsewhere; it calls login()
or logout() here, and listeners (the ConversationController) react to the
change by switching namespace.

Identity fields ("token", "email") are owned by the auth flow. This module
only reads them from the store at startup (from_store) and never writes them.
"""

import logging
from typing import Callable, List, Optional

from pixelai.models import IdentityState, Namespace

logger = logging.getLogger("PixelAI")

IdentityListener = Callable[[IdentityState, IdentityState], None]

TOKEN_KEY = "token"
EMAIL_KEY = "email"


class IdentityContext:
    """Current IdentityState plus a list of change listeners."""

    def __init__(self, state: Optional[IdentityState] = None):
        self._state = state or IdentityState()
        self._listeners: List[IdentityListener] = []

    @classmethod
    def from_store(cls, store) -> "IdentityContext":
        """Start authenticated if the auth flow left a token behind, otherwise as guest."""
        token = store.load(Namespace.AUTHENTICATED, TOKEN_KEY)
        email = store.load(Namespace.AUTHENTICATED, EMAIL_KEY)
        if isinstance(token, str) and token.strip():
            return cls(IdentityState(
                namespace=Namespace.AUTHENTICATED,
                credential=token.strip(),
                email=email if isinstance(email, str) else None,
            ))
        return cls()

    @property
    def state(self) -> IdentityState:
        return self._state

    @property
    def namespace(self) -> Namespace:
        return self._state.namespace

    @property
    def credential(self) -> Optional[str]:
        return self._state.credential

    @property
    def is_authenticated(self) -> bool:
        return self._state.namespace is Namespace.AUTHENTICATED

    def subscribe(self, listener: IdentityListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: IdentityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set(self, new_state: IdentityState) -> None:
        previous = self._state
        if previous == new_state:
            return
        self._state = new_state
        logger.info("Identity changed: %s -> %s", previous.namespace.value, new_state.namespace.value)
        for listener in list(self._listeners):
            listener(previous, new_state)

    def login(self, credential: str, email: Optional[str] = None) -> None:
        if not credential or not credential.strip():
            raise ValueError("A credential is required to log in")
        self._set(IdentityState(
            namespace=Namespace.AUTHENTICATED,
            credential=credential.strip(),
            email=email,
        ))

    def logout(self) -> None:
        self._set(IdentityState())
