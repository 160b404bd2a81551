"""
CONVERSATION CONTROLLER MODULE
==============================

Owns the live conversation: the transcript, the bound backend session id,
the pending attachment, and the in-flight request. Every other component is
called from here; nothing else writes the transcript or the history list.

TURN FLOW (send_turn):
  1. Validate: empty text -> EmptyInputError; a turn already pending -> TurnInFlightError.
  2. Append the user message right away (optimistic) and mark the turn in flight.
  3. POST /ask in a worker thread with the mode's system prompt and the bound session id.
  4. Success: append the reply (or the fallback text), bind the session id the
     first time one comes back, then persist:
       guest         -> full snapshot into the guest history list
       authenticated -> re-fetch GET /sessions (the backend is the source of truth)
  5. Failure: append one "Error: ..." assistant message and persist nothing.

Each turn gets a correlation id (sent as X-Request-ID). Starting a new
conversation, loading another one, or an identity switch cancels the pending
turn: its reply is dropped when it arrives, because it belongs to a
conversation that is no longer on screen.

IDENTITY:
  The controller listens to IdentityContext. Any switch resets the live
  conversation. Logging in empties the account history list (the cached copy
  may belong to someone else) and re-derives it from GET /sessions;
  logging out forgets the authenticated list and re-reads the guest list
  from the store. The two lists are never merged.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union
from uuid import uuid4

import requests

from config import APP_NAME, FALLBACK_REPLY
from pixelai.errors import (
    EmptyInputError,
    MalformedResponse,
    PixelAIError,
    SessionLoadFailure,
    TurnInFlightError,
)
from pixelai.models import (
    Attachment,
    IdentityState,
    Message,
    Mode,
    Namespace,
    Role,
    SessionRecord,
    TurnOutcome,
    TurnStatus,
)
from pixelai.services.history_index import HistoryIndex, derive_title
from pixelai.services.identity import IdentityContext
from pixelai.services.mode_machine import ModeStateMachine, Transition
from pixelai.utils.export import export_markdown
from pixelai.utils.time_info import utc_now

logger = logging.getLogger("PixelAI")

# Failures of the inference boundary that become transcript state instead of crashes.
REQUEST_ERRORS = (PixelAIError, requests.exceptions.RequestException, OSError)


@dataclass
class PendingTurn:
    """Identity and cancellation flag of the request currently in flight."""
    correlation_id: str = field(default_factory=lambda: uuid4().hex)
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


# ==============================================================================
# CONVERSATION CONTROLLER CLASS
# ==============================================================================

class ConversationController:
    """
    Turn-taking, session binding, and dual-mode persistence for one client.

    client is an InferenceClient (or anything with the same ask/list_sessions/
    fetch_history methods); its blocking calls run via asyncio.to_thread.
    """

    def __init__(
        self,
        client,
        store,
        identity: Optional[IdentityContext] = None,
        history: Optional[HistoryIndex] = None,
        modes: Optional[ModeStateMachine] = None,
        app_name: str = APP_NAME,
    ):
        self.client = client
        self.store = store
        self.identity = identity or IdentityContext()
        self.history_index = history or HistoryIndex(store)
        self.modes = modes or ModeStateMachine()
        self.app_name = app_name

        self._transcript: List[Message] = []
        self._active: Optional[SessionRecord] = None
        self._pending_attachment: Optional[Attachment] = None
        self._in_flight: Optional[PendingTurn] = None
        self.pending_refresh: Optional[asyncio.Task] = None

        self.identity.subscribe(self._on_identity_change)

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def transcript(self) -> Tuple[Message, ...]:
        """Live messages in append order. A tuple, so callers cannot edit it."""
        return tuple(self._transcript)

    @property
    def session_id(self) -> Optional[str]:
        """Backend session bound to the live conversation, if any."""
        return self._active.id if self._active else None

    @property
    def busy(self) -> bool:
        """Advisory only: True while a turn is waiting for its reply."""
        return self._in_flight is not None

    @property
    def mode(self) -> Mode:
        return self.modes.current

    @property
    def namespace(self) -> Namespace:
        """Active namespace; follows IdentityContext, never stored here."""
        return self.identity.namespace

    @property
    def pending_attachment(self) -> Optional[Attachment]:
        return self._pending_attachment

    def history(self) -> List[SessionRecord]:
        """History list of the active namespace, newest first."""
        return self.history_index.list_for(self.namespace)

    # -------------------------------------------------------------------------
    # Attachments
    # -------------------------------------------------------------------------

    def set_attachment(self, attachment: Attachment) -> None:
        """Hold a file descriptor for the next send_turn. Replaces any earlier one."""
        self._pending_attachment = attachment

    def clear_attachment(self) -> None:
        """Drop the pending attachment without sending it."""
        self._pending_attachment = None

    # -------------------------------------------------------------------------
    # Turn-taking
    # -------------------------------------------------------------------------

    async def send_turn(self, text: str, attachment: Optional[Attachment] = None) -> TurnOutcome:
        """
        Send one user turn and wait for the reply.

        Never raises for request problems: the returned TurnOutcome says what
        happened and the transcript already reflects it.
        """
        # Validate before touching any state
        if not text or not text.strip():
            logger.debug("Rejected empty message")
            return TurnOutcome(status=TurnStatus.REJECTED, error=EmptyInputError())

        if self._in_flight is not None:
            error = TurnInFlightError(self._in_flight.correlation_id)
            logger.warning("%s", error)
            return TurnOutcome(status=TurnStatus.REJECTED, error=error)

        # Optimistic append: the user's message shows before the backend answers
        attachment = attachment or self._pending_attachment
        user_message = Message(role=Role.USER, content=text, attachment=attachment)
        self._transcript.append(user_message)
        self._pending_attachment = None

        # First message of a new conversation names it
        if self._active is None:
            self._active = SessionRecord(title=derive_title(text), mode=self.modes.conversation_mode)

        turn = PendingTurn()
        self._in_flight = turn
        # Persist under the identity the turn started with, not whatever is active later
        identity = self.identity.state

        try:
            reply_text, session_id = await self._ask(text, identity, turn)
        except REQUEST_ERRORS as e:
            if turn.cancelled:
                return TurnOutcome(status=TurnStatus.CANCELLED, correlation_id=turn.correlation_id, error=e)
            logger.warning("Request %s failed: %s", turn.correlation_id, e)
            # The failure becomes part of the conversation instead of an exception
            error_message = Message(role=Role.ASSISTANT, content=f"Error: {e}")
            self._transcript.append(error_message)
            return TurnOutcome(
                status=TurnStatus.FAILED,
                correlation_id=turn.correlation_id,
                reply=error_message,
                error=e,
            )
        finally:
            # A cancelled turn was already replaced; only clear our own slot
            if self._in_flight is turn:
                self._in_flight = None

        # Reply to a conversation that is no longer on screen
        if turn.cancelled:
            logger.info("Dropping reply to cancelled request %s", turn.correlation_id)
            return TurnOutcome(status=TurnStatus.CANCELLED, correlation_id=turn.correlation_id)

        reply = Message(role=Role.ASSISTANT, content=reply_text)
        self._transcript.append(reply)
        self._bind_session(session_id)
        await self._persist(identity)
        return TurnOutcome(status=TurnStatus.REPLIED, correlation_id=turn.correlation_id, reply=reply)

    async def _ask(self, text: str, identity: IdentityState, turn: PendingTurn) -> Tuple[str, Optional[str]]:
        """Run POST /ask off the event loop; returns (reply text, session id)."""
        try:
            reply = await asyncio.to_thread(
                self.client.ask,
                text,
                self.modes.system_prompt(),
                self.session_id,
                identity.credential,
                turn.correlation_id,
            )
        except MalformedResponse as e:
            logger.warning("Request %s: %s; using fallback reply", turn.correlation_id, e)
            return FALLBACK_REPLY, None

        if reply.malformed:
            logger.warning("Request %s: reply had no text field; using fallback reply", turn.correlation_id)
            return FALLBACK_REPLY, reply.session_id
        return reply.text, reply.session_id

    def _bind_session(self, session_id: Optional[str]) -> None:
        """Bind the first session id the backend returns. A bound id never changes."""
        if not session_id or self._active is None:
            return
        if self._active.id is None:
            self._active = self._active.bind(session_id)
            logger.info("Bound conversation to session %s", session_id)
        elif self._active.id != session_id:
            logger.warning(
                "Backend returned session %s for conversation bound to %s; keeping %s",
                session_id, self._active.id, self._active.id,
            )

    async def _persist(self, identity: IdentityState) -> None:
        """Best-effort: failures are logged and never touch the live transcript."""
        if identity.namespace is Namespace.GUEST:
            # Guests have no backend history, so the snapshot carries the whole transcript
            record = self._active.model_copy(update={
                "messages": list(self._transcript),
                "last_activity": utc_now(),
                "remote": False,
            })
            if not self.history_index.add(Namespace.GUEST, record):
                logger.warning("Conversation %r kept in memory only; local save failed", record.title)
        else:
            # The backend already stored the turn; just re-read its list
            await self.refresh_history()

    def _cancel_in_flight(self) -> None:
        """Mark the pending turn cancelled so its reply is dropped, and free the slot."""
        if self._in_flight is not None:
            logger.info("Cancelling request %s", self._in_flight.correlation_id)
            self._in_flight.cancel()
            self._in_flight = None

    def _reset_conversation(self) -> None:
        """Empty transcript, no session binding. History lists are left alone."""
        self._cancel_in_flight()
        self._transcript = []
        self._active = None

    # -------------------------------------------------------------------------
    # Conversations and modes
    # -------------------------------------------------------------------------

    def start_new_conversation(self) -> None:
        """Fresh chat: empty transcript, no session id, chat mode. History is untouched."""
        self._reset_conversation()
        self.modes.reset()

    def switch_mode(self, target: Union[Mode, str]) -> Transition:
        """Mode bar switch (or opening settings). Keeps the conversation."""
        return self._apply_transition(self.modes.select(target))

    def start_new_mode(self, target: Union[Mode, str]) -> Transition:
        """The explicit "new" action (Create image, Study, New chat); may start a fresh conversation."""
        return self._apply_transition(self.modes.start_new(target))

    def back_to_chat(self) -> Transition:
        return self._apply_transition(self.modes.back_to_chat())

    def _apply_transition(self, transition: Transition) -> Transition:
        # The transition table decides; the controller only carries it out
        if transition.clears:
            self._reset_conversation()
        return transition

    async def load_conversation(self, record: SessionRecord) -> bool:
        """
        Make record the live conversation.

        Remote records are fetched by id first; if that fails the current
        conversation is left exactly as it was and False is returned.
        """
        identity = self.identity.state
        if record.remote:
            try:
                messages = await self._fetch_remote(record, identity)
            except SessionLoadFailure as e:
                logger.warning("%s", e)
                return False
            if self.identity.state != identity:
                logger.info("Identity changed while loading %s; ignoring it", record.id)
                return False
        else:
            # Guest records carry their own snapshot
            messages = list(record.messages)

        # Only now is it safe to replace the live conversation
        self._cancel_in_flight()
        self._transcript = list(messages)
        self._active = record.model_copy(update={"messages": []})
        self.modes.select(record.mode)
        logger.info("Loaded conversation %r (%d messages)", record.title, len(messages))
        return True

    async def _fetch_remote(self, record: SessionRecord, identity: IdentityState) -> List[Message]:
        """GET /history/{id}; every failure comes back as SessionLoadFailure."""
        if identity.namespace is not Namespace.AUTHENTICATED or not record.id:
            raise SessionLoadFailure(record.id, "remote session requires a signed-in user")
        try:
            return await asyncio.to_thread(self.client.fetch_history, record.id, identity.credential)
        except REQUEST_ERRORS as e:
            raise SessionLoadFailure(record.id, str(e)) from e

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def refresh_history(self) -> List[SessionRecord]:
        """
        Re-derive the active namespace's list: from GET /sessions when signed
        in, from the store as guest. A failed fetch keeps the current list.
        """
        identity = self.identity.state
        if identity.namespace is Namespace.GUEST:
            return self.history_index.load(Namespace.GUEST)

        try:
            sessions = await asyncio.to_thread(self.client.list_sessions, identity.credential)
        except REQUEST_ERRORS as e:
            # Right after a login this is the empty list installed by the identity listener
            logger.warning("Could not refresh session list: %s", e)
            return self.history_index.list_for(Namespace.AUTHENTICATED)

        # The user may have signed out (or in as someone else) while we waited
        if self.identity.state != identity:
            logger.info("Identity changed during session refresh; dropping result")
            return self.history_index.list_for(self.namespace)

        self.history_index.replace(Namespace.AUTHENTICATED, [s.to_record() for s in sessions])
        return self.history_index.list_for(Namespace.AUTHENTICATED)

    def clear_history(self) -> bool:
        """The explicit "clear history" action for the active namespace."""
        return self.history_index.clear(self.namespace)

    def _on_identity_change(self, previous: IdentityState, current: IdentityState) -> None:
        """Identity listener: nothing from the previous identity survives the switch."""
        # Live conversation first, so a late reply cannot land in the new namespace
        self._reset_conversation()
        self.modes.reset()
        self._pending_attachment = None

        if current.namespace is Namespace.GUEST:
            # Keep the account cache on disk; re-read guest history in case another window wrote it
            self.history_index.discard(Namespace.AUTHENTICATED)
            self.history_index.load(Namespace.GUEST)
            return

        # Signing in: the cached list may be another account's, so start empty
        # and let GET /sessions fill it
        self.history_index.reset(Namespace.AUTHENTICATED)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (e.g. called from sync code); caller runs refresh_history().
            self.pending_refresh = None
            return
        self.pending_refresh = loop.create_task(self.refresh_history())

    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------

    def export_conversation(self) -> str:
        """Markdown rendering of the live transcript. No side effects."""
        return export_markdown(self._transcript, self.app_name)
