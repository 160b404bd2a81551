"""
DATA MODELS MODULE
==================

This file defines the Pydantic models shared by the services: the messages
that make up a transcript, the session records kept in the history list, and
the payloads exchanged with the backend. Persisted JSON is produced with
model_dump(mode="json") and read back with model_validate.

MODELS:
  Attachment      - Descriptor of a file the user attached (name, size, MIME type). Contents are never read.
  Message         - One transcript entry (role + content + optional attachment). Frozen once created.
  SessionRecord   - One past conversation in the history list (id, title, snapshot, activity, mode).
  AskRequest      - Body of POST /ask.
  InferenceReply  - Decoded reply of POST /ask (text or None, optional session_id).
  RemoteSession   - One entry of GET /sessions.
  IdentityState   - Active namespace plus the opaque credential.
  TurnOutcome     - What send_turn resolved to (replied, failed, rejected, cancelled).
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from pixelai.utils.time_info import UNKNOWN_ACTIVITY, parse_timestamp, utc_now

# ==============================================================================
# ENUMS
# ==============================================================================

class Role(str, Enum):
    """Who authored a message. Never reassigned after append."""
    USER = "user"
    ASSISTANT = "assistant"


class Mode(str, Enum):
    """Assistant mode. SETTINGS is a screen, not a conversation mode."""
    CHAT = "chat"
    IMAGE = "image"
    STUDY = "study"
    SETTINGS = "settings"

    @property
    def is_conversational(self) -> bool:
        return self is not Mode.SETTINGS


class Namespace(str, Enum):
    """Partition of persisted session data. Guest and authenticated are never merged."""
    GUEST = "guest"
    AUTHENTICATED = "authenticated"


class TurnStatus(str, Enum):
    REPLIED = "replied"      # assistant reply appended
    FAILED = "failed"        # synthesized error message appended
    REJECTED = "rejected"    # nothing appended (empty input, turn in flight)
    CANCELLED = "cancelled"  # reply arrived after the conversation was abandoned

# ==============================================================================
# MESSAGE AND SESSION MODELS
# ==============================================================================

class Attachment(BaseModel):
    """
    A file the user picked. Only the descriptor travels with the message;
    the client never opens or interprets the file itself.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    size_bytes: int = Field(..., ge=0)
    mime_type: str = "application/octet-stream"


class Message(BaseModel):
    """
    A single message in a conversation (user or assistant).
    Ordering is append order; frozen so nothing can edit it after append.
    """
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    attachment: Optional[Attachment] = None


class SessionRecord(BaseModel):
    """
    One conversation in the history list.

    - id: backend session id, None until the first successful reply binds one.
    - local_id: client-side key so unbound guest conversations stay addressable.
    - messages: full snapshot for guest records; empty for remote records,
      which are fetched by id when opened.
    - remote: True when the record is a lazy reference to a backend session.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    local_id: str = Field(default_factory=lambda: uuid4().hex)
    title: str
    messages: List[Message] = Field(default_factory=list)
    last_activity: datetime = Field(default_factory=utc_now)
    mode: Mode = Mode.CHAT
    remote: bool = False

    @property
    def key(self) -> str:
        """Identity of the conversation inside a history list."""
        return self.id or self.local_id

    def bind(self, session_id: str) -> "SessionRecord":
        """Return a copy with session_id bound. A bound id can never change."""
        if self.id is not None and self.id != session_id:
            raise ValueError(
                f"Session {self.id!r} is already bound; refusing to rebind to {session_id!r}"
            )
        return self.model_copy(update={"id": session_id})

# ==============================================================================
# BACKEND PAYLOADS
# ==============================================================================

class AskRequest(BaseModel):
    """
    Request body for POST /ask.

    - session_id: None on the first turn of a conversation; the backend may
      answer with a new id which is then sent on every following turn.
    """
    message: str
    system_prompt: str
    session_id: Optional[str] = None


class InferenceReply(BaseModel):
    """
    Reply of POST /ask, decoded once at the HTTP boundary.

    text is the first non-empty field among config.REPLY_FIELDS, or None when
    the backend sent none of them.
    """
    text: Optional[str] = None
    session_id: Optional[str] = None

    @property
    def malformed(self) -> bool:
        return self.text is None


class RemoteSession(BaseModel):
    """One entry of GET /sessions."""
    session_id: str
    title: str = ""
    last_message_at: Optional[Union[str, int, float]] = None

    def to_record(self) -> SessionRecord:
        """Map to a lazy history entry; messages are fetched when the record is opened."""
        return SessionRecord(
            id=self.session_id,
            local_id=self.session_id,
            title=self.title or "Untitled chat",
            last_activity=parse_timestamp(self.last_message_at) or UNKNOWN_ACTIVITY,
            remote=True,
        )


class IdentityState(BaseModel):
    """Who is using the client. The credential is opaque to this package."""
    model_config = ConfigDict(frozen=True)

    namespace: Namespace = Namespace.GUEST
    credential: Optional[str] = None
    email: Optional[str] = None


class TurnOutcome(BaseModel):
    """
    What a send_turn call resolved to. Errors are reported here instead of
    being raised, so callers only ever see transcript state and this summary.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: TurnStatus
    correlation_id: Optional[str] = None
    reply: Optional[Message] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status is TurnStatus.REPLIED
