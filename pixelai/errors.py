"""
ERRORS MODULE
=============

Error types used inside the client. None of them escape
ConversationController as a crash: each is handled where it happens and
turned into transcript state or a TurnOutcome.

  EmptyInputError     - send_turn text was empty after trimming; nothing sent.
  TurnInFlightError   - send_turn called while the previous turn is still pending.
  NetworkFailure      - /ask (or another request) failed: connection, timeout, non-2xx.
  MalformedResponse   - the backend answered with something that is not a JSON object.
  PersistenceFailure  - local storage read/write failed; the live transcript is kept.
  SessionLoadFailure  - full history of a remote session could not be fetched.
"""

from typing import Optional


class PixelAIError(Exception):
    """Base class for all client errors."""


class EmptyInputError(PixelAIError, ValueError):
    def __init__(self, message: str = "Message is empty"):
        super().__init__(message)


class TurnInFlightError(PixelAIError):
    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id
        super().__init__(f"A message is already being sent (request {correlation_id})")


class NetworkFailure(PixelAIError):
    """
    An outbound request did not produce a usable 2xx response.
    status_code is set for HTTP errors and None for transport errors.
    """

    def __init__(self, reason: str, status_code: Optional[int] = None):
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)


class MalformedResponse(PixelAIError):
    pass


class PersistenceFailure(PixelAIError):
    pass


class SessionLoadFailure(PixelAIError):
    def __init__(self, session_id: Optional[str], reason: str):
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Could not load session {session_id}: {reason}")
