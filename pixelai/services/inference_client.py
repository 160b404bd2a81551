"""
INFERENCE CLIENT MODULE
=======================

HTTP boundary to the PixelAI backend. Each method makes exactly one request
(no retry, no backoff) and either returns decoded data or raises one of the
errors from pixelai.errors. Callers in async code run these blocking calls in
a worker thread (asyncio.to_thread) so the event loop never stalls.

ENDPOINTS:
  POST /ask                  - {message, system_prompt, session_id} -> reply text (+ session_id)
  GET  /sessions             - authenticated only; {sessions: [{session_id, title, last_message_at}]}
  GET  /history/{session_id} - authenticated only; {history: [Message, ...]}

REPLY DECODING:
  Backend builds disagree on the field that carries the reply. decode_reply()
  takes the first non-empty string among config.REPLY_FIELDS and is the only
  place that knows about those variants.
"""

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from config import API_BASE_URL, REPLY_FIELDS, REQUEST_TIMEOUT
from pixelai.errors import MalformedResponse, NetworkFailure
from pixelai.models import AskRequest, InferenceReply, Message, RemoteSession

logger = logging.getLogger("PixelAI")


def decode_reply(payload: Any) -> InferenceReply:
    """
    Turn the JSON body of POST /ask into an InferenceReply.

    Raises MalformedResponse if the body is not a JSON object. A body with
    none of the reply fields decodes to InferenceReply(text=None); the
    controller substitutes the fallback reply for it.
    """
    if not isinstance(payload, dict):
        raise MalformedResponse(f"Expected a JSON object, got {type(payload).__name__}")

    text = None
    for field in REPLY_FIELDS:
        value = payload.get(field)
        if isinstance(value, str) and value.strip():
            text = value
            break

    session_id = payload.get("session_id")
    if session_id is not None:
        session_id = str(session_id).strip() or None

    return InferenceReply(text=text, session_id=session_id)


def _error_reason(response: requests.Response) -> str:
    """Readable reason for a non-2xx response; prefers the server's "detail" string."""
    try:
        body = response.json()
        if isinstance(body, dict) and isinstance(body.get("detail"), str):
            return f"{response.status_code} {body['detail']}"
    except ValueError:
        pass
    return f"{response.status_code} {response.reason or 'HTTP error'}".strip()


# ==============================================================================
# INFERENCE CLIENT CLASS
# ==============================================================================

class InferenceClient:
    """
    Thin wrapper over a requests.Session bound to one backend base URL.
    The credential is passed per call; this class keeps no identity state.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: Optional[float] = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    def _headers(self, credential: Optional[str], correlation_id: Optional[str] = None) -> dict:
        headers = {"Accept": "application/json"}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        if correlation_id:
            headers["X-Request-ID"] = correlation_id
        return headers

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """Send one request and return the decoded JSON body, or raise NetworkFailure/MalformedResponse."""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise NetworkFailure(f"Request timed out: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise NetworkFailure(f"Cannot connect to backend at {self.base_url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkFailure(f"Request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise NetworkFailure(_error_reason(response), status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(f"Response from {path} is not valid JSON") from e

    # -------------------------------------------------------------------------
    # POST /ask
    # -------------------------------------------------------------------------

    def ask(
        self,
        message: str,
        system_prompt: str,
        session_id: Optional[str] = None,
        credential: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> InferenceReply:
        """
        Send one conversation turn.

        session_id is None for the first turn of a conversation; afterwards the
        id the backend returned is sent so it can continue the same session.
        """
        body = AskRequest(message=message, system_prompt=system_prompt, session_id=session_id)
        logger.info("POST /ask [%s] session=%s", correlation_id, session_id)
        payload = self._request(
            "POST",
            "/ask",
            json=body.model_dump(),
            headers=self._headers(credential, correlation_id),
        )
        return decode_reply(payload)

    # -------------------------------------------------------------------------
    # GET /sessions, GET /history/{session_id}
    # -------------------------------------------------------------------------

    def list_sessions(self, credential: str) -> List[RemoteSession]:
        """Session list of the authenticated user, in the order the backend returns it."""
        payload = self._request("GET", "/sessions", headers=self._headers(credential))
        if not isinstance(payload, dict) or not isinstance(payload.get("sessions", []), list):
            raise MalformedResponse("GET /sessions did not return a sessions list")

        sessions = []
        for raw in payload.get("sessions", []):
            try:
                sessions.append(RemoteSession.model_validate(raw))
            except ValidationError as e:
                logger.warning("Skipping invalid session entry %r: %s", raw, e)
        return sessions

    def fetch_history(self, session_id: str, credential: str) -> List[Message]:
        """Full transcript of one backend session, in order."""
        path = f"/history/{quote(session_id, safe='')}"
        payload = self._request("GET", path, headers=self._headers(credential))
        if not isinstance(payload, dict) or not isinstance(payload.get("history"), list):
            raise MalformedResponse(f"GET {path} did not return a history list")

        try:
            return [Message.model_validate(raw) for raw in payload["history"]]
        except ValidationError as e:
            raise MalformedResponse(f"GET {path} returned an invalid message: {e}") from e
