"""
CONFIGURATION MODULE
====================

PURPOSE:
  Central place for all PixelAI client settings: backend URL, local storage
  path, history limits, reply-shape compatibility list, and the system prompt
  sent with each assistant mode.

WHAT THIS FILE DOES:
  - Loads environment variables from .env (so URLs and paths stay out of code).
  - Defines where per-namespace local storage lives (database/local_storage).
  - Exposes API_BASE_URL and REQUEST_TIMEOUT for the inference client.
  - Defines HISTORY_LIMIT (sessions kept per namespace) and TITLE_MAX_CHARS.
  - Holds the system prompt for each conversational mode (chat, image, study).

USAGE:
  Import what you need: `from config import API_BASE_URL, HISTORY_LIMIT`
  All services import from here so behaviour is consistent.
"""

import os
import logging
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
# Used when an environment value is present but unusable (e.g. bad timeout).
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# ENVIRONMENT
# -----------------------------------------------------------------------------
# Load environment variables from .env file (if it exists).
load_dotenv()


# -----------------------------------------------------------------------------
# BASE PATH
# -----------------------------------------------------------------------------
# Points to the folder containing this file (the project root).
BASE_DIR = Path(__file__).parent

# ============================================================================
# APPLICATION IDENTITY
# ============================================================================
# Shown in the terminal client and used as the export header:
# "# PixelAI Chat Export".

APP_NAME = (os.getenv("PIXELAI_APP_NAME", "").strip() or "PixelAI")

# ============================================================================
# LOCAL STORAGE
# ============================================================================
# One JSON file per namespaced key, e.g. guest_chat_history.json.
# The directory is created by the store on first write, not here.

LOCAL_STORAGE_DIR = Path(
    os.getenv("PIXELAI_STORAGE_DIR", "").strip()
    or BASE_DIR / "database" / "local_storage"
)

# Key (without namespace prefix) under which the session list is persisted.
CHAT_HISTORY_KEY = "chat_history"

# ============================================================================
# BACKEND API CONFIGURATION
# ============================================================================
# POST /ask, GET /sessions and GET /history/{session_id} are served from here.

API_BASE_URL = (os.getenv("PIXELAI_API_URL", "").strip() or "http://localhost:8000").rstrip("/")


def _load_request_timeout() -> Optional[float]:
    """
    Read PIXELAI_REQUEST_TIMEOUT (seconds). Unset means no timeout: the request
    settles only when the network layer resolves or rejects.
    """
    raw = os.getenv("PIXELAI_REQUEST_TIMEOUT", "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid PIXELAI_REQUEST_TIMEOUT=%r", raw)
        return None
    return value if value > 0 else None


REQUEST_TIMEOUT = _load_request_timeout()

# Reply text is read from the first present field, in this order. Older
# backend builds used "ai_response" or "content" instead of "response".
REPLY_FIELDS = ("response", "ai_response", "content")

# Used when a successful reply carries none of REPLY_FIELDS.
FALLBACK_REPLY = "Sorry, I couldn't generate a response."

# ============================================================================
# HISTORY CONFIGURATION
# ============================================================================
# HISTORY_LIMIT: sessions kept per namespace; adding one more evicts the oldest.
# TITLE_MAX_CHARS: session titles are cut from the first user message.

HISTORY_LIMIT = 20
TITLE_MAX_CHARS = 30

# ============================================================================
# MODE SYSTEM PROMPTS
# ============================================================================
# Sent as system_prompt with every /ask request. Settings is not a
# conversation mode and has no prompt of its own.

MODE_SYSTEM_PROMPTS = {
    "chat": (
        f"You are {APP_NAME}, a helpful AI assistant. "
        "Give instant, intelligent answers. Be concise unless asked for detail."
    ),
    "image": (
        f"You are {APP_NAME} in image mode. Turn the user's request into a vivid, "
        "detailed image description and describe the image you would create."
    ),
    "study": (
        f"You are {APP_NAME} in study mode, a patient tutor. Explain step by step, "
        "check understanding, and end with a short question for the learner."
    ),
}
