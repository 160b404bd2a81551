"""
HISTORY INDEX MODULE
====================

The list of past conversations shown in the sidebar, one list per namespace,
newest first and capped at config.HISTORY_LIMIT entries.

PERSISTENCE:
  - Guest: the list (with full message snapshots) is written to the store
    under "guest_chat_history" on every change.
  - Authenticated: the backend is the source of truth. replace() installs
    the list from GET /sessions and caches it under
    "authenticated_chat_history" for display only.

The two lists are never merged or compared; nothing here moves a record
from one namespace to the other.
"""

import logging
from typing import Dict, Iterable, List, Union

from pydantic import ValidationError

from config import CHAT_HISTORY_KEY, HISTORY_LIMIT, TITLE_MAX_CHARS
from pixelai.models import Namespace, SessionRecord

logger = logging.getLogger("PixelAI")

ELLIPSIS = "..."


def derive_title(text: str, max_chars: int = TITLE_MAX_CHARS) -> str:
    """First max_chars characters of the opening user message, plus "..." if cut."""
    cleaned = " ".join((text or "").split())
    if not cleaned:
        return "New chat"
    if len(cleaned) <= max_chars:
        return cleaned
    return cleaned[:max_chars] + ELLIPSIS


class HistoryIndex:
    """
    Ordered, capped session lists keyed by namespace.

    Lists are loaded lazily from the store the first time a namespace is
    touched, and can be re-read with load() after an identity switch.
    """

    def __init__(self, store, limit: int = HISTORY_LIMIT, key: str = CHAT_HISTORY_KEY):
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self.store = store
        self.limit = limit
        self.key = key
        self._lists: Dict[Namespace, List[SessionRecord]] = {}

    # -------------------------------------------------------------------------
    # Loading and saving
    # -------------------------------------------------------------------------

    def load(self, namespace: Union[Namespace, str]) -> List[SessionRecord]:
        """Read the namespace's list fresh from the store, replacing what is in memory."""
        ns = Namespace(namespace)
        raw = self.store.load(ns, self.key)
        records: List[SessionRecord] = []
        if isinstance(raw, list):
            # One bad entry (older format, hand-edited file) must not hide the rest
            for entry in raw:
                try:
                    records.append(SessionRecord.model_validate(entry))
                except ValidationError as e:
                    logger.warning("Dropping unreadable %s history entry: %s", ns.value, e)
        elif raw is not None:
            logger.warning("Ignoring %s history: expected a list, got %s", ns.value, type(raw).__name__)

        self._lists[ns] = self._capped(records)
        return list(self._lists[ns])

    def _entries(self, ns: Namespace) -> List[SessionRecord]:
        """In-memory list for ns, read from the store on first use."""
        if ns not in self._lists:
            self.load(ns)
        return self._lists[ns]

    def _persist(self, ns: Namespace) -> bool:
        # JSON mode turns datetimes and enums into plain strings for the store
        data = [record.model_dump(mode="json") for record in self._lists.get(ns, [])]
        return self.store.save(ns, self.key, data)

    def _capped(self, records: Iterable[SessionRecord]) -> List[SessionRecord]:
        # Lists are newest first, so the slice drops the oldest entries
        return list(records)[: self.limit]

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def add(self, namespace: Union[Namespace, str], record: SessionRecord) -> bool:
        """
        Put record at the top of the namespace's list.

        An older entry for the same conversation is replaced rather than
        duplicated. Entries past the limit are evicted, oldest first. Returns
        whether the store write succeeded; the in-memory list is updated
        either way.
        """
        ns = Namespace(namespace)

        # Match on both keys: a guest record gains an id when its session is bound
        entries = [
            r for r in self._entries(ns)
            if r.key != record.key and r.local_id != record.local_id
        ]
        entries.insert(0, record)

        evicted = entries[self.limit:]
        self._lists[ns] = self._capped(entries)
        for old in evicted:
            logger.debug("Evicted %s history entry %r", ns.value, old.title)
        return self._persist(ns)

    def replace(self, namespace: Union[Namespace, str], records: Iterable[SessionRecord]) -> bool:
        """
        Install a list fetched from the backend, sorted newest first and capped.

        Records whose activity time is unknown sort after every dated one and
        keep the order the backend sent them in.
        """
        ns = Namespace(namespace)
        # sorted() is stable, so ties (unknown times included) keep backend order
        ordered = sorted(records, key=lambda r: r.last_activity, reverse=True)
        self._lists[ns] = self._capped(ordered)
        return self._persist(ns)

    def reset(self, namespace: Union[Namespace, str]) -> bool:
        """
        Start the namespace over with an empty list, in memory and in the store.

        Used when a different account signs in: the cached list belongs to
        whoever was signed in before and must never be shown, not even while
        the new account's list is still being fetched.
        """
        ns = Namespace(namespace)
        self._lists[ns] = []
        return self.store.clear(ns, self.key)

    def clear(self, namespace: Union[Namespace, str]) -> bool:
        """Empty the namespace's list and erase its stored copy."""
        ns = Namespace(namespace)
        self._lists[ns] = []
        logger.info("Cleared %s history", ns.value)
        return self.store.clear(ns, self.key)

    def discard(self, namespace: Union[Namespace, str]) -> None:
        """Forget the in-memory list only; the stored copy stays as it is."""
        self._lists.pop(Namespace(namespace), None)

    def list_for(self, namespace: Union[Namespace, str]) -> List[SessionRecord]:
        """Current list, newest first. Returns a copy."""
        return list(self._entries(Namespace(namespace)))
