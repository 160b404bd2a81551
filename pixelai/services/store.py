"""
PERSISTENT STORE MODULE
=======================

Namespaced key-value persistence. Two namespaces exist (guest and
authenticated) and a value written under one is invisible from the other:
the namespace is part of the stored key ("guest_chat_history",
"authenticated_chat_history") and is always passed in by the caller, never
guessed from the value.

IMPLEMENTATIONS:
  PersistentStore - one JSON file per namespaced key under a directory; survives restarts.
  MemoryStore     - dict-backed, same contract; used by tests and throwaway sessions.

FAILURE POLICY:
  Persistence is best-effort relative to the live transcript. load() returns
  None and save()/clear() return False on failure; the failure is logged as a
  PersistenceFailure warning and never raised to the caller.
"""

import copy
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pixelai.errors import PersistenceFailure
from pixelai.models import Namespace

logger = logging.getLogger("PixelAI")

# Keys become file names, so keep them to a safe character set.
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,128}$")


def namespaced_key(namespace: Union[Namespace, str], key: str) -> str:
    """Build the storage key for namespace + key, e.g. ("guest", "chat_history") -> "guest_chat_history"."""
    ns = Namespace(namespace)
    if not _KEY_PATTERN.match(key or ""):
        raise ValueError(f"Invalid storage key: {key!r}")
    return f"{ns.value}_{key}"


# ==============================================================================
# FILE-BACKED STORE
# ==============================================================================

class PersistentStore:
    """
    JSON files under root_dir, one per namespaced key. Writes go to a temp
    file first and are then moved into place, so a crash mid-write never
    leaves a half-written history file behind.
    """

    def __init__(self, root_dir: Union[str, Path]):
        self.root_dir = Path(root_dir)

    def _path(self, namespace: Union[Namespace, str], key: str) -> Path:
        return self.root_dir / f"{namespaced_key(namespace, key)}.json"

    def load(self, namespace: Union[Namespace, str], key: str) -> Optional[Any]:
        """Return the stored value, or None if absent or unreadable."""
        path = self._path(namespace, key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            failure = PersistenceFailure(f"Could not read {path.name}: {e}")
            logger.warning("%s", failure)
            return None

    def save(self, namespace: Union[Namespace, str], key: str, value: Any) -> bool:
        """Write value as JSON. Returns False (and logs) if it could not be written."""
        path = self._path(namespace, key)
        tmp_name = None
        try:
            self.root_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.root_dir, prefix=f".{path.stem}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
            tmp_name = None
            return True
        except (OSError, TypeError, ValueError) as e:
            failure = PersistenceFailure(f"Could not write {path.name}: {e}")
            logger.warning("%s", failure)
            return False
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)

    def clear(self, namespace: Union[Namespace, str], key: str) -> bool:
        """Delete the stored value. Clearing a missing key succeeds."""
        path = self._path(namespace, key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            failure = PersistenceFailure(f"Could not delete {path.name}: {e}")
            logger.warning("%s", failure)
            return False
        return True


# ==============================================================================
# IN-MEMORY STORE
# ==============================================================================

class MemoryStore:
    """
    Same contract as PersistentStore, kept in a dict. Values are deep-copied
    on the way in and out so callers can't mutate stored state by accident.

    fail_writes=True makes save() and clear() fail, to exercise the
    quota-exceeded path.
    """

    def __init__(self, fail_writes: bool = False):
        self._data: Dict[str, Any] = {}
        self.fail_writes = fail_writes

    def load(self, namespace: Union[Namespace, str], key: str) -> Optional[Any]:
        value = self._data.get(namespaced_key(namespace, key))
        return copy.deepcopy(value)

    def save(self, namespace: Union[Namespace, str], key: str, value: Any) -> bool:
        full_key = namespaced_key(namespace, key)
        if self.fail_writes:
            logger.warning("%s", PersistenceFailure(f"Quota exceeded writing {full_key}"))
            return False
        self._data[full_key] = copy.deepcopy(value)
        return True

    def clear(self, namespace: Union[Namespace, str], key: str) -> bool:
        full_key = namespaced_key(namespace, key)
        if self.fail_writes:
            logger.warning("%s", PersistenceFailure(f"Could not clear {full_key}"))
            return False
        self._data.pop(full_key, None)
        return True

    def keys(self):
        """Stored namespaced keys, for inspection in tests."""
        return sorted(self._data)
