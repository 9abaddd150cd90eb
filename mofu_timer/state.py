"""JSON-backed local state for the timer.

Holds everything the client keeps between runs: the anonymous user id, which
venues are expanded, the selected races, settings, and the last push token
sent to the backend. Values live under fixed keys in a single JSON file.
"""

import json
import os
import time
import uuid
from typing import Any

KEY_USER_ID = "mofu_anon_user_id"
KEY_OPEN_VENUES = "mofu_open_venues_v1"
KEY_TOGGLED = "mofu_race_toggled_v1"
KEY_SETTINGS = "mofu_settings_v5"
KEY_FCM_TOKEN = "mofu_fcm_token_v1"
KEY_FCM_TOKEN_SENT = "mofu_fcm_token_sent_v1"
KEY_FCM_TOKEN_SENT_AT = "mofu_fcm_token_sent_at_v1"

DEFAULT_PATH = ".cache/mofu_state.json"


class StateStore:
    """Persist small JSON values under fixed keys.

    Attributes:
        path: Path to the JSON file on disk.
    """

    def __init__(self, path: str | None = None) -> None:
        """Create a new state store.

        Args:
            path: Filesystem path of the JSON file. Falls back to
                ``MOFU_STATE_PATH`` and then ``.cache/mofu_state.json``.
        """
        self.path = path or os.getenv("MOFU_STATE_PATH") or DEFAULT_PATH
        self._state: dict[str, Any] = {}
        self._loaded = False

    def load(self) -> None:
        """Load state from disk if not already loaded.

        A missing or unreadable file starts from an empty state.
        """
        if self._loaded:
            return
        try:
            if os.path.exists(self.path):
                with open(self.path, encoding="utf-8") as f:
                    data = json.load(f)
                self._state = data if isinstance(data, dict) else {}
        except (OSError, ValueError):
            self._state = {}
        finally:
            self._loaded = True

    def save(self) -> None:
        """Atomically save state to disk."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._state, f, indent=2, sort_keys=True, ensure_ascii=False)
        os.replace(tmp, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        self.load()
        value = self._state.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` and persist."""
        self.load()
        self._state[key] = value
        self.save()

    def ensure_anon_user_id(self) -> str:
        """Return the anonymous user id, generating and saving it once."""
        existing = self.get(KEY_USER_ID)
        if existing:
            return str(existing)
        user_id = str(uuid.uuid4())
        self.set(KEY_USER_ID, user_id)
        return user_id

    def mark_token_sent(self, token: str) -> None:
        """Remember that ``token`` was registered with the backend."""
        self.load()
        self._state[KEY_FCM_TOKEN_SENT] = token
        self._state[KEY_FCM_TOKEN_SENT_AT] = int(time.time() * 1000)
        self.save()
