"""Client for the optional notification backend.

Every call is a JSON POST to ``{base}/api/<path>``. When no base URL is
configured (argument or ``MOFU_API_BASE``) the client reports itself as not
configured and every call raises ``BackendNotConfiguredError``.
"""

import os
import time
from typing import Any

import requests

PATH_PRO_VERIFY = "/pro/verify"
PATH_DEVICES_REGISTER = "/devices/register"
PATH_SUBSCRIPTIONS_SET = "/subscriptions/set"
PATH_NOTIFICATIONS_REMOVE = "/notifications/remove"
PATH_PUSH_TEST = "/push/test"


class BackendClient:
    """Talk to the reminder backend.

    Attributes:
        base: Backend base URL without trailing slash, or ``""``.
        timeout: Request timeout in seconds.
    """

    def __init__(self, base: str | None = None, timeout: float = 10) -> None:
        """Initialize the client.

        Args:
            base: Backend base URL. Falls back to ``MOFU_API_BASE``.
            timeout: Request timeout in seconds.
        """
        raw = base if base is not None else os.getenv("MOFU_API_BASE", "")
        self.base = raw.strip().rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.base)

    def url(self, path: str) -> str:
        """Return the absolute endpoint URL, or ``""`` when unconfigured."""
        if not self.base:
            return ""
        p = path if path.startswith("/") else f"/{path}"
        return f"{self.base}/api{p}"

    def _post(self, path: str, payload: dict[str, Any]) -> requests.Response:
        url = self.url(path)
        if not url:
            raise BackendNotConfiguredError("MOFU_API_BASE is not set")
        try:
            r = requests.post(url, json=payload, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise BackendError(f"{path} failed: {e}") from e
        return r

    def verify_pro(self, anon_user_id: str, code: str) -> dict[str, Any]:
        """Verify a PRO code.

        Returns:
            dict[str, Any]: Decoded response body.

        Raises:
            BackendError: On transport errors, non-2xx or a non-object body.
        """
        r = self._post(PATH_PRO_VERIFY, {"anon_user_id": anon_user_id, "pro_code": code})
        try:
            data = r.json()
        except ValueError as e:
            raise BackendError(f"{PATH_PRO_VERIFY} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise BackendError(f"{PATH_PRO_VERIFY} returned {type(data).__name__}")
        return data

    def register_device(
        self,
        anon_user_id: str,
        token: str,
        user_agent: str,
        origin: str,
        platform: str = "web",
    ) -> None:
        self._post(
            PATH_DEVICES_REGISTER,
            {
                "anon_user_id": anon_user_id,
                "token": token,
                "platform": platform,
                "ua": user_agent,
                "origin": origin,
                "ts": int(time.time() * 1000),
            },
        )

    def set_subscription(self, payload: dict[str, Any]) -> None:
        self._post(PATH_SUBSCRIPTIONS_SET, payload)

    def remove_notification(self, anon_user_id: str, race_key: str) -> None:
        self._post(
            PATH_NOTIFICATIONS_REMOVE,
            {"anon_user_id": anon_user_id, "race_key": race_key},
        )

    def push_test(
        self, anon_user_id: str, token: str, delay_sec: int, url: str
    ) -> None:
        """Ask the backend to send a test push after ``delay_sec`` seconds."""
        self._post(
            PATH_PUSH_TEST,
            {
                "anon_user_id": anon_user_id,
                "token": token,
                "delay_sec": delay_sec,
                "url": url,
            },
        )


class BackendError(RuntimeError):
    """Raised when a backend call fails."""


class BackendNotConfiguredError(BackendError):
    """Raised when no backend base URL is configured."""
