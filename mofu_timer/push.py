"""Push notification payload helpers.

Mirrors what the service worker does with an incoming message: pick a title
and body, tag the notification by race so repeats replace each other, and
resolve the URL a tap should open.
"""

from collections.abc import Mapping
from typing import Any

APP_TITLE = "もふタイマー"
DEFAULT_ORIGIN = "https://mt.qui2.net"
CLICK_URL_KEYS = ("url", "notify_url")


def _get(obj: Any, key: str) -> Any:
    return obj.get(key) if isinstance(obj, Mapping) else None


def resolve_click_url(
    data: Mapping[str, Any] | None,
    link: str | None = None,
    origin: str = DEFAULT_ORIGIN,
) -> str:
    """Return the URL a notification tap should open.

    Args:
        data: Notification data map.
        link: Explicit link from the push options, preferred when set.
        origin: App origin for the in-app notifications route fallback.
    """
    if link:
        return link
    for key in CLICK_URL_KEYS:
        value = _get(data, key)
        if value:
            return str(value)
    return f"{origin.rstrip('/')}/#notifications"


def build_notification(
    payload: Mapping[str, Any], origin: str = DEFAULT_ORIGIN
) -> dict[str, Any]:
    """Turn a push message into the options of a displayed notification.

    Args:
        payload: Message with optional ``notification``, ``data`` and
            ``fcmOptions`` maps.
        origin: App origin for the fallback URL.

    Returns:
        dict[str, Any]: ``title``, ``body``, ``icon``, ``tag``, ``renotify``
        and ``data`` (with the resolved ``url``).
    """
    notification = _get(payload, "notification")
    data = _get(payload, "data") or {}
    url = resolve_click_url(data, _get(_get(payload, "fcmOptions"), "link"), origin)
    return {
        "title": _get(notification, "title") or _get(data, "title") or APP_TITLE,
        "body": _get(notification, "body") or _get(data, "body") or "",
        "icon": _get(notification, "icon") or _get(data, "icon"),
        "tag": _get(data, "race_key") or None,
        "renotify": True,
        "data": {**data, "url": url},
    }


def format_token_short(token: object) -> str:
    """Shorten a push token for display (``abcdefgh...uvwxyz``)."""
    t = str(token or "")
    if len(t) <= 18:
        return t
    return f"{t[:8]}...{t[-6:]}"
