"""Mirror the local race selection to the backend.

The local selection is the source of truth. Remote calls are best effort:
failures are logged and otherwise ignored, never retried and never rolled
back into local state.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from .api import BackendClient, BackendError
from .debounce import Debouncer
from .links import link_url
from .schedule import Race
from .settings import Settings
from .timeutil import format_notify, today_key

logger = logging.getLogger(__name__)

RESYNC_DELAY = 0.45
DEFAULT_TIMER1_MIN = 5
DEFAULT_TIMER2_MIN = 1


def app_fallback_url(origin: str) -> str:
    return f"{origin.rstrip('/')}/#notifications"


def _minutes(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def build_subscription_payload(
    race: Race,
    settings: Settings,
    anon_user_id: str,
    timer2_active: bool,
    origin: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build the ``/subscriptions/set`` body for an enabled race.

    Args:
        race: The selected race.
        settings: Current settings (offsets, link targets).
        anon_user_id: Anonymous user id.
        timer2_active: Whether the second reminder is both allowed and on.
        origin: App origin used for the in-app fallback URL.
        now: Reference instant for computing reminder times.

    Returns:
        dict[str, Any]: JSON-serializable payload.
    """
    now = now or datetime.now()
    target = settings.link_target_for(race.mode)
    notify_url = link_url(target, race.url, race.mode) or app_fallback_url(origin)
    t1 = _minutes(settings.timer1_minutes_before, DEFAULT_TIMER1_MIN)
    t2 = _minutes(settings.timer2_minutes_before, DEFAULT_TIMER2_MIN)
    return {
        "anon_user_id": anon_user_id,
        "race_key": race.race_key,
        "enabled": True,
        "race_date": today_key(now),
        "closed_at_hhmm": race.closed_at_hhmm,
        "race_url": race.url or notify_url,
        "link_target": target,
        "notify_url": notify_url,
        "title": race.label,
        "timer1_min": t1,
        "timer1_at": format_notify(race.closed_at_hhmm, t1, now),
        "timer2_enabled": bool(timer2_active),
        "timer2_min": t2,
        "timer2_at": format_notify(race.closed_at_hhmm, t2, now) if timer2_active else None,
    }


class SubscriptionSync:
    """Fire-and-forget upserts/removals plus a debounced full resync."""

    def __init__(
        self,
        backend: BackendClient,
        user_id: Callable[[], str],
        origin: str,
        debouncer: Debouncer | None = None,
    ) -> None:
        self.backend = backend
        self.origin = origin
        self._user_id = user_id
        self.debouncer = debouncer or Debouncer(RESYNC_DELAY)

    def upsert(
        self, race: Race, settings: Settings, timer2_active: bool
    ) -> bool:
        """Send one subscription; returns False if it was skipped or failed."""
        if not self.backend.configured:
            return False
        payload = build_subscription_payload(
            race, settings, self._user_id(), timer2_active, self.origin
        )
        try:
            self.backend.set_subscription(payload)
        except BackendError as e:
            logger.warning("subscription upsert failed for %s: %s", race.race_key, e)
            return False
        return True

    def remove(self, race_key: str) -> bool:
        """Tell the backend ``race_key`` was deselected; failures are logged."""
        if not self.backend.configured:
            return False
        try:
            self.backend.remove_notification(self._user_id(), race_key)
        except BackendError as e:
            logger.warning("notification removal failed for %s: %s", race_key, e)
            return False
        return True

    def resync(
        self, races: Iterable[Race], settings: Settings, timer2_active: bool
    ) -> int:
        """Upsert every race; returns how many calls succeeded."""
        return sum(1 for r in races if self.upsert(r, settings, timer2_active))

    def schedule_resync(
        self, races: list[Race], settings: Settings, timer2_active: bool
    ) -> None:
        """Debounce a resync of ``races``; a newer call replaces a pending one.

        An empty selection cancels any pending resync.
        """
        if not self.backend.configured or not races:
            self.debouncer.cancel()
            return
        self.debouncer.schedule(self.resync, list(races), settings, timer2_active)
