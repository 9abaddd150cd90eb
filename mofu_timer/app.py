"""Application controller.

``MofuTimer`` owns all mutable client state (schedule, selection, settings,
plan) and is the only thing that changes it. Every change is persisted
explicitly through ``StateStore``; backend calls are made through
``SubscriptionSync``/``PlanGate`` and never block or revert local changes.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Any

from .api import BackendClient, BackendError
from .links import MODE_KEIRIN, MODES, link_url
from .plan import PlanGate, PlanState
from .push import DEFAULT_ORIGIN
from .schedule import (
    Race,
    ScheduleClient,
    ScheduleResult,
    Venue,
    girls_races,
    race_map,
)
from .selection import BulkResult, QuotaExceededError, SelectionStore
from .settings import Settings
from .state import (
    KEY_FCM_TOKEN,
    KEY_FCM_TOKEN_SENT,
    KEY_OPEN_VENUES,
    KEY_SETTINGS,
    KEY_TOGGLED,
    StateStore,
)
from .sync import SubscriptionSync, app_fallback_url
from .timeutil import PLACEHOLDER, format_notify, is_past

logger = logging.getLogger(__name__)

NOW_REFRESH_INTERVAL = 30
TEST_PUSH_DELAY_SEC = 5
USER_AGENT = "mofu-timer"


@dataclass(frozen=True)
class NotificationRow:
    race: Race
    link: str
    timer1_at: str
    timer2_at: str | None
    closed: bool


class MofuTimer:
    """Race reminder client state and operations.

    Attributes:
        mode: Current race mode (``keirin`` or ``autorace``).
        venues: Venues of the last loaded schedule.
        error: Error from the last schedule load (``""`` on success).
        settings: Current ``Settings``.
        selection: Selected races.
        open_venues: Venue expansion state by venue key.
        now: Reference instant for past-deadline checks.
    """

    def __init__(
        self,
        store: StateStore,
        backend: BackendClient | None = None,
        schedule_client: ScheduleClient | None = None,
        origin: str = DEFAULT_ORIGIN,
        alert: Callable[[str], None] | None = None,
        clock: Callable[[], datetime] = datetime.now,
        plan_gate: PlanGate | None = None,
        subscription_sync: SubscriptionSync | None = None,
    ) -> None:
        """Restore state from ``store`` and wire the collaborators.

        Args:
            store: Local persistent state.
            backend: Backend client (defaults to one built from env).
            schedule_client: Feed client.
            origin: App origin used for fallback URLs.
            alert: Called with user-facing rejection messages.
            clock: Returns the current local time.
            plan_gate: Override for the plan gate (tests).
            subscription_sync: Override for the subscription sync (tests).
        """
        self.store = store
        self.backend = backend or BackendClient()
        self.schedule_client = schedule_client or ScheduleClient()
        self.origin = origin
        self._alert = alert
        self._clock = clock

        self.mode = MODE_KEIRIN
        self.venues: list[Venue] = []
        self.races: dict[str, Race] = {}
        self.error = ""
        self.now = clock()

        self.settings = Settings.from_dict(store.get(KEY_SETTINGS))
        self.open_venues: dict[str, bool] = dict(store.get(KEY_OPEN_VENUES, {}))
        self.plan = plan_gate or PlanGate(self.backend, self.user_id)
        self.plan.on_change = self._on_plan_change
        self.selection = SelectionStore(
            store.get(KEY_TOGGLED, {}), quota=self.plan.state.max_notifications
        )
        self.sync = subscription_sync or SubscriptionSync(
            self.backend, self.user_id, origin
        )

    # ----- derived state -----

    def user_id(self) -> str:
        return self.store.ensure_anon_user_id()

    @property
    def plan_state(self) -> PlanState:
        return self.plan.state

    @property
    def quota(self) -> int:
        return self.plan.state.max_notifications

    @property
    def timer2_active(self) -> bool:
        return self.plan.state.timer2_gate_open and self.settings.timer2_enabled

    def is_closed(self, race: Race) -> bool:
        return is_past(race.closed_at_hhmm, self.now)

    def selected_races(self) -> list[Race]:
        return [self.races[k] for k in self.selection.keys() if k in self.races]

    def find_venue(self, name_or_key: str) -> Venue | None:
        for v in self.venues:
            if name_or_key in (v.venue_key, v.venue_name):
                return v
        return None

    # ----- lifecycle -----

    def start(self) -> None:
        """Schedule verification of the stored PRO code."""
        self.plan.code_changed(self.settings.pro_code)

    def tick(self) -> None:
        """Run debounced work whose delay has elapsed."""
        self.plan.debouncer.run_due()
        self.sync.debouncer.run_due()

    def flush(self) -> None:
        """Run all pending debounced work now."""
        self.plan.debouncer.flush()
        self.sync.debouncer.flush()

    def refresh_now(self) -> datetime:
        self.now = self._clock()
        return self.now

    def load_schedule(self, mode: str | None = None) -> ScheduleResult:
        """Fetch today's schedule for ``mode`` (defaults to the current one).

        Errors are kept in ``error`` and leave ``venues`` empty.
        """
        if mode is not None:
            if mode not in MODES:
                raise ValueError(f"unknown mode: {mode}")
            self.mode = mode
        result = self.schedule_client.fetch_venues(self.mode, self.refresh_now())
        self.venues = result.venues
        self.races = race_map(result.venues)
        self.error = result.error
        return result

    # ----- persistence -----

    def _alert_user(self, message: str) -> None:
        if self._alert is not None:
            self._alert(message)
        else:
            logger.warning("%s", message)

    def _save_settings(self) -> None:
        self.store.set(KEY_SETTINGS, self.settings.to_dict())

    def _selection_changed(self) -> None:
        self.store.set(KEY_TOGGLED, self.selection.to_dict())
        self._schedule_resync()

    def _schedule_resync(self) -> None:
        self.sync.schedule_resync(
            self.selected_races(), replace(self.settings), self.timer2_active
        )

    def _on_plan_change(self, state: PlanState) -> None:
        self.selection.quota = state.max_notifications
        if not state.pro and self.settings.timer2_enabled:
            self.settings.timer2_enabled = False
            self._save_settings()
        self._schedule_resync()

    # ----- selection -----

    def toggle_race(self, race_key: str) -> bool:
        """Flip the selection of ``race_key``.

        Enabling is rejected (with an alert, no state change) when the quota
        is used up or the race has already closed.

        Returns:
            bool: Whether the race is selected afterwards.
        """
        if self.selection.disable(race_key):
            self._selection_changed()
            self.sync.remove(race_key)
            return False

        race = self.races.get(race_key)
        if race is not None and self.is_closed(race):
            self._alert_user(f"{race.label} has already closed.")
            return False
        try:
            self.selection.enable(race_key)
        except QuotaExceededError as e:
            self._alert_user(str(e))
            return False
        if race is not None:
            self.sync.upsert(race, self.settings, self.timer2_active)
        self._selection_changed()
        return True

    def _set_all(self, races: list[Race], on: bool) -> BulkResult:
        keys = [r.race_key for r in races]
        if not on:
            removed = self.selection.disable_many(keys)
            self._selection_changed()
            for key in removed:
                self.sync.remove(key)
            return BulkResult()
        result = self.selection.enable_many(keys)
        if result.limit_reached:
            self._alert_user(f"Notification limit of {self.quota} reached.")
        self._selection_changed()
        return result

    def set_venue_all(self, venue_key: str, on: bool) -> BulkResult:
        """Select or deselect every race of a venue."""
        venue = self.find_venue(venue_key)
        if venue is None:
            raise KeyError(venue_key)
        return self._set_all(venue.races, on)

    def set_girls_all(self, on: bool) -> BulkResult:
        """Select or deselect every girls' race of the current schedule."""
        races = girls_races(self.venues, self.mode, by_closing=False)
        return self._set_all(races, on)

    def remove_notification(self, race_key: str) -> None:
        """Delete ``race_key`` from the selection and tell the backend."""
        self.selection.disable(race_key)
        self._selection_changed()
        self.sync.remove(race_key)

    def reset_all_selections(self) -> list[str]:
        removed = self.selection.clear()
        self._selection_changed()
        for key in removed:
            self.sync.remove(key)
        return removed

    def toggle_venue_open(self, venue_key: str) -> bool:
        self.open_venues[venue_key] = not self.open_venues.get(venue_key, False)
        self.store.set(KEY_OPEN_VENUES, self.open_venues)
        return self.open_venues[venue_key]

    # ----- settings -----

    def update_settings(self, **patch: Any) -> Settings:
        """Apply a partial settings update, persist it and resync.

        A changed ``pro_code`` is verified after the usual debounce, except
        when the same patch turns ``timer2_enabled`` on: then it is verified
        immediately so the second tier is checked against the new plan.

        Raises:
            ValueError: For unknown setting names.
        """
        known = {f.name for f in fields(Settings)}
        unknown = set(patch) - known
        if unknown:
            raise ValueError(f"unknown settings: {', '.join(sorted(unknown))}")
        old_code = self.settings.pro_code
        code = patch.get("pro_code", old_code)
        verified = False
        if patch.get("timer2_enabled") and code != old_code:
            # the gate must reflect the new code before timer2 is checked
            self.plan.debouncer.cancel()
            self.plan.verify_now(code)
            verified = True
        if patch.get("timer2_enabled") and not self.plan.state.timer2_gate_open:
            self._alert_user("The second reminder requires a PRO plan.")
            patch["timer2_enabled"] = False
        self.settings = replace(self.settings, **patch)
        self._save_settings()
        if self.settings.pro_code != old_code and not verified:
            self.plan.code_changed(self.settings.pro_code)
        self._schedule_resync()
        return self.settings

    # ----- notifications page -----

    def notification_rows(self) -> list[NotificationRow]:
        """Selected races of the loaded schedule, by venue then race number."""
        rows = []
        for race in self.selected_races():
            target = self.settings.link_target_for(race.mode)
            rows.append(
                NotificationRow(
                    race=race,
                    link=link_url(target, race.url, race.mode),
                    timer1_at=format_notify(
                        race.closed_at_hhmm, self.settings.timer1_minutes_before, self.now
                    ),
                    timer2_at=format_notify(
                        race.closed_at_hhmm, self.settings.timer2_minutes_before, self.now
                    )
                    if self.timer2_active
                    else None,
                    closed=self.is_closed(race),
                )
            )
        rows.sort(key=lambda r: (r.race.venue_name, r.race.race_no))
        return rows

    def notification_text(self) -> str:
        """Plain-text list of selected races for copying elsewhere."""
        return "\n".join(
            f"{r.race.venue_name} {r.race.race_no}R {r.race.closed_at_hhmm or PLACEHOLDER} deadline"
            for r in self.notification_rows()
        )

    # ----- push -----

    def register_device(self, token: str, user_agent: str = USER_AGENT) -> bool:
        """Register a push token unless it was already sent.

        Returns:
            bool: True when the backend accepted a new registration.
        """
        t = str(token or "").strip()
        if not t:
            return False
        self.store.set(KEY_FCM_TOKEN, t)
        if not self.backend.configured or self.store.get(KEY_FCM_TOKEN_SENT) == t:
            return False
        try:
            self.backend.register_device(self.user_id(), t, user_agent, self.origin)
        except BackendError as e:
            logger.warning("device registration failed: %s", e)
            return False
        self.store.mark_token_sent(t)
        if not self.settings.notifications_enabled:
            self.settings.notifications_enabled = True
            self._save_settings()
        return True

    def send_test_push(self, token: str | None = None) -> str:
        """Ask the backend for a test push; returns a status message."""
        if not self.backend.configured:
            return "API not configured"
        t = str(token or self.store.get(KEY_FCM_TOKEN, "")).strip()
        try:
            self.backend.push_test(
                self.user_id(), t, TEST_PUSH_DELAY_SEC, app_fallback_url(self.origin)
            )
        except BackendError as e:
            logger.warning("test push failed: %s", e)
            return "Failed"
        return "OK"
