"""Free/PRO plan verification.

``PlanGate`` turns an entitlement code into a ``PlanState``. Code edits are
debounced so that typing does not fire one verification per keystroke; any
failure falls back to the free plan.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from .api import BackendClient, BackendError
from .debounce import Debouncer
from .timeutil import format_ymd

logger = logging.getLogger(__name__)

VERIFY_DELAY = 0.6

FREE_MAX_NOTIFICATIONS = 10
PRO_MAX_NOTIFICATIONS = 999

STATUS_IDLE = "idle"
STATUS_VERIFYING = "verifying"
STATUS_VERIFIED = "verified"

MSG_NO_API = "Free plan (no API configured)"
MSG_FAILED = "Verification failed"
MSG_PRO = "PRO"
MSG_FREE = "Free plan"


@dataclass(frozen=True)
class PlanState:
    status: str = STATUS_IDLE
    pro: bool = False
    max_notifications: int = FREE_MAX_NOTIFICATIONS
    timer2_allowed: bool = False
    ads_off: bool = False
    expires_at_ms: int | None = None
    period: str = ""
    message: str = ""

    @property
    def timer2_gate_open(self) -> bool:
        return self.pro and self.timer2_allowed


def defaults_for(pro: bool) -> dict[str, Any]:
    """Return the feature flags implied by the plan alone."""
    return {
        "max_notifications": PRO_MAX_NOTIFICATIONS if pro else FREE_MAX_NOTIFICATIONS,
        "timer2_allowed": pro,
        "ads_off": pro,
    }


def free_state(message: str = "") -> PlanState:
    return PlanState(status=STATUS_VERIFIED, pro=False, message=message, **defaults_for(False))


def state_from_response(data: dict[str, Any]) -> PlanState:
    """Merge a verification response with the plan defaults.

    Args:
        data: Response body from ``/pro/verify``.

    Returns:
        PlanState: Verified state; explicit flags in ``data`` win over the
        defaults, but only when they have the right type.
    """
    plan = str(data.get("plan") or ("PRO" if data.get("pro") else "FREE")).upper()
    pro = plan == "PRO"
    df = defaults_for(pro)

    try:
        expires_at_ms: int | None = int(float(data["expires_at"]))
    except (KeyError, TypeError, ValueError, OverflowError):
        expires_at_ms = None
    expires_label = format_ymd(expires_at_ms) if expires_at_ms else ""
    period = f"Expires: {expires_label}" if expires_label else str(data.get("period") or "")

    try:
        max_notifications = int(data.get("max_notifications") or 0)
    except (TypeError, ValueError):
        max_notifications = 0

    timer2 = data.get("timer2_allowed")
    ads_off = data.get("ads_off")
    return PlanState(
        status=STATUS_VERIFIED,
        pro=pro,
        max_notifications=max_notifications or df["max_notifications"],
        timer2_allowed=timer2 if isinstance(timer2, bool) else df["timer2_allowed"],
        ads_off=ads_off if isinstance(ads_off, bool) else df["ads_off"],
        expires_at_ms=expires_at_ms,
        period=period,
        message=str(data.get("message") or (MSG_PRO if pro else MSG_FREE)),
    )


class PlanGate:
    """Verify PRO codes against the backend.

    Attributes:
        state: Latest ``PlanState``.
    """

    def __init__(
        self,
        backend: BackendClient,
        user_id: Callable[[], str],
        on_change: Callable[[PlanState], None] | None = None,
        debouncer: Debouncer | None = None,
    ) -> None:
        """Create the gate.

        Args:
            backend: Backend client used for ``/pro/verify``.
            user_id: Returns the anonymous user id sent with each request.
            on_change: Called with every verified state.
            debouncer: Timer slot for code edits (defaults to 0.6 s).
        """
        self.backend = backend
        self.state = PlanState()
        self._user_id = user_id
        self.on_change = on_change
        self.debouncer = debouncer or Debouncer(VERIFY_DELAY)

    def code_changed(self, code: str) -> None:
        """Schedule verification of ``code`` after the debounce delay."""
        self.debouncer.schedule(self.verify_now, code)

    def _finish(self, state: PlanState) -> PlanState:
        self.state = state
        if self.on_change is not None:
            self.on_change(state)
        return state

    def verify_now(self, code: str) -> PlanState:
        """Verify ``code`` immediately.

        Returns:
            PlanState: The verified state (free on any failure).
        """
        trimmed = str(code or "").strip()
        if not self.backend.configured:
            return self._finish(free_state(MSG_NO_API))
        if not trimmed:
            return self._finish(free_state())

        self.state = replace(self.state, status=STATUS_VERIFYING, message="")
        try:
            data = self.backend.verify_pro(self._user_id(), trimmed)
        except BackendError as e:
            logger.warning("PRO verification failed: %s", e)
            return self._finish(free_state(MSG_FAILED))
        return self._finish(state_from_response(data))
