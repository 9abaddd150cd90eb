"""User settings for reminders and notification links."""

from dataclasses import asdict, dataclass, fields
from typing import Any

from .links import MODE_AUTORACE

OFFSET_FIELDS = ("timer1_minutes_before", "timer2_minutes_before")


@dataclass
class Settings:
    """Reminder offsets, link preferences and the PRO code.

    Attributes:
        timer1_minutes_before: First reminder, minutes before closing.
        timer2_enabled: Whether the second reminder tier is on (PRO only).
        timer2_minutes_before: Second reminder, minutes before closing.
        link_target: Link target key for keirin reminders.
        link_target_auto: Link target key for autorace reminders.
        pro_code: Entitlement code entered by the user.
        notifications_enabled: Set once push permission was granted.
    """

    timer1_minutes_before: int = 5
    timer2_enabled: bool = False
    timer2_minutes_before: int = 2
    link_target: str = "json"
    link_target_auto: str = "autoracejp"
    pro_code: str = ""
    notifications_enabled: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Settings":
        """Merge stored values over the defaults, ignoring unknown keys.

        Offsets that are not whole numbers (``None``, ``"abc"``) fall back to
        their defaults.
        """
        known = {f.name: f for f in fields(cls)}
        values = {k: v for k, v in (data or {}).items() if k in known}
        for name in OFFSET_FIELDS:
            if name not in values:
                continue
            try:
                values[name] = int(values[name])
            except (TypeError, ValueError, OverflowError):
                values[name] = known[name].default
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def link_target_for(self, mode: str) -> str:
        return self.link_target_auto if mode == MODE_AUTORACE else self.link_target
