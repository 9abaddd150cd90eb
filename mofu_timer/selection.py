"""Selected races, bounded by the plan's notification quota."""

from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass
class BulkResult:
    added: list[str] = field(default_factory=list)
    limit_reached: bool = False


class SelectionStore:
    """Mapping of race key to ``True`` for every selected race.

    Attributes:
        quota: Maximum number of simultaneously selected races.
    """

    def __init__(self, toggled: dict[str, bool] | None = None, quota: int = 10) -> None:
        self._toggled: dict[str, bool] = {k: True for k, v in (toggled or {}).items() if v}
        self.quota = quota

    @property
    def count(self) -> int:
        return len(self._toggled)

    def keys(self) -> list[str]:
        return list(self._toggled)

    def to_dict(self) -> dict[str, bool]:
        return dict(self._toggled)

    def is_selected(self, race_key: str) -> bool:
        return race_key in self._toggled

    def enable(self, race_key: str) -> None:
        """Select ``race_key``.

        Raises:
            QuotaExceededError: When the quota is already used up. The
                selection is left unchanged.
        """
        if race_key in self._toggled:
            return
        if self.count >= self.quota:
            raise QuotaExceededError(self.quota)
        self._toggled[race_key] = True

    def disable(self, race_key: str) -> bool:
        """Deselect ``race_key``; returns whether it was selected."""
        return self._toggled.pop(race_key, None) is not None

    def toggle(self, race_key: str) -> bool:
        """Flip ``race_key`` and return its new state."""
        if self.disable(race_key):
            return False
        self.enable(race_key)
        return True

    def enable_many(self, race_keys: Iterable[str]) -> BulkResult:
        """Select races in order until the quota is exhausted."""
        result = BulkResult()
        remaining = max(0, self.quota - self.count)
        for key in race_keys:
            if key in self._toggled:
                continue
            if remaining <= 0:
                break
            self._toggled[key] = True
            result.added.append(key)
            remaining -= 1
        result.limit_reached = remaining <= 0 and self.count >= self.quota
        return result

    def disable_many(self, race_keys: Iterable[str]) -> list[str]:
        return [key for key in race_keys if self.disable(key)]

    def clear(self) -> list[str]:
        removed = self.keys()
        self._toggled.clear()
        return removed


class QuotaExceededError(ValueError):
    """Raised when selecting a race would exceed the notification quota."""

    def __init__(self, quota: int) -> None:
        super().__init__(f"You can select at most {quota} notifications.")
        self.quota = quota
