"""Single-slot debounce timer.

A ``Debouncer`` holds at most one pending call. Scheduling a new call replaces
the pending one and restarts the delay. Calls are run cooperatively by the
owner (``run_due`` from a loop, or ``flush`` before exiting), so callbacks
never execute on a background thread.
"""

import time
from collections.abc import Callable
from typing import Any


class Debouncer:
    """Delay a call until its input stops changing.

    Attributes:
        delay: Seconds that must elapse after the last ``schedule``.
    """

    def __init__(
        self, delay: float, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.delay = delay
        self._clock = clock
        self._due: float | None = None
        self._call: tuple[Callable[..., Any], tuple[Any, ...]] | None = None

    @property
    def pending(self) -> bool:
        return self._call is not None

    def schedule(self, fn: Callable[..., Any], *args: Any) -> None:
        """Cancel any pending call and schedule ``fn(*args)`` after the delay."""
        self._call = (fn, args)
        self._due = self._clock() + self.delay

    def cancel(self) -> None:
        self._call = None
        self._due = None

    def run_due(self) -> bool:
        """Run the pending call if its delay has elapsed.

        Returns:
            bool: True when a call was run.
        """
        if self._call is None or self._due is None or self._clock() < self._due:
            return False
        return self.flush()

    def flush(self) -> bool:
        """Run the pending call now, regardless of the delay."""
        if self._call is None:
            return False
        fn, args = self._call
        self.cancel()
        fn(*args)
        return True
