"""Clock helpers for race deadlines and reminder times.

All times are wall-clock times on the local clock. Closing times come from the
feed as loosely formatted strings and are normalized to ``HH:MM`` before any
arithmetic is done on them.
"""

import re
from datetime import date, datetime, timedelta

PLACEHOLDER = "--:--"

_PREFIX_HHMM = re.compile(r"^(\d{1,2}):(\d{2})")
_BARE_HHMM = re.compile(r"^(\d{1,2})(\d{2})$")
_STRICT_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")

_WEEKDAYS_JP = ["月", "火", "水", "木", "金", "土", "日"]


def pad2(n: object) -> str:
    return str(n).rjust(2, "0")


def today_key(d: date | None = None) -> str:
    """Return ``YYYYMMDD`` for ``d`` (today when omitted)."""
    d = d or date.today()
    return f"{d.year}{pad2(d.month)}{pad2(d.day)}"


def normalize_hhmm(value: object) -> str:
    """Normalize a closing-time value to zero-padded ``HH:MM``.

    Examples:
        - ``"13:05:00"`` → ``"13:05"``
        - ``"9:05"`` → ``"09:05"``
        - ``"1305"`` → ``"13:05"``
        - ``"905"`` → ``"09:05"``

    Args:
        value: Raw value from the feed (string, number or ``None``).

    Returns:
        str: The normalized time, ``""`` for empty input, or the stripped
        input unchanged when it matches none of the known encodings.
    """
    s = str(value if value is not None else "").strip()
    if not s:
        return ""
    m = _PREFIX_HHMM.match(s)
    if m:
        return f"{pad2(m.group(1))}:{m.group(2)}"
    m = _BARE_HHMM.match(s)
    if m:
        return f"{pad2(m.group(1))}:{m.group(2)}"
    return s


def parse_hhmm_today(hhmm: object, now: datetime | None = None) -> datetime | None:
    """Turn a strict ``HH:MM`` string into a datetime on ``now``'s date.

    Args:
        hhmm: Time string; only ``H:MM``/``HH:MM`` is accepted.
        now: Reference instant (defaults to ``datetime.now()``).

    Returns:
        datetime | None: The instant, or ``None`` when ``hhmm`` is not a
        strict ``HH:MM`` string.
    """
    if not hhmm or not isinstance(hhmm, str):
        return None
    m = _STRICT_HHMM.match(hhmm)
    if not m:
        return None
    now = now or datetime.now()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    # out-of-range parts roll over into the next hour/day
    return midnight + timedelta(hours=int(m.group(1)), minutes=int(m.group(2)))


def notify_time(
    hhmm: object, minutes_before: int, now: datetime | None = None
) -> datetime | None:
    """Return the reminder instant: closing time minus ``minutes_before``."""
    closed = parse_hhmm_today(hhmm, now)
    if closed is None:
        return None
    return closed - timedelta(minutes=minutes_before)


def to_hhmm(dt: datetime) -> str:
    return f"{pad2(dt.hour)}:{pad2(dt.minute)}"


def format_notify(
    hhmm: object, minutes_before: int, now: datetime | None = None
) -> str:
    """Render the reminder time as ``HH:MM`` or the ``--:--`` placeholder."""
    at = notify_time(hhmm, minutes_before, now)
    return to_hhmm(at) if at is not None else PLACEHOLDER


def is_past(hhmm: object, now: datetime | None = None) -> bool:
    """Return True when ``hhmm`` parses and is not after ``now``.

    Unparsable times are never considered past.
    """
    now = now or datetime.now()
    at = parse_hhmm_today(hhmm, now)
    return at is not None and now >= at


def format_ymd(ms: object) -> str:
    """Format epoch milliseconds as ``YYYY/MM/DD`` (``""`` if invalid)."""
    try:
        value = float(ms)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return ""
    if not value or value != value or value in (float("inf"), float("-inf")):
        return ""
    try:
        d = datetime.fromtimestamp(value / 1000)
    except (OverflowError, OSError, ValueError):
        return ""
    return f"{d.year}/{pad2(d.month)}/{pad2(d.day)}"


def format_date_jp(d: date | None = None) -> str:
    """Return a Japanese date label such as ``2026年10月17日（土）``."""
    d = d or date.today()
    return f"{d.year}年{d.month}月{d.day}日（{_WEEKDAYS_JP[d.weekday()]}）"
