"""Fetch and normalize the daily race schedule feeds.

The feeds are static JSON files published once per day and per mode. Their
shape is not fixed: the venue list may be bare or wrapped, and race fields
appear under several alternative names. ``normalize_venues`` reshapes any of
those variants into ``Venue``/``Race`` records keyed by a stable race key.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import requests

from .links import MODE_AUTORACE, MODE_KEIRIN
from .timeutil import normalize_hhmm, pad2, parse_hhmm_today, today_key

logger = logging.getLogger(__name__)

FEED_BASE = "https://keirinjingle.github.io"
DEFAULT_VENUE_NAME = "会場"
GIRLS_CLASS_MARK = "Ｌ級"

# Ordered candidate keys per logical field; the first non-empty value wins.
LIST_KEYS = ("venues", "data", "items")
VENUE_RACES_KEYS = ("races", "items", "race_list", "list")
VENUE_NAME_KEYS = ("venue", "venueName", "name")
RACE_NO_KEYS = ("race_number", "raceNo", "race_no", "race", "no")
CLOSED_AT_KEYS = ("closed_at", "closedAt", "close_at", "closeAt", "deadline", "shimekiri")
URL_KEYS = ("url", "raceUrl")
TITLE_KEYS = ("class_category", "title", "name")
CLASS_CATEGORY_KEYS = ("class_category", "classCategory")


@dataclass(frozen=True)
class Race:
    race_key: str
    venue_key: str
    venue_name: str
    race_no: int
    title: str
    closed_at_hhmm: str
    url: str
    mode: str
    players: tuple[str, ...] = ()
    class_category: str = ""

    @property
    def label(self) -> str:
        return f"{self.venue_name}{self.race_no}R"


@dataclass
class Venue:
    venue_key: str
    venue_name: str
    grade: str = ""
    races: list[Race] = field(default_factory=list)


@dataclass
class ScheduleResult:
    """Outcome of a feed fetch: venues on success, an error string otherwise."""

    venues: list[Venue]
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


def pick(record: Mapping[str, Any], keys: Iterable[str], default: Any = None) -> Any:
    """Return the first value under ``keys`` that is neither None nor ``""``."""
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return default


def feed_url(mode: str, yyyymmdd: str) -> str:
    """Build the feed URL for ``mode`` on ``yyyymmdd``."""
    if mode == MODE_AUTORACE:
        return f"{FEED_BASE}/autorace/autorace_race_list_{yyyymmdd}.json"
    return f"{FEED_BASE}/date/keirin_race_list_{yyyymmdd}.json"


def _race_number(raw: Mapping[str, Any], index: int) -> int:
    value = pick(raw, RACE_NO_KEYS, index + 1)
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return index + 1
    return number or index + 1


def normalize_race(
    raw: Mapping[str, Any],
    mode: str,
    venue_name: str,
    index: int,
    yyyymmdd: str,
) -> Race:
    """Convert one raw race record into a ``Race``.

    Args:
        raw: Race object from the feed.
        mode: ``keirin`` or ``autorace``.
        venue_name: Name of the enclosing venue.
        index: Position within the venue's race list (fallback race number).
        yyyymmdd: Schedule date, part of the race key.
    """
    venue_key = f"{mode}_{venue_name}"
    race_no = _race_number(raw, index)
    players = raw.get("players")
    return Race(
        race_key=f"{yyyymmdd}_{venue_key}_{pad2(race_no)}",
        venue_key=venue_key,
        venue_name=venue_name,
        race_no=race_no,
        title=str(pick(raw, TITLE_KEYS, f"{race_no}R")),
        closed_at_hhmm=normalize_hhmm(pick(raw, CLOSED_AT_KEYS, "")),
        url=str(pick(raw, URL_KEYS, "")),
        mode=mode,
        players=tuple(str(p) for p in players) if isinstance(players, list) else (),
        class_category=str(pick(raw, CLASS_CATEGORY_KEYS, "")),
    )


def _venue_list(raw: Any) -> list[Any]:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, Mapping):
        found = pick(raw, LIST_KEYS)
        if isinstance(found, list):
            return found
    return []


def _races_of(venue: Any) -> list[Any] | None:
    if not isinstance(venue, Mapping):
        return None
    for key in VENUE_RACES_KEYS:
        value = venue.get(key)
        if isinstance(value, list):
            return value
    return None


def normalize_venues(raw: Any, mode: str, yyyymmdd: str | None = None) -> list[Venue]:
    """Reshape a raw feed payload into venues with sorted races.

    Args:
        raw: Decoded JSON payload (bare venue list or wrapping object).
        mode: ``keirin`` or ``autorace``.
        yyyymmdd: Date used in race keys (defaults to today).

    Returns:
        list[Venue]: Venues in feed order, each with races sorted by number.
        An unrecognized payload yields an empty list.
    """
    yyyymmdd = yyyymmdd or today_key()
    items = _venue_list(raw)
    if not items or _races_of(items[0]) is None:
        return []

    venues: list[Venue] = []
    for v in items:
        races_raw = _races_of(v)
        if races_raw is None:
            continue
        name = str(pick(v, VENUE_NAME_KEYS, DEFAULT_VENUE_NAME))
        races = [
            normalize_race(r, mode, name, i, yyyymmdd)
            for i, r in enumerate(races_raw)
            if isinstance(r, Mapping)
        ]
        races.sort(key=lambda r: r.race_no)
        venues.append(
            Venue(
                venue_key=f"{mode}_{name}",
                venue_name=name,
                grade=str(v.get("grade") or ""),
                races=races,
            )
        )
    return venues


def race_map(venues: Sequence[Venue]) -> dict[str, Race]:
    """Index every race by its race key."""
    return {r.race_key: r for v in venues for r in v.races}


def girls_races(
    venues: Sequence[Venue], mode: str, by_closing: bool = True
) -> list[Race]:
    """Return keirin girls' races (class ``Ｌ級``).

    Args:
        venues: Normalized venues.
        mode: Race mode; only keirin has girls' races.
        by_closing: Sort by closing time for display. When False the feed
            order (venue, then race number) is kept, which is the order bulk
            selection fills the quota in.
    """
    if mode != MODE_KEIRIN:
        return []
    found = [
        r for v in venues for r in v.races if GIRLS_CLASS_MARK in r.class_category
    ]
    if not by_closing:
        return found

    def closing(r: Race) -> float:
        at = parse_hhmm_today(r.closed_at_hhmm)
        return at.timestamp() if at else 0.0

    return sorted(found, key=closing)


class ScheduleClient:
    """Fetch the daily schedule feed for a mode.

    Attributes:
        timeout: Request timeout in seconds.
    """

    def __init__(self, timeout: float = 15) -> None:
        self.timeout = timeout

    def fetch_json(self, mode: str, yyyymmdd: str) -> Any:
        """Download and decode the raw feed.

        Raises:
            ScheduleFetchError: On network failures or non-2xx responses.
            ScheduleParseError: When the body is not valid JSON.
        """
        url = feed_url(mode, yyyymmdd)
        try:
            r = requests.get(
                url, headers={"Cache-Control": "no-cache"}, timeout=self.timeout
            )
            r.raise_for_status()
        except requests.RequestException as e:
            raise ScheduleFetchError(f"Fetch failed: {e} ({url})") from e
        try:
            return r.json()
        except ValueError as e:
            raise ScheduleParseError(f"Invalid JSON in feed ({url})") from e

    def fetch_venues(
        self, mode: str, day: date | datetime | None = None
    ) -> ScheduleResult:
        """Fetch and normalize the schedule; never raises.

        Args:
            mode: ``keirin`` or ``autorace``.
            day: Schedule date (defaults to today on the local clock).

        Returns:
            ScheduleResult: Normalized venues, or an empty list and an error.
        """
        yyyymmdd = today_key(day)
        try:
            raw = self.fetch_json(mode, yyyymmdd)
        except ScheduleError as e:
            logger.warning("schedule fetch failed: %s", e)
            return ScheduleResult(venues=[], error=str(e))
        return ScheduleResult(venues=normalize_venues(raw, mode, yyyymmdd))


class ScheduleError(RuntimeError):
    """Base class for schedule feed errors."""


class ScheduleFetchError(ScheduleError):
    """Raised when the feed cannot be downloaded."""


class ScheduleParseError(ScheduleError):
    """Raised when the feed body is not JSON."""
