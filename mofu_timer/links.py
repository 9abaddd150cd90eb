"""Where a notification tap should take the user.

Each race mode has its own list of link targets. ``json`` means "use the race
URL shipped in the schedule feed"; the other targets are fixed betting-site
landing pages.
"""

MODE_KEIRIN = "keirin"
MODE_AUTORACE = "autorace"
MODES = (MODE_KEIRIN, MODE_AUTORACE)

LINK_TARGETS_KEIRIN: dict[str, str] = {
    "json": "netkeirin (race info)",
    "oddspark": "Oddspark",
    "chariloto": "Chariloto",
    "winticket": "WINTICKET",
    "dmm": "DMM Keirin",
}

LINK_TARGETS_AUTO: dict[str, str] = {
    "autoracejp": "AutoRace.JP (official)",
    "oddspark": "Oddspark",
    "chariloto": "Chariloto",
    "winticket": "WINTICKET",
    "json": "Do not open a betting site",
}

_KEIRIN_URLS = {
    "oddspark": "https://www.oddspark.com/",
    "chariloto": "https://www.chariloto.com/keirin",
    "winticket": "https://www.winticket.jp/keirin/",
    "dmm": "https://keirin.dmm.com/",
}

_AUTO_URLS = {
    "autoracejp": "https://autorace.jp/",
    "oddspark": "https://www.oddspark.com/autorace/",
    "chariloto": "https://www.chariloto.com/autorace",
    "winticket": "https://www.winticket.jp/autorace/",
}


def link_targets(mode: str) -> dict[str, str]:
    """Return the ``key -> label`` table of link targets for ``mode``."""
    return LINK_TARGETS_AUTO if mode == MODE_AUTORACE else LINK_TARGETS_KEIRIN


def link_url(target: str, race_url: str | None, mode: str) -> str:
    """Resolve the URL a reminder for a race should open.

    Args:
        target: Link target key (e.g. ``"winticket"``).
        race_url: Race URL from the feed, used for ``json`` and unknown keys.
        mode: ``keirin`` or ``autorace``.

    Returns:
        str: The resolved URL, or ``""`` when nothing is available.
    """
    table = _AUTO_URLS if mode == MODE_AUTORACE else _KEIRIN_URLS
    return table.get(target) or race_url or ""
