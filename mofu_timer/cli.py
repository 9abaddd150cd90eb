"""Mofu timer CLI.

Browse today's keirin/autorace schedule, pick races to be reminded about,
manage settings and the PRO code, and watch upcoming deadlines.
"""

import argparse
import json
import logging
import os
import sys
import time

from dotenv import load_dotenv
from rich import print
from rich.logging import RichHandler
from rich.markup import escape

from .api import BackendClient
from .app import NOW_REFRESH_INTERVAL, MofuTimer
from .links import MODE_KEIRIN, MODES, link_targets
from .push import DEFAULT_ORIGIN, build_notification, format_token_short
from .schedule import Race, ScheduleClient
from .state import KEY_FCM_TOKEN, StateStore
from .timeutil import PLACEHOLDER, format_date_jp, format_notify, notify_time

SCHEDULE_COMMANDS = {"races", "toggle", "venue", "girls", "list", "remove", "watch"}


def resolve_race(app: MofuTimer, ref: str) -> str | None:
    """Resolve a race reference to a race key.

    Args:
        app: Controller with a loaded schedule.
        ref: Full race key, or ``VENUE:NO`` such as ``平塚:7``.

    Returns:
        str | None: The race key, or ``None`` when nothing matches.
    """
    if ref in app.races or app.selection.is_selected(ref):
        return ref
    venue, sep, no = ref.rpartition(":")
    if not sep:
        return None
    v = app.find_venue(venue)
    if v is None:
        return None
    for r in v.races:
        if no.isdigit() and int(no) == r.race_no:
            return r.race_key
    return None


def format_race_row(app: MofuTimer, race: Race) -> str:
    """Render one schedule line such as ``[x] 07R 13:05 (13:00) S級予選``."""
    mark = "x" if app.selection.is_selected(race.race_key) else " "
    closed = app.is_closed(race)
    reminder = format_notify(
        race.closed_at_hhmm, app.settings.timer1_minutes_before, app.now
    )
    line = (
        f"[{mark}] {race.race_no:02d}R {race.closed_at_hhmm or PLACEHOLDER}"
        f" ({reminder}) {race.title}"
    )
    if race.players:
        line += f" | {' / '.join(race.players)}"
    line = escape(line)
    return f"[dim]{line} closed[/dim]" if closed else line


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    p = argparse.ArgumentParser(
        description="Mofu timer: keirin/autorace deadline reminders"
    )
    p.add_argument(
        "--mode", choices=MODES, default=MODE_KEIRIN, help="Race type (default: keirin)"
    )
    p.add_argument("--state", default=None, help="State file (default: MOFU_STATE_PATH)")
    p.add_argument("--api-base", default=None, help="Override MOFU_API_BASE env var")
    p.add_argument("--origin", default=None, help="Override MOFU_APP_ORIGIN env var")
    p.add_argument("--debug", action="store_true", help="Verbose logging")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("races", help="List today's races")

    t = sub.add_parser("toggle", help="Select/deselect races (race key or VENUE:NO)")
    t.add_argument("races", nargs="+")

    for name, help_text in (("venue", "all races of a venue"), ("girls", "all girls' races")):
        b = sub.add_parser(name, help=f"Select or deselect {help_text}")
        if name == "venue":
            b.add_argument("venue", help="Venue name or key")
        g = b.add_mutually_exclusive_group(required=True)
        g.add_argument("--on", dest="on", action="store_true")
        g.add_argument("--off", dest="on", action="store_false")

    ls = sub.add_parser("list", help="Show selected notifications")
    ls.add_argument("--text", action="store_true", help="Plain text for copying")

    r = sub.add_parser("remove", help="Delete a notification")
    r.add_argument("race")

    sub.add_parser("reset", help="Clear every selection")

    s = sub.add_parser("settings", help="Show or change settings")
    s.add_argument("--timer1", type=int, help="Minutes before closing (1st reminder)")
    s.add_argument("--timer2", type=int, help="Minutes before closing (2nd reminder)")
    s.add_argument(
        "--timer2-enabled", action=argparse.BooleanOptionalAction, default=None
    )
    s.add_argument("--link-target", help="Keirin link target key")
    s.add_argument("--link-target-auto", help="Autorace link target key")
    s.add_argument("--pro-code", help="PRO code ('' to clear)")

    sub.add_parser("plan", help="Show the plan state")

    reg = sub.add_parser("register", help="Register a push token with the backend")
    reg.add_argument("token")

    tp = sub.add_parser("test-push", help="Request a test push in 5 seconds")
    tp.add_argument("--token", default=None)

    pp = sub.add_parser("push-preview", help="Show how a push payload is displayed")
    pp.add_argument("payload", help="Push message as JSON")

    w = sub.add_parser("watch", help="Watch deadlines and print due reminders")
    w.add_argument(
        "--interval",
        type=int,
        default=NOW_REFRESH_INTERVAL,
        help=f"Clock refresh interval in seconds (default: {NOW_REFRESH_INTERVAL})",
    )
    w.add_argument("--once", action="store_true", help="Run once and exit")
    return p


def _print_races(app: MofuTimer) -> None:
    print(f"[bold]{format_date_jp(app.now.date())}[/bold] {app.mode}")
    print(f"Selected {app.selection.count}/{app.quota}")
    for v in app.venues:
        grade = f" ({v.grade})" if v.grade else ""
        print(f"[bold]{v.venue_name}[/bold]{grade}")
        for race in v.races:
            print("  " + format_race_row(app, race))


def _print_list(app: MofuTimer, text: bool) -> None:
    if text:
        print(app.notification_text())
        return
    rows = app.notification_rows()
    if not rows:
        print("No notifications.")
        return
    for row in rows:
        timer2 = f" / {row.timer2_at}" if row.timer2_at else ""
        closed = " [dim]closed[/dim]" if row.closed else ""
        print(
            f"{row.race.label} {row.race.title} deadline "
            f"{row.race.closed_at_hhmm or PLACEHOLDER} "
            f"reminder {row.timer1_at}{timer2} {row.link}{closed}"
        )


def _print_settings(app: MofuTimer) -> None:
    s = app.settings
    print(f"timer1_minutes_before: {s.timer1_minutes_before}")
    print(f"timer2_enabled: {s.timer2_enabled} (active: {app.timer2_active})")
    print(f"timer2_minutes_before: {s.timer2_minutes_before}")
    for mode, key in ((MODES[0], s.link_target), (MODES[1], s.link_target_auto)):
        print(f"link target ({mode}): {key} ({link_targets(mode).get(key, '?')})")
    print(f"pro_code: {'set' if s.pro_code else '-'}")
    token = app.store.get(KEY_FCM_TOKEN, "")
    print(f"push token: {format_token_short(token) or '-'}")


def _print_plan(app: MofuTimer) -> None:
    st = app.plan_state
    print(f"plan: {'PRO' if st.pro else 'FREE'} ({st.status}) {st.message}")
    print(f"max notifications: {st.max_notifications}")
    print(f"second reminder allowed: {st.timer2_allowed}")
    print(f"ads off: {st.ads_off}")
    if st.period:
        print(st.period)


def watch(app: MofuTimer, interval: int, once: bool) -> int:
    """Print reminders as their time passes, refreshing the clock periodically."""
    announced: set[tuple[str, int]] = set()
    closed_seen: set[str] = set()
    interval = max(5, int(interval))
    try:
        while True:
            app.refresh_now()
            app.tick()
            offsets = [app.settings.timer1_minutes_before]
            if app.timer2_active:
                offsets.append(app.settings.timer2_minutes_before)
            for race in app.selected_races():
                if app.is_closed(race):
                    if race.race_key not in closed_seen:
                        closed_seen.add(race.race_key)
                        print(f"[dim]Closed:[/dim] {race.label}")
                    continue
                for minutes in offsets:
                    at = notify_time(race.closed_at_hhmm, minutes, app.now)
                    if at is None or app.now < at or (race.race_key, minutes) in announced:
                        continue
                    announced.add((race.race_key, minutes))
                    print(
                        f"[green]Reminder:[/green] {race.label} closes at "
                        f"{race.closed_at_hhmm}"
                    )
            if once:
                return 0
            time.sleep(interval)
    except KeyboardInterrupt:
        print("\nBye")
        return 0


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Args:
        argv: Optional list of arguments (defaults to ``sys.argv`` when None).

    Returns:
        int: Process exit code (``0`` on success, ``2`` on errors).
    """
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )

    app = MofuTimer(
        StateStore(args.state),
        backend=BackendClient(args.api_base),
        schedule_client=ScheduleClient(),
        origin=args.origin or os.getenv("MOFU_APP_ORIGIN") or DEFAULT_ORIGIN,
        alert=lambda msg: print(f"[yellow]Warning:[/yellow] {msg}"),
    )
    app.start()
    app.flush()

    if args.command in SCHEDULE_COMMANDS:
        app.load_schedule(args.mode)
        if app.error:
            print(f"[red]Failed to load schedule:[/red] {app.error}")
            if args.command != "remove":
                return 2

    rc = 0
    cmd = args.command
    if cmd == "races":
        _print_races(app)
    elif cmd == "toggle":
        for ref in args.races:
            key = resolve_race(app, ref)
            if key is None:
                print(f"[red]Error:[/red] unknown race {ref}")
                rc = 2
                continue
            on = app.toggle_race(key)
            print(f"{key}: {'on' if on else 'off'}")
    elif cmd in ("venue", "girls"):
        try:
            if cmd == "venue":
                result = app.set_venue_all(args.venue, args.on)
            else:
                result = app.set_girls_all(args.on)
        except KeyError:
            print(f"[red]Error:[/red] unknown venue {args.venue}")
            return 2
        if args.on:
            print(f"Enabled {len(result.added)} race(s).")
        print(f"Selected {app.selection.count}/{app.quota}")
    elif cmd == "list":
        _print_list(app, args.text)
    elif cmd == "remove":
        key = resolve_race(app, args.race) or args.race
        app.remove_notification(key)
        print(f"Removed {key}")
    elif cmd == "reset":
        removed = app.reset_all_selections()
        print(f"Cleared {len(removed)} notification(s).")
    elif cmd == "settings":
        patch = {
            "timer1_minutes_before": args.timer1,
            "timer2_minutes_before": args.timer2,
            "timer2_enabled": args.timer2_enabled,
            "link_target": args.link_target,
            "link_target_auto": args.link_target_auto,
            "pro_code": args.pro_code,
        }
        patch = {k: v for k, v in patch.items() if v is not None}
        if patch:
            app.update_settings(**patch)
            app.flush()
        _print_settings(app)
    elif cmd == "plan":
        _print_plan(app)
    elif cmd == "register":
        sent = app.register_device(args.token)
        print("Registered." if sent else "Nothing sent.")
    elif cmd == "test-push":
        print(f"Test push: {app.send_test_push(args.token)}")
    elif cmd == "push-preview":
        try:
            payload = json.loads(args.payload)
        except ValueError as e:
            print(f"[red]Error:[/red] invalid JSON: {e}")
            return 2
        print(build_notification(payload, app.origin))
    elif cmd == "watch":
        rc = watch(app, args.interval, args.once)

    app.flush()
    return rc


if __name__ == "__main__":
    sys.exit(main())
