from datetime import date, datetime

from mofu_timer.timeutil import (
    PLACEHOLDER,
    format_date_jp,
    format_notify,
    format_ymd,
    is_past,
    normalize_hhmm,
    notify_time,
    parse_hhmm_today,
    today_key,
)

NOW = datetime(2026, 10, 17, 12, 0, 0)


def test_normalize_hhmm_variants():
    assert normalize_hhmm("13:05:00") == "13:05"
    assert normalize_hhmm("13:05") == "13:05"
    assert normalize_hhmm("9:05") == "09:05"
    assert normalize_hhmm("1305") == "13:05"
    assert normalize_hhmm("905") == "09:05"
    assert normalize_hhmm(905) == "09:05"
    assert normalize_hhmm("  8:30 ") == "08:30"


def test_normalize_hhmm_passthrough_and_empty():
    assert normalize_hhmm("") == ""
    assert normalize_hhmm(None) == ""
    assert normalize_hhmm("soon") == "soon"
    assert normalize_hhmm("12345") == "12345"


def test_parse_hhmm_today_strict():
    assert parse_hhmm_today("13:05", NOW) == datetime(2026, 10, 17, 13, 5)
    assert parse_hhmm_today("9:05", NOW) == datetime(2026, 10, 17, 9, 5)
    assert parse_hhmm_today("13:05:00", NOW) is None
    assert parse_hhmm_today("1305", NOW) is None
    assert parse_hhmm_today("", NOW) is None
    assert parse_hhmm_today(None, NOW) is None


def test_notify_time_subtracts_offset():
    at = notify_time(normalize_hhmm("13:05:00"), 5, NOW)
    assert at == datetime(2026, 10, 17, 13, 0)
    # crosses an hour boundary
    assert notify_time("10:02", 5, NOW) == datetime(2026, 10, 17, 9, 57)
    assert notify_time("bad", 5, NOW) is None


def test_notify_time_matches_offset_for_many_inputs():
    for hh in range(0, 24, 5):
        for mm in (0, 7, 59):
            for offset in (0, 1, 5, 30, 90):
                closed = parse_hhmm_today(f"{hh:02d}:{mm:02d}", NOW)
                at = notify_time(f"{hh:02d}:{mm:02d}", offset, NOW)
                assert (closed - at).total_seconds() == offset * 60


def test_format_notify_placeholder():
    assert format_notify("13:05", 5, NOW) == "13:00"
    assert format_notify("", 5, NOW) == PLACEHOLDER


def test_is_past():
    assert is_past("11:59", NOW)
    assert is_past("12:00", NOW)
    assert not is_past("12:01", NOW)
    assert not is_past("garbage", NOW)


def test_date_labels():
    assert today_key(date(2026, 1, 5)) == "20260105"
    assert format_date_jp(date(2026, 10, 17)) == "2026年10月17日（土）"
    assert format_ymd(None) == ""
    assert format_ymd("abc") == ""
    ms = datetime(2026, 12, 31, 12, 0).timestamp() * 1000
    assert format_ymd(ms) == "2026/12/31"
