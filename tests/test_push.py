from mofu_timer.push import (
    APP_TITLE,
    build_notification,
    format_token_short,
    resolve_click_url,
)


def test_resolve_click_url_fallbacks():
    assert resolve_click_url({"url": "https://a", "notify_url": "https://b"}) == "https://a"
    assert resolve_click_url({"notify_url": "https://b"}) == "https://b"
    assert resolve_click_url({}, link="https://link") == "https://link"
    assert resolve_click_url(None, origin="https://app/") == "https://app/#notifications"
    assert resolve_click_url({"url": ""}) == "https://mt.qui2.net/#notifications"


def test_build_notification():
    n = build_notification(
        {
            "notification": {"title": "平塚7R", "body": "締切5分前"},
            "data": {"race_key": "k7", "notify_url": "https://n"},
        }
    )
    assert n["title"] == "平塚7R"
    assert n["body"] == "締切5分前"
    assert n["tag"] == "k7"
    assert n["renotify"] is True
    assert n["data"]["url"] == "https://n"
    assert n["data"]["race_key"] == "k7"


def test_build_notification_data_only_and_defaults():
    n = build_notification({"data": {"title": "T", "body": "B"}})
    assert n["title"] == "T" and n["body"] == "B" and n["tag"] is None
    empty = build_notification({})
    assert empty["title"] == APP_TITLE
    assert empty["body"] == ""
    assert empty["data"]["url"].endswith("/#notifications")
    linked = build_notification({"fcmOptions": {"link": "https://l"}, "data": {"url": "https://u"}})
    assert linked["data"]["url"] == "https://l"


def test_format_token_short():
    assert format_token_short("") == ""
    assert format_token_short("short") == "short"
    assert format_token_short("a" * 8 + "x" * 20 + "b" * 6) == "aaaaaaaa...bbbbbb"
