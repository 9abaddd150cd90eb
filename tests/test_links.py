from mofu_timer.links import MODE_AUTORACE, MODE_KEIRIN, link_targets, link_url


def test_link_url_keirin():
    assert link_url("json", "https://netkeirin/race/1", MODE_KEIRIN) == (
        "https://netkeirin/race/1"
    )
    assert link_url("dmm", "https://netkeirin/race/1", MODE_KEIRIN) == (
        "https://keirin.dmm.com/"
    )
    # unknown target falls back to the feed URL
    assert link_url("nope", "u", MODE_KEIRIN) == "u"
    assert link_url("json", None, MODE_KEIRIN) == ""


def test_link_url_autorace():
    assert link_url("autoracejp", "", MODE_AUTORACE) == "https://autorace.jp/"
    assert link_url("oddspark", "", MODE_AUTORACE) == "https://www.oddspark.com/autorace/"
    assert link_url("json", "https://x/race", MODE_AUTORACE) == "https://x/race"


def test_link_targets_per_mode():
    assert "dmm" in link_targets(MODE_KEIRIN)
    assert "autoracejp" in link_targets(MODE_AUTORACE)
    assert "dmm" not in link_targets(MODE_AUTORACE)
