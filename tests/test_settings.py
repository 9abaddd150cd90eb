from mofu_timer.settings import Settings


def test_from_dict_merges_over_defaults():
    s = Settings.from_dict({"link_target": "dmm", "volume": 11})
    assert s.link_target == "dmm"
    assert s.timer1_minutes_before == 5
    assert s.link_target_for("autorace") == "autoracejp"
    assert Settings.from_dict(None) == Settings()


def test_from_dict_coerces_offsets():
    s = Settings.from_dict(
        {"timer1_minutes_before": "7", "timer2_minutes_before": None}
    )
    assert s.timer1_minutes_before == 7
    assert s.timer2_minutes_before == 2
    assert Settings.from_dict({"timer1_minutes_before": "soon"}).timer1_minutes_before == 5
