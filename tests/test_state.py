import json

from mofu_timer.state import (
    KEY_FCM_TOKEN_SENT,
    KEY_FCM_TOKEN_SENT_AT,
    KEY_TOGGLED,
    KEY_USER_ID,
    StateStore,
)


def test_state_store_persistence(tmp_path):
    path = tmp_path / "state.json"
    store = StateStore(str(path))
    assert store.get(KEY_TOGGLED, {}) == {}

    store.set(KEY_TOGGLED, {"20261017_keirin_平塚_01": True})

    # reload new instance
    store2 = StateStore(str(path))
    assert store2.get(KEY_TOGGLED) == {"20261017_keirin_平塚_01": True}
    assert not (tmp_path / "state.json.tmp").exists()


def test_anon_user_id_generated_once(tmp_path):
    path = tmp_path / "nested" / "state.json"
    store = StateStore(str(path))
    uid = store.ensure_anon_user_id()
    assert uid
    assert store.ensure_anon_user_id() == uid
    assert StateStore(str(path)).ensure_anon_user_id() == uid
    assert json.loads(path.read_text(encoding="utf-8"))[KEY_USER_ID] == uid


def test_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    store = StateStore(str(path))
    assert store.get(KEY_TOGGLED, {}) == {}

    path.write_text("[1, 2]", encoding="utf-8")
    assert StateStore(str(path)).get(KEY_TOGGLED, {}) == {}


def test_mark_token_sent(tmp_path):
    store = StateStore(str(tmp_path / "s.json"))
    store.mark_token_sent("tok")
    assert store.get(KEY_FCM_TOKEN_SENT) == "tok"
    assert isinstance(store.get(KEY_FCM_TOKEN_SENT_AT), int)


def test_path_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("MOFU_STATE_PATH", str(tmp_path / "env.json"))
    assert StateStore().path == str(tmp_path / "env.json")
