from mofu_timer.api import BackendClient, BackendError
from mofu_timer.debounce import Debouncer
from mofu_timer.plan import (
    MSG_FAILED,
    MSG_NO_API,
    PRO_MAX_NOTIFICATIONS,
    STATUS_IDLE,
    STATUS_VERIFIED,
    PlanGate,
    state_from_response,
)


class FakeBackend(BackendClient):
    def __init__(self, response=None, error=None, base="https://b"):
        super().__init__(base)
        self.response = response
        self.error = error
        self.calls = []

    def verify_pro(self, anon_user_id, code):
        self.calls.append((anon_user_id, code))
        if self.error:
            raise self.error
        return self.response


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def test_state_from_response_defaults_and_overrides():
    st = state_from_response({"plan": "pro"})
    assert st.pro and st.max_notifications == PRO_MAX_NOTIFICATIONS
    assert st.timer2_allowed and st.ads_off
    assert st.message == "PRO"

    st2 = state_from_response(
        {"pro": True, "max_notifications": 50, "timer2_allowed": False, "ads_off": "yes"}
    )
    assert st2.pro
    assert st2.max_notifications == 50
    assert st2.timer2_allowed is False
    # non-boolean flags are ignored
    assert st2.ads_off is True
    assert not st2.timer2_gate_open

    st3 = state_from_response({"plan": "free", "message": "nope"})
    assert not st3.pro and st3.max_notifications == 10 and st3.message == "nope"


def test_state_from_response_expiry():
    st = state_from_response({"plan": "PRO", "expires_at": "1798675200000"})
    assert st.expires_at_ms == 1798675200000
    assert st.period.startswith("Expires: ")
    st2 = state_from_response({"plan": "PRO", "expires_at": "never", "period": "1 month"})
    assert st2.expires_at_ms is None and st2.period == "1 month"


def test_verify_without_backend_is_free():
    gate = PlanGate(FakeBackend(base=""), lambda: "u")
    st = gate.verify_now("CODE")
    assert st.status == STATUS_VERIFIED
    assert not st.pro and st.message == MSG_NO_API


def test_verify_blank_code_skips_request():
    backend = FakeBackend({"plan": "PRO"})
    gate = PlanGate(backend, lambda: "u")
    st = gate.verify_now("   ")
    assert not st.pro and st.message == ""
    assert backend.calls == []


def test_verify_success_trims_code_and_notifies():
    backend = FakeBackend({"plan": "PRO"})
    seen = []
    gate = PlanGate(backend, lambda: "user-1", on_change=seen.append)
    st = gate.verify_now("  CODE ")
    assert st.pro
    assert backend.calls == [("user-1", "CODE")]
    assert seen == [st]
    assert gate.state is st


def test_verify_failure_falls_back_to_free():
    gate = PlanGate(FakeBackend(error=BackendError("500")), lambda: "u")
    st = gate.verify_now("CODE")
    assert not st.pro
    assert st.max_notifications == 10
    assert not st.timer2_allowed and not st.ads_off
    assert st.message == MSG_FAILED


def test_code_changes_are_debounced():
    clock = FakeClock()
    backend = FakeBackend({"plan": "PRO"})
    gate = PlanGate(backend, lambda: "u", debouncer=Debouncer(0.6, clock=clock))
    assert gate.state.status == STATUS_IDLE
    for code in ("C", "CO", "COD", "CODE"):
        gate.code_changed(code)
        clock.t += 0.2
    assert backend.calls == []
    clock.t += 0.6
    assert gate.debouncer.run_due()
    assert backend.calls == [("u", "CODE")]
    assert gate.state.pro
