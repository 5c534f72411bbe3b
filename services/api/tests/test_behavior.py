from datetime import datetime, timedelta

import pytest

from stash_api import behavior

SHOWN = datetime(2025, 1, 15, 10, 0)


def _record(conn, response, n=1, kind="burn_risk", minutes=30, start=SHOWN):
    for i in range(n):
        behavior.record_response(conn, "u1", f"i{i}", response, kind,
                                 shown_at=start.isoformat(),
                                 responded_at=start + timedelta(minutes=minutes))


def test_no_responses_means_default_thresholds(conn):
    assert behavior.get_profile(conn, "u1") is None
    t = behavior.adaptive_thresholds(None)
    assert (t.budget_overrun_threshold, t.burn_risk_threshold) == (100.0, 5)


def test_sensitivity_needs_five_responses(conn):
    _record(conn, "accepted", 4)
    assert behavior.get_profile(conn, "u1").sensitivity_level == "medium"


def test_high_sensitivity_lowers_thresholds(conn):
    _record(conn, "accepted", 5)
    profile = behavior.get_profile(conn, "u1")
    assert profile.sensitivity_level == "high"
    t = behavior.adaptive_thresholds(profile)
    assert t.budget_overrun_threshold == pytest.approx(70)
    assert t.burn_risk_threshold == 4
    assert profile.preferred_insight_types == ["burn_risk"]


def test_low_sensitivity_raises_thresholds(conn):
    _record(conn, "ignored", 8)
    _record(conn, "accepted", 2, kind="goal")
    profile = behavior.get_profile(conn, "u1")
    assert profile.sensitivity_level == "low"
    t = behavior.adaptive_thresholds(profile)
    assert t.budget_overrun_threshold == pytest.approx(150)
    assert t.burn_risk_threshold == 8


def test_invalid_response_rejected(conn):
    with pytest.raises(ValueError):
        behavior.record_response(conn, "u1", "i1", "loved_it", "burn_risk")


def test_average_response_time_is_a_running_halving(conn):
    _record(conn, "accepted", 1, minutes=30)
    _record(conn, "accepted", 1, minutes=10, start=SHOWN + timedelta(hours=1))
    profile = behavior.get_profile(conn, "u1")
    assert profile.average_response_time == pytest.approx(12.5)
    assert profile.active_hours == {10: 1, 11: 1}


def test_optimal_timing(conn):
    assert behavior.optimal_timing(None, SHOWN)["should_send"] is True
    _record(conn, "accepted", 1, minutes=30)
    profile = behavior.get_profile(conn, "u1")
    # last active 10:30, average response 15 minutes
    assert behavior.optimal_timing(profile, datetime(2025, 1, 15, 10, 35)) == {
        "should_send": False, "reason": "User recently active"}
    assert behavior.optimal_timing(profile, datetime(2025, 1, 16, 15, 0)) == {
        "should_send": False, "reason": "User typically inactive at this time"}
    assert behavior.optimal_timing(profile, datetime(2025, 1, 16, 10, 5))["should_send"] is True


def test_behavioral_insights_messages(conn):
    _record(conn, "ignored", 5)
    messages = behavior.behavioral_insights(behavior.get_profile(conn, "u1"))
    assert messages[0] == "You often ignore burn_risk alerts. I'll adjust the frequency and timing."
    assert "10:00" in messages[1]
    assert messages[-1] == "I've reduced alert sensitivity since you prefer fewer notifications."
