from datetime import date, datetime, timedelta

import pytest

from stash_api import behavior, insights
from stash_api.insights import InsightContext, evaluate, next_purchase_date
from stash_api.repositories import budgets_repo
from stash_api.utils.budget_data import budget_for_persona
from stash_api.utils.dates import within_days

TODAY = date(2025, 1, 15)
NOW = datetime(2025, 1, 15, 9, 0)


def _tx(days_ago, amount, category="Shopping", merchant="Store", n=0):
    return {"id": f"t{days_ago}_{n}", "date": (TODAY - timedelta(days=days_ago)).isoformat(),
            "amount": amount, "category": category, "merchant": merchant}


def _ctx(transactions, personality="Medium Spender", salary=100000.0, caps=None, **kw):
    return InsightContext(user_id="u1", spending_personality=personality, salary=salary,
                          transactions=transactions, today=TODAY, budget_caps=caps, **kw)


def _by_type(items):
    return {x["type"]: x for x in items}


def test_empty_history_insights_in_priority_order():
    items = evaluate(_ctx([]), now=NOW)
    assert [x["type"] for x in items] == [
        "budget_overrun", "budget_cap_warning", "savings_opportunity", "predictive_spending", "goal"]
    found = _by_type(items)
    assert found["budget_overrun"]["content"] == "Unable to analyze budget status."
    assert found["predictive_spending"]["content"].startswith("No recent transactions")
    assert found["savings_opportunity"]["content"] == (
        "You've spent ₹0 in the last 3 days. You could save ₹20,000 this month "
        "by maintaining this controlled spending pattern!")


def test_burn_risk_fires_at_three_same_category_transactions():
    found = _by_type(evaluate(_ctx([_tx(d, 100) for d in range(3)]), now=NOW))
    assert found["burn_risk"]["priority"] == "critical"
    assert found["burn_risk"]["content"].startswith("You've made 3 transactions in Shopping this week.")
    assert "smart_categorization" not in found

    found = _by_type(evaluate(_ctx([_tx(d, 100) for d in range(5)]), now=NOW))
    assert found["burn_risk"]["content"].startswith("You've made 5 transactions in Shopping this week.")
    assert "I noticed 5 transactions in Shopping (₹500)" in found["smart_categorization"]["content"]


@pytest.mark.parametrize("level, count, fires", [
    ("low", 3, False), ("low", 4, True), ("high", 2, True), ("medium", 2, False)])
def test_burn_risk_minimum_scales_with_sensitivity(level, count, fires):
    ctx = _ctx([_tx(d, 100) for d in range(count)], sensitivity_level=level)
    assert ("burn_risk" in _by_type(evaluate(ctx, now=NOW))) is fires


def test_windows_end_today_and_span_n_days():
    # days 3..7 ago: only 3..6 fall inside the 7-day window
    found = _by_type(evaluate(_ctx([_tx(d, 100) for d in range(3, 8)]), now=NOW))
    assert found["burn_risk"]["content"].startswith("You've made 4 transactions in Shopping this week.")
    spent = _by_type(evaluate(_ctx([_tx(3, 1000)]), now=NOW))["savings_opportunity"]["content"]
    assert spent.startswith("You've spent ₹0 in the last 3 days.")
    spent = _by_type(evaluate(_ctx([_tx(2, 1000)]), now=NOW))["savings_opportunity"]["content"]
    assert spent.startswith("You've spent ₹1,000 in the last 3 days.")


@pytest.mark.parametrize("days, inside, outside", [(3, 2, 3), (5, 4, 5), (7, 6, 7), (14, 13, 14), (30, 29, 30)])
def test_within_days_boundaries(days, inside, outside):
    assert within_days(_tx(inside, 1), TODAY, days)
    assert not within_days(_tx(outside, 1), TODAY, days)
    assert not within_days(_tx(-1, 1), TODAY, days)


def test_budget_overrun_uses_normalized_categories():
    caps = budget_for_persona("Medium Spender")
    found = _by_type(evaluate(_ctx([_tx(1, 7000, "food")], caps=caps), now=NOW))
    assert "Food & Dining (₹1,000 over, 16.7% of budget)" in found["budget_overrun"]["content"]


def test_budget_overrun_trigger_scales_with_threshold():
    caps = budget_for_persona("Medium Spender")
    ctx = _ctx([_tx(1, 7000, "food")], caps=caps,
               thresholds=behavior.AdaptiveThresholds(budget_overrun_threshold=150))
    found = _by_type(evaluate(ctx, now=NOW))
    assert found["budget_overrun"]["content"] == "Great job! You're staying within your budget limits."


def test_budget_cap_warning_ratio():
    caps = budget_for_persona("Medium Spender")
    balanced = _by_type(evaluate(_ctx([], caps=caps), now=NOW))["budget_cap_warning"]
    assert balanced["content"] == "Your budget caps are well-balanced at 50.0% of your salary."
    high = _by_type(evaluate(_ctx([], caps=caps, salary=50000.0), now=NOW))["budget_cap_warning"]
    assert high["content"].startswith("Your total budget caps (₹50,000) represent 100.0% of your salary.")


def test_personality_tip_only_for_heavy_spenders():
    txs = [_tx(1, 2000, "dining")]
    assert "tip" in _by_type(evaluate(_ctx(txs, personality="Heavy Spender"), now=NOW))
    assert "tip" not in _by_type(evaluate(_ctx(txs), now=NOW))


def test_goal_and_pattern_templates():
    # two Wednesdays in the last 14 days, one of them a savings transfer
    txs = [_tx(0, 5000, "Savings", "Savings Account Transfer"), _tx(7, 300, "Groceries")]
    items = evaluate(_ctx(txs), now=NOW)
    assert any(x["content"].startswith("You tend to spend more on Wednesdays.") for x in items)
    goal = next(x for x in items if x["title"] == "Goal Progress Update")
    assert goal["content"].startswith("Great job! You've saved ₹5,000 this week.")


def test_proactive_action_projection_window():
    # 5-day projection: 5 * 4000 / 5 * 30 = 120000 -> 60% of a 200000 salary
    txs = [_tx(d, 4000, "Shopping", n=d) for d in range(5)]
    found = _by_type(evaluate(_ctx(txs, salary=200000.0), now=NOW))
    assert "(60.0% of salary)" in found["proactive_action"]["content"]
    assert "proactive_action" not in _by_type(evaluate(_ctx(txs, salary=100000.0), now=NOW))


def test_next_purchase_date_is_clamped():
    assert next_purchase_date([date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 5)], TODAY) == date(2025, 1, 18)
    assert next_purchase_date([date(2025, 1, 14)], TODAY) == date(2025, 1, 21)
    assert next_purchase_date([date(2025, 1, 1), date(2025, 1, 14)], TODAY) == date(2025, 1, 22)


def test_insight_ids_are_stable_per_day():
    a = insights.insight_id("u1", "tip", "text", TODAY)
    assert a == insights.insight_id("u1", "tip", "text", TODAY)
    assert a != insights.insight_id("u1", "tip", "text", TODAY + timedelta(days=1))
    assert a.startswith("insight_") and len(a) == len("insight_") + 24


def test_dedupe_and_prioritize():
    items = [
        {"type": "tip", "content": "a", "priority": "tip"},
        {"type": "tip", "content": "a", "priority": "tip"},
        {"type": "goal", "content": "b", "priority": "info"},
        {"type": "burn_risk", "content": "c", "priority": "critical"},
    ]
    out = insights.dedupe_and_prioritize(items)
    assert [x["type"] for x in out] == ["burn_risk", "tip", "goal"]


def _profile():
    return {"spending_personality": "Medium Spender", "salary": 100000.0, "user_type": "test"}


def test_generated_insights_are_persisted(conn):
    items = insights.generate_insights_for_user(conn, "u1", [], _profile(), today=TODAY, now=NOW)
    assert len(insights.insight_history(conn, "u1")) == len(items)
    assert len(insights.get_active_insights(conn, "u1", 3)) == 3


def test_regenerating_keeps_response_and_active_flag(conn):
    items = insights.generate_insights_for_user(conn, "u1", [], _profile(), today=TODAY, now=NOW)
    first, second = items[0], items[1]
    insights.update_insight_response(conn, "u1", first["id"], "acted_on", now=NOW)
    assert insights.deactivate_insight(conn, "u1", second["id"])

    insights.generate_insights_for_user(conn, "u1", [], _profile(), today=TODAY, now=NOW + timedelta(hours=2))
    assert insights.get_insight(conn, "u1", first["id"])["user_response"] == "acted_on"
    assert insights.get_insight(conn, "u1", second["id"])["is_active"] is False
    active_ids = {x["id"] for x in insights.get_active_insights(conn, "u1", 50)}
    assert second["id"] not in active_ids


def test_active_insights_skip_duplicate_content(conn):
    base = {"user_id": "u1", "type": "tip", "priority": "tip", "title": "T", "content": "same",
            "related_transactions": [], "is_active": True, "data": {}}
    insights.upsert_insights(conn, [
        dict(base, id="insight_a", generated_at="2025-01-14T09:00:00"),
        dict(base, id="insight_b", generated_at="2025-01-15T09:00:00"),
        dict(base, id="insight_c", content="other", generated_at="2025-01-13T09:00:00"),
    ])
    active = insights.get_active_insights(conn, "u1", 3)
    assert [x["id"] for x in active] == ["insight_b", "insight_c"]


def test_update_insight_response_records_behavior(conn):
    items = insights.generate_insights_for_user(conn, "u1", [], _profile(), today=TODAY, now=NOW)
    target = items[0]
    updated = insights.update_insight_response(conn, "u1", target["id"], "get_tips_clicked", now=NOW)
    assert updated["user_response"] == "get_tips_clicked"
    logged = behavior.list_responses(conn, "u1")
    assert logged[-1]["response"] == "accepted"
    assert logged[-1]["insight_type"] == target["type"]


def test_update_insight_response_errors(conn):
    with pytest.raises(ValueError):
        insights.update_insight_response(conn, "u1", "insight_x", "loved_it")
    assert insights.update_insight_response(conn, "u1", "insight_missing", "ignored") is None
    assert insights.deactivate_insight(conn, "u1", "insight_missing") is False


def test_failing_analyzer_does_not_drop_template_insights(monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("forecast unavailable")

    monkeypatch.setattr(insights.predictive, "generate_predictive_insights", boom)
    items = evaluate(_ctx([]), now=NOW)
    assert [x["type"] for x in items] == [
        "budget_overrun", "budget_cap_warning", "savings_opportunity", "predictive_spending"]


def _accept_five(conn, kind="burn_risk"):
    shown = datetime(2025, 1, 14, 9, 0)
    for i in range(5):
        behavior.record_response(conn, "u1", f"i{i}", "accepted", kind, shown_at=shown.isoformat(),
                                 responded_at=shown + timedelta(minutes=10))


def test_behavioral_and_adaptive_threshold_insights(conn):
    _accept_five(conn)
    items = insights.generate_insights_for_user(conn, "u1", [], _profile(), persist=False, today=TODAY, now=NOW)
    behavioral = [x["content"] for x in items if x["title"] == "Behavioral Adaptation"]
    assert behavioral == [
        "You respond well to burn_risk insights. I'll prioritize similar recommendations.",
        "I notice you're most active around 9:00. I'll time insights accordingly.",
        "I've increased alert sensitivity since you respond well to proactive guidance.",
    ]
    adaptive = next(x for x in items if x["title"] == "Adaptive Thresholds")
    assert adaptive["content"] == ("I've adjusted alert sensitivity based on your behavior. Budget alerts now "
                                   "trigger at 70% and transaction warnings at 4 transactions.")
    assert adaptive["data"]["sensitivity_level"] == "high"


def test_timing_gate_holds_back_behavioral_insights(conn):
    _accept_five(conn)
    just_after = datetime(2025, 1, 14, 9, 11)
    items = insights.generate_insights_for_user(conn, "u1", [], _profile(), persist=False, today=TODAY,
                                                now=just_after)
    titles = [x["title"] for x in items]
    assert "Behavioral Adaptation" not in titles
    assert "Adaptive Thresholds" in titles


def _goal_target(items):
    goal = next(x for x in items if x["data"].get("prediction_type") == "goal_tracking")
    return goal["data"]["target_amount"]


def test_savings_goal_target_ignores_persona_default_cap(conn):
    profile = dict(_profile(), spending_personality="Max Saver")
    items = insights.generate_insights_for_user(conn, "u1", [], profile, persist=False, today=TODAY, now=NOW)
    assert _goal_target(items) == 40000


def test_savings_goal_target_uses_stored_savings_budget(conn):
    budgets_repo.upsert_cap(conn, "u1", "Savings", 30000, "Max Saver")
    profile = dict(_profile(), spending_personality="Max Saver")
    items = insights.generate_insights_for_user(conn, "u1", [], profile, persist=False, today=TODAY, now=NOW)
    assert _goal_target(items) == 30000
