from datetime import date

import pytest

from stash_api import advanced

TODAY = date(2025, 1, 15)


def test_budget_optimization_tiers(conn, make_user, add_tx):
    make_user("u1")
    add_tx("u1", date(2024, 10, 1), 99999, "Travel")
    add_tx("u1", date(2024, 11, 10), 54000, "Shopping")
    add_tx("u1", date(2025, 1, 5), 54000, "Shopping")
    add_tx("u1", date(2024, 12, 1), 60000, "Groceries")
    add_tx("u1", date(2025, 1, 10), 3000, "Dining")
    out = advanced.budget_optimization(conn, "u1", TODAY)
    assert [o["category"] for o in out] == ["Shopping", "Groceries", "Dining"]
    shopping, groceries, dining = out
    assert (shopping["current_budget"], shopping["recommended_budget"], shopping["potential_savings"]) == (
        36000, 28800, 7200)
    assert shopping["reasoning"].startswith("High spending in Shopping (36.0% of salary).")
    assert (groceries["recommended_budget"], groceries["confidence"]) == (18000, 0.8)
    assert (dining["recommended_budget"], dining["potential_savings"], dining["confidence"]) == (1100, 0, 0.6)
    assert advanced.total_potential_savings(out) == 9200


def test_financial_goals(conn, make_user, add_tx):
    make_user("u1")
    add_tx("u1", date(2025, 1, 10), 5000, "Savings", merchant="Savings Account Transfer")
    add_tx("u1", date(2025, 1, 11), 1000, "Groceries")
    goals = {g["type"]: g for g in advanced.financial_goals(conn, "u1", TODAY)}
    assert list(goals) == ["emergency_fund", "savings", "investment"]

    emergency = goals["emergency_fund"]
    assert emergency["target_amount"] == 600000
    assert emergency["current_amount"] == 5000
    assert emergency["next_action"] == "Set up automatic monthly transfer of ₹50,000"

    # average transaction 3000 over a 30-day month leaves 10000 of a 100000 salary
    savings = goals["savings"]
    assert (savings["target_amount"], savings["current_amount"]) == (20000, 10000)
    assert savings["next_action"].endswith("reduce by ₹10,000")
    assert goals["investment"]["priority"] == "medium"
    assert advanced.high_priority_count(list(goals.values())) == 2


def test_goal_ids_are_stable_for_the_day(conn, make_user):
    make_user("u1")
    first = [g["id"] for g in advanced.financial_goals(conn, "u1", TODAY)]
    assert first == [g["id"] for g in advanced.financial_goals(conn, "u1", TODAY)]
    assert len(set(first)) == 3


def test_personalized_insights(conn, make_user, add_tx):
    make_user("u1")
    assert advanced.personalized_insights(conn, "u1", TODAY) == []
    for day in range(1, 6):
        add_tx("u1", date(2025, 1, day), 1500, "Shopping")
    add_tx("u1", date(2025, 1, 6), 300, "Groceries")
    found = {i["category"]: i for i in advanced.personalized_insights(conn, "u1", TODAY)}

    pattern = found["spending_pattern"]
    assert pattern["content"].startswith("You make frequent purchases in Shopping (5 transactions).")
    assert pattern["related_transactions"] == ["tx_0005", "tx_0004", "tx_0003", "tx_0002", "tx_0001"]

    values = found["savings_opportunity"]
    assert values["content"].startswith("Your average transaction is ₹1,300.")
    assert values["related_transactions"] == ["tx_0005", "tx_0004", "tx_0003"]
    assert advanced.average_confidence(list(found.values())) == pytest.approx(0.825)


def test_financial_education_relevance(conn, make_user, add_tx):
    make_user("u1")
    assert [t["topic"] for t in advanced.financial_education(conn, "u1", TODAY)] == ["investment"]
    for i, category in enumerate(["Shopping", "Groceries", "Dining", "Travel"]):
        add_tx("u1", date(2025, 1, i + 1), 15000, category)
    topics = advanced.financial_education(conn, "u1", TODAY)
    assert [t["topic"] for t in topics] == ["budgeting", "savings", "investment"]
    assert advanced.average_relevance(topics) == pytest.approx(90)


def test_comprehensive_report_summary(conn, make_user, add_tx):
    make_user("u1")
    add_tx("u1", date(2025, 1, 5), 2000, "Shopping")
    report = advanced.comprehensive_report(conn, "u1", TODAY)
    summary = report["summary"]
    assert summary["high_priority_goals"] == 2
    assert summary["total_insights"] == len(report["insights"]) == 1
    assert summary["total_education_topics"] == 1
    assert summary["average_relevance"] == 85


def test_unknown_user_raises(conn):
    with pytest.raises(KeyError):
        advanced.budget_optimization(conn, "ghost", TODAY)
    with pytest.raises(KeyError):
        advanced.comprehensive_report(conn, "ghost", TODAY)
