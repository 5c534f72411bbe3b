from datetime import date

import pytest

from stash_api import personas


def test_persona_type_for_personality():
    assert personas.persona_type_for("Heavy Spender") == "heavy"
    assert personas.persona_type_for("Max Saver") == "max"
    assert personas.persona_type_for("Impulse Buyer") == "medium"
    assert personas.persona_type_for(None) == "medium"


def test_latest_transactions_uses_seed_rows_up_to_newest_seed_day():
    rows = personas.latest_transactions("heavy", 100, date(2025, 1, 22))
    assert len(rows) == 25
    assert rows[0]["date"] == "2025-01-22"
    assert not any(r.get("synthetic") for r in rows)
    assert [r["date"] for r in rows] == sorted((r["date"] for r in rows), reverse=True)


def test_latest_transactions_fills_days_after_seed_data():
    today = date(2025, 1, 25)
    rows = personas.latest_transactions("max", 100, today)
    assert rows[0]["date"] == "2025-01-25"
    synthetic_days = {r["date"] for r in rows if r.get("synthetic")}
    assert synthetic_days == {"2025-01-23", "2025-01-24", "2025-01-25"}
    # synthetic rows are stable between calls
    assert personas.latest_transactions("max", 100, today) == rows


def test_latest_transactions_without_seed_rows_this_month():
    rows = personas.latest_transactions("medium", 1000, date(2025, 3, 10))
    days = {r["date"] for r in rows}
    assert min(days) == "2025-03-01"
    assert max(days) == "2025-03-10"
    assert len(days) == 10


def test_latest_transactions_respects_limit_and_unknown_persona():
    assert len(personas.latest_transactions("heavy", 5, date(2025, 1, 22))) == 5
    assert personas.latest_transactions("spendthrift", 5, date(2025, 1, 22)) == []


def test_transactions_until_returns_oldest_first():
    rows = personas.transactions_until("heavy", "2025-01-17")
    assert len(rows) == 10
    assert rows[0]["date"] == "2025-01-16"
    assert rows[-1]["date"] == "2025-01-17"


def test_transactions_until_rejects_unknown_type():
    with pytest.raises(ValueError, match="invalid_user_type"):
        personas.transactions_until("spendthrift", "2025-01-17")


def test_to_transaction_shape():
    row = personas.load_persona_data()["max"][0]
    tx = personas.to_transaction(row, "u1")
    assert tx["user_id"] == "u1"
    assert tx["payment_mode"] == row["payment_method"]
    assert tx["is_simulated"] is True
    assert isinstance(tx["amount"], float)


def test_describe_types_and_daily_totals():
    assert [t["id"] for t in personas.describe_types()] == ["heavy", "medium", "max"]
    totals = personas.daily_totals("heavy", date(2025, 1, 22), 7)
    assert list(totals) == [f"2025-01-{d}" for d in range(16, 23)]
    assert all(v > 0 for v in totals.values())
