from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, List, Optional
import logging
import sqlite3
import uuid

from .. import notifications, personas
from ..config import is_realtime_enabled
from ..repositories import transactions_repo, users_repo
from ..utils.dates import parse_date, tx_date, window_start
from . import insights_service

logger = logging.getLogger(__name__)

STATS_PERIODS = ("week", "month", "year")


def _user_or_raise(conn: sqlite3.Connection, user_id: str) -> Dict:
    user = users_repo.get_user(conn, user_id)
    if not user:
        raise KeyError("user_not_found")
    return user


def resolve_persona(value: Optional[str]) -> str:
    """Accept either a persona type (`heavy`) or a personality (`Heavy Spender`)."""
    if value in personas.PERSONA_FILES:
        return value
    return personas.persona_type_for(value)


def validate_new_transaction(body: Dict) -> Dict:
    for key in ("date", "merchant", "category", "payment_mode"):
        if not str(body.get(key) or "").strip():
            raise ValueError("all_fields_required")
    try:
        amount = float(body.get("amount"))
    except (TypeError, ValueError):
        raise ValueError("invalid_amount")
    if amount <= 0:
        raise ValueError("invalid_amount")
    if body["payment_mode"] not in transactions_repo.PAYMENT_MODES:
        raise ValueError("invalid_payment_mode")
    try:
        day = parse_date(body["date"])
    except ValueError:
        raise ValueError("invalid_date")
    return {
        "date": day.isoformat(),
        "merchant": body["merchant"].strip(),
        "amount": amount,
        "category": body["category"].strip(),
        "payment_mode": body["payment_mode"],
    }


def add(conn: sqlite3.Connection, user_id: str, body: Dict, today: Optional[date] = None) -> Dict:
    """Store a manual transaction, raise spending alerts and refresh insights."""
    fields = validate_new_transaction(body)
    row = dict(fields, id=uuid.uuid4().hex, user_id=user_id, is_simulated=False)
    transactions_repo.insert_transaction(conn, row)
    transaction = transactions_repo.get(conn, user_id, row["id"])
    user = users_repo.get_user(conn, user_id)
    alerts: List[Dict] = []
    if is_realtime_enabled():
        alerts = notifications.monitor_transaction(
            conn, user_id, transaction, user.get("spending_personality") if user else None, today)
    insights: List[Dict] = []
    if user:
        try:
            insights = insights_service.generate(conn, user_id, transaction, today)
        except Exception:
            # the transaction is stored either way
            logger.exception("Insight generation failed after new transaction for %s", user_id)
    return {"transaction": transaction, "alerts": alerts, "insights": insights}


def recent(conn: sqlite3.Connection, user_id: str, limit: int = 10, today: Optional[date] = None) -> List[Dict]:
    user = _user_or_raise(conn, user_id)
    persona_rows = [
        dict(personas.to_transaction(r, user_id), is_manual=False)
        for r in personas.latest_transactions(personas.persona_type_for(user.get("spending_personality")),
                                              limit, today)
    ]
    manual = [dict(t, is_manual=True) for t in transactions_repo.list_manual(conn, user_id, limit)]
    return sorted(persona_rows + manual, key=tx_date, reverse=True)[:limit]


def budget_transactions(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> Dict:
    user = _user_or_raise(conn, user_id)
    persona_rows = personas.latest_transactions(
        personas.persona_type_for(user.get("spending_personality")), 100, today)
    manual = transactions_repo.list_manual(conn, user_id)
    combined = [personas.to_transaction(r, user_id) for r in persona_rows] + manual
    return {
        "transactions": sorted(combined, key=tx_date, reverse=True),
        "manual_count": len(manual),
        "persona_count": len(persona_rows),
        "total_count": len(combined),
    }


def simulate(conn: sqlite3.Connection, user_id: str, spending_personality: Optional[str] = None,
             today: Optional[date] = None) -> Dict:
    """Copy the persona's current-month feed into the user's stored transactions."""
    if spending_personality is None:
        spending_personality = _user_or_raise(conn, user_id).get("spending_personality")
    persona_type = resolve_persona(spending_personality)
    inserted = []
    for r in personas.latest_transactions(persona_type, 1000, today):
        row = personas.to_transaction(r, user_id)
        row["id"] = f"{user_id}_{row['id']}"
        if transactions_repo.insert_transaction(conn, row):
            inserted.append(row)
    logger.info("Simulated %d %s transactions for %s", len(inserted), persona_type, user_id)
    return {"transactions": inserted, "count": len(inserted), "persona_type": persona_type}


def delete(conn: sqlite3.Connection, user_id: str, transaction_id: str) -> None:
    if transactions_repo.delete(conn, user_id, transaction_id) == 0:
        raise KeyError("transaction_not_found")


def stats(conn: sqlite3.Connection, user_id: str, period: str = "month", today: Optional[date] = None) -> Dict:
    if period not in STATS_PERIODS:
        raise ValueError("invalid_period")
    today = today or date.today()
    if period == "week":
        start = window_start(today, 7)
    elif period == "month":
        start = today.replace(day=1)
    else:
        start = today.replace(month=1, day=1)
    rows = transactions_repo.list_between(conn, user_id, start.isoformat(), today.isoformat())
    total = sum(float(t["amount"]) for t in rows)
    by_cat: Dict[str, float] = {}
    for t in rows:
        by_cat[t["category"]] = by_cat.get(t["category"], 0.0) + float(t["amount"])
    top = sorted(by_cat.items(), key=lambda kv: kv[1], reverse=True)[:5]
    return {
        "period": period,
        "total_spent": total,
        "transaction_count": len(rows),
        "top_categories": [{"category": c, "amount": a} for c, a in top],
        "average_transaction": total / len(rows) if rows else 0.0,
    }


def weekly(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    """Per-day totals for the last 7 days, persona feed plus manual transactions."""
    user = _user_or_raise(conn, user_id)
    today = today or date.today()
    start = today - timedelta(days=6)
    days = {(start + timedelta(days=i)).isoformat(): {"amount": 0.0, "count": 0} for i in range(7)}
    persona_rows = personas.latest_transactions(
        personas.persona_type_for(user.get("spending_personality")), 1000, today)
    manual = transactions_repo.list_between(conn, user_id, start.isoformat(), today.isoformat())
    for t in persona_rows + [m for m in manual if not m["is_simulated"]]:
        key = tx_date(t).isoformat()
        if key in days:
            days[key]["amount"] += float(t["amount"])
            days[key]["count"] += 1
    return [{"date": d, "amount": v["amount"], "count": v["count"]} for d, v in sorted(days.items())]


def latest_for_persona(persona: str, limit: int = 10, today: Optional[date] = None) -> Dict:
    persona_type = resolve_persona(persona)
    rows = [personas.to_transaction(r, "persona") for r in personas.latest_transactions(persona_type, limit, today)]
    return {
        "transactions": rows,
        "persona_type": persona_type,
        "total_transactions": len(rows),
        "total_amount": sum(r["amount"] for r in rows),
    }
