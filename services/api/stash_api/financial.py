"""Month-to-date financial profile: salary, EMI, savings and budget usage.

Figures combine the user's stored transactions with their persona feed for
the current month, categories normalised for the user's personality.
"""
from __future__ import annotations

import sqlite3
from datetime import date, timedelta
from typing import Dict, List, Optional

from . import personas
from .repositories import budgets_repo, transactions_repo, users_repo
from .utils.budget_data import default_emi
from .utils.category_mapping import normalize_category

SAVINGS_KEYWORDS = ("savings", "fd", "sip", "investment", "mutual fund", "ppf")


def _user_or_raise(conn: sqlite3.Connection, user_id: str) -> Dict:
    user = users_repo.get_user(conn, user_id)
    if not user:
        raise KeyError("user_not_found")
    return user


def month_to_date_transactions(conn: sqlite3.Connection, user_id: str, personality: str,
                               today: Optional[date] = None) -> List[Dict]:
    today = today or date.today()
    start, end = today.replace(day=1).isoformat(), today.isoformat()
    stored = []
    for t in transactions_repo.list_between(conn, user_id, start, end):
        item = dict(t)
        item["category"] = normalize_category(t["category"], personality)
        stored.append(item)
    persona_rows = personas.transactions_by_date_range_and_category(
        personas.persona_type_for(personality), start, end, personality)
    return stored + [personas.to_transaction(r, user_id) for r in persona_rows]


def budget_overview(conn: sqlite3.Connection, user_id: str, personality: str,
                    today: Optional[date] = None) -> List[Dict]:
    caps = budgets_repo.merged_budget_caps(conn, user_id, personality)
    if not caps:
        return []
    spent: Dict[str, float] = {}
    for t in month_to_date_transactions(conn, user_id, personality, today):
        spent[t["category"]] = spent.get(t["category"], 0.0) + float(t["amount"])
    out = []
    for category, cap in caps.items():
        amount = spent.get(category, 0.0)
        out.append({
            "category": category,
            "amount": amount,
            "budget_cap": cap,
            "percentage": round(amount / cap * 100, 2) if cap else 0.0,
            "is_over_budget": amount > cap,
        })
    return out


def financial_metrics(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> Dict:
    user = _user_or_raise(conn, user_id)
    personality = user.get("spending_personality") or "Medium Spender"
    rows = month_to_date_transactions(conn, user_id, personality, today)
    savings = sum(float(t["amount"]) for t in rows if t["category"].lower() == "savings")
    total_spent = sum(float(t["amount"]) for t in rows if t["category"].lower() != "savings")
    salary = users_repo.salary_amount(conn, user_id)
    emi = default_emi(personality)
    return {
        "salary": salary,
        "emi": emi,
        "savings": savings,
        "net_spend": salary - emi - savings,
        "total_spent": total_spent,
        "budget_overview": budget_overview(conn, user_id, personality, today),
    }


def weekly_spending(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    """Daily persona spend for the 7 days ending yesterday, oldest first."""
    user = _user_or_raise(conn, user_id)
    today = today or date.today()
    totals = personas.daily_totals(
        personas.persona_type_for(user.get("spending_personality")), today - timedelta(days=1), 7)
    return [{"date": d, "amount": a} for d, a in sorted(totals.items())]


def detect_savings_transactions(conn: sqlite3.Connection, user_id: str) -> float:
    total = 0.0
    for t in transactions_repo.list_recent(conn, user_id, 10000):
        merchant = (t.get("merchant") or "").lower()
        category = (t.get("category") or "").lower()
        if any(k in merchant or k in category for k in SAVINGS_KEYWORDS):
            total += float(t["amount"])
    return total


def _card(kind: str, icon: str, message: str, button: Optional[str] = None) -> Dict:
    return {"type": kind, "icon": icon, "message": message,
            "has_button": button is not None, "button_text": button}


def financial_insights(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    """Dashboard cards: at most three short observations about the month so far."""
    user = _user_or_raise(conn, user_id)
    today = today or date.today()
    personality = user.get("spending_personality") or "Medium Spender"
    metrics = financial_metrics(conn, user_id, today)
    persona_type = personas.persona_type_for(personality)
    stats = personas.transaction_stats(persona_type, 30, today)
    latest = personas.latest_transactions(persona_type, 10, today)
    cards: List[Dict] = []

    savings = metrics["savings"]
    if personality == "Heavy Spender":
        if savings < 10000:
            cards.append(_card("warning", "⚠️",
                               f"Your savings (₹{savings:,.0f}) are quite low. Consider reducing non-essential spending.",
                               "Get Tips"))
    elif personality == "Medium Spender":
        if savings > 15000:
            cards.append(_card("success", "✅", f"Great job! You've saved ₹{savings:,.0f} this month."))
    elif savings > 30000:
        pct = round(savings / metrics["salary"] * 100) if metrics["salary"] else 0
        cards.append(_card("success", "🏦", f"Excellent! You're saving ₹{savings:,.0f} ({pct}% of income)."))

    if latest:
        if stats["average_amount"] > 2000:
            cards.append(_card("warning", "💸",
                               f"Your average transaction is ₹{round(stats['average_amount']):,}. "
                               "Consider smaller, planned purchases.", "Get Tips"))
        if stats["top_categories"]:
            top = stats["top_categories"][0]
            if top["amount"] > stats["total_amount"] * 0.3:
                cards.append(_card("info", "📊",
                                   f"{top['category']} is your highest spending category (₹{top['amount']:,.0f})."))
        if len(latest) >= 3:
            recent_total = sum(float(t["amount"]) for t in latest[:3])
            if recent_total > 10000:
                cards.append(_card("warning", "⚡",
                                   f"High recent spending detected (₹{recent_total:,.0f} in last 3 transactions).",
                                   "Get Tips"))

    over = [b for b in metrics["budget_overview"] if b["is_over_budget"]]
    if over:
        cards.append(_card("warning", "🚨",
                           f"You're over budget in {len(over)} category(ies). Review your spending.", "Get Tips"))
    return cards[:3]
