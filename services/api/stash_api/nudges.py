from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional

from . import behavior
from .notifications import daily_limit, hub, make_notification
from .repositories import transactions_repo, users_repo
from .utils.dates import now_iso, window_start

logger = logging.getLogger(__name__)

NUDGE_RESPONSES = ("accepted", "ignored", "snoozed")

CATEGORY_SHARE_THRESHOLDS = {
    "Heavy Spender": {"Food & Dining": 0.4, "Shopping": 0.3, "Entertainment": 0.25},
    "Medium Spender": {"Food & Dining": 0.35, "Shopping": 0.25, "Entertainment": 0.2},
    "Max Saver": {"Food & Dining": 0.3, "Shopping": 0.2, "Entertainment": 0.15},
}

ESTIMATED_INCOME = {
    "Heavy Spender": 80000,
    "Medium Spender": 60000,
    "Max Saver": 50000,
}

PATTERN_TIPS = {
    "Heavy Spender": {
        "Food & Dining": "Consider meal prepping to reduce dining out costs.",
        "Shopping": "Try implementing a 24-hour rule before making non-essential purchases.",
        "Entertainment": "Look for free or low-cost entertainment alternatives.",
    },
    "Medium Spender": {
        "Food & Dining": "Great balance! Consider setting a weekly dining budget.",
        "Shopping": "Good spending control. Keep tracking your purchases.",
        "Entertainment": "Well-managed entertainment spending. Keep it up!",
    },
    "Max Saver": {
        "Food & Dining": "Excellent food spending! Consider treating yourself occasionally.",
        "Shopping": "Impressive shopping discipline!",
        "Entertainment": "Great entertainment budget management!",
    },
}

# insight type -> (nudge type, title, severity, suggested question)
AGENTIC_NOTIFICATIONS = {
    "burn_risk": ("burn_risk_alert", "Burn Risk Detected", "high",
                  "How can I avoid this type of spending?"),
    "savings_opportunity": ("savings_opportunity", "Savings Opportunity", "low",
                            "What are the best ways to save money right now?"),
    "pattern": ("habit_pattern", "Spending Pattern Detected", "medium",
                "How can I change this spending habit?"),
    "goal": ("goal_progress", "Goal Progress Update", "low",
             "How can I accelerate my progress?"),
}
DEFAULT_AGENTIC = ("suggestion", "Financial Insight", "medium", "How can I improve my financial health?")


def _personality(conn: sqlite3.Connection, user_id: str) -> str:
    user = users_repo.get_user(conn, user_id)
    return (user or {}).get("spending_personality") or "Medium Spender"


def analyze_spending_patterns(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None,
                              days: int = 30) -> List[Dict]:
    today = today or date.today()
    rows = transactions_repo.list_between(
        conn, user_id, window_start(today, days).isoformat(), today.isoformat())
    total = sum(float(t["amount"]) for t in rows)
    by_cat: Dict[str, Dict[str, float]] = {}
    for t in rows:
        agg = by_cat.setdefault(t["category"], {"total": 0.0, "count": 0})
        agg["total"] += float(t["amount"])
        agg["count"] += 1
    patterns = [
        {
            "category": cat,
            "total_amount": agg["total"],
            "transaction_count": int(agg["count"]),
            "average_amount": agg["total"] / agg["count"],
            "percentage_of_total": agg["total"] / total * 100 if total else 0.0,
        }
        for cat, agg in by_cat.items()
    ]
    return sorted(patterns, key=lambda p: p["total_amount"], reverse=True)


def _trigger(kind: str, severity: str, message: str, action_required: bool, data: Dict) -> Dict:
    return {"type": kind, "severity": severity, "message": message,
            "action_required": action_required, "data": data}


def check_daily_spending(conn: sqlite3.Connection, user_id: str, personality: str, today: date) -> Optional[Dict]:
    todays = transactions_repo.list_between(conn, user_id, today.isoformat(), today.isoformat())
    total = sum(float(t["amount"]) for t in todays)
    limit = daily_limit(personality)
    data = {"daily_total": total, "limit": limit}
    if total > limit * 1.5:
        return _trigger(
            "overspending", "high",
            f"🚨 You've spent ₹{total:,.0f} today, which is significantly above your daily limit of "
            f"₹{limit:,.0f}. Consider reducing non-essential spending.", True, data)
    if total > limit:
        return _trigger(
            "overspending", "medium",
            f"⚠️ You've spent ₹{total:,.0f} today, which is above your daily limit of ₹{limit:,.0f}. "
            "Try to stay within budget for the rest of the day.", True, data)
    return None


def check_category_overspending(patterns: List[Dict], personality: str) -> List[Dict]:
    thresholds = CATEGORY_SHARE_THRESHOLDS.get(personality, CATEGORY_SHARE_THRESHOLDS["Medium Spender"])
    out = []
    for p in patterns:
        threshold = thresholds.get(p["category"])
        if not threshold or p["percentage_of_total"] <= threshold * 100:
            continue
        severity = "high" if p["percentage_of_total"] > threshold * 120 else "medium"
        out.append(_trigger(
            "spending_pattern", severity,
            f"📊 You're spending {p['percentage_of_total']:.1f}% of your money on {p['category']}. "
            f"This is above the recommended {threshold * 100:.0f}% for your spending personality.",
            False, {"category": p["category"], "percentage": p["percentage_of_total"], "threshold": threshold * 100}))
    return out


def savings_rate(patterns: List[Dict], personality: str) -> float:
    income = ESTIMATED_INCOME.get(personality, ESTIMATED_INCOME["Medium Spender"])
    spent = sum(p["total_amount"] for p in patterns)
    return (income - spent) / income


def check_savings_goal(patterns: List[Dict], personality: str) -> Optional[Dict]:
    rate = savings_rate(patterns, personality)
    if rate >= 0.2:
        return None
    return _trigger(
        "savings_goal", "medium",
        f"💰 Your current savings rate is {rate * 100:.1f}%. Consider increasing your savings to at least "
        "20% of your income for better financial security.",
        True, {"current_rate": rate, "target_rate": 0.2})


def pattern_tip(patterns: List[Dict], personality: str) -> Optional[Dict]:
    if len(patterns) < 2:
        return None
    top = patterns[0]
    tips = PATTERN_TIPS.get(personality, PATTERN_TIPS["Medium Spender"])
    tip = tips.get(top["category"])
    if not tip:
        return None
    return _trigger(
        "spending_pattern", "low",
        f"💡 {tip} Your top spending category is {top['category']} "
        f"({top['percentage_of_total']:.1f}% of total spending).",
        False, {"category": top["category"], "percentage": top["percentage_of_total"]})


def generate_nudges(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    today = today or date.today()
    personality = _personality(conn, user_id)
    patterns = analyze_spending_patterns(conn, user_id, today)
    out: List[Dict] = []
    daily = check_daily_spending(conn, user_id, personality, today)
    if daily:
        out.append(daily)
    out += check_category_overspending(patterns, personality)
    savings = check_savings_goal(patterns, personality)
    if savings:
        out.append(savings)
    tip = pattern_tip(patterns, personality)
    if tip:
        out.append(tip)
    return out


def _row_to_nudge(r: sqlite3.Row) -> Dict:
    d = dict(r)
    d["is_read"] = bool(d.get("is_read"))
    d["action_required"] = bool(d.get("action_required"))
    d["related_transactions"] = json.loads(d.pop("related_transactions_json") or "[]")
    d["data"] = json.loads(d.pop("data_json") or "{}")
    return d


def save_nudge(conn: sqlite3.Connection, user_id: str, nudge: Dict, now: Optional[datetime] = None) -> Dict:
    nid = nudge.get("id") or uuid.uuid4().hex
    conn.execute(
        """
        INSERT INTO nudges (id, user_id, message, type, severity, is_read, action_required,
                            related_transaction_id, related_transactions_json, source_insight_id,
                            chatbot_context, suggested_question, data_json, created_at)
        VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            nid, user_id, nudge["message"], nudge["type"], nudge.get("severity") or "medium",
            int(bool(nudge.get("action_required"))), nudge.get("related_transaction_id"),
            json.dumps(nudge.get("related_transactions") or []), nudge.get("source_insight_id"),
            nudge.get("chatbot_context"), nudge.get("suggested_question"), json.dumps(nudge.get("data") or {}),
            now_iso(now),
        ),
    )
    return get_nudge(conn, nid)


def get_nudge(conn: sqlite3.Connection, nudge_id: str) -> Optional[Dict]:
    r = conn.execute("SELECT * FROM nudges WHERE id = ?", (nudge_id,)).fetchone()
    return _row_to_nudge(r) if r else None


def list_nudges(conn: sqlite3.Connection, user_id: str, unread_only: bool = False, limit: int = 20) -> Dict:
    q = "SELECT * FROM nudges WHERE user_id = ?"
    if unread_only:
        q += " AND is_read = 0"
    q += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
    rows = conn.execute(q, (user_id, limit)).fetchall()
    unread = conn.execute(
        "SELECT COUNT(*) FROM nudges WHERE user_id = ? AND is_read = 0", (user_id,)
    ).fetchone()[0]
    return {"nudges": [_row_to_nudge(r) for r in rows], "unread_count": unread}


def mark_read(conn: sqlite3.Connection, nudge_id: str) -> Optional[Dict]:
    cur = conn.execute("UPDATE nudges SET is_read = 1 WHERE id = ?", (nudge_id,))
    if cur.rowcount == 0:
        return None
    return get_nudge(conn, nudge_id)


def mark_all_read(conn: sqlite3.Connection, user_id: str) -> int:
    cur = conn.execute("UPDATE nudges SET is_read = 1 WHERE user_id = ? AND is_read = 0", (user_id,))
    return cur.rowcount


def respond(conn: sqlite3.Connection, nudge_id: str, response: str,
            now: Optional[datetime] = None) -> Optional[Dict]:
    if response not in NUDGE_RESPONSES:
        raise ValueError("invalid_response")
    nudge = get_nudge(conn, nudge_id)
    if nudge is None:
        return None
    conn.execute("UPDATE nudges SET user_response = ?, is_read = 1 WHERE id = ?", (response, nudge_id))
    behavior.record_response(
        conn, nudge["user_id"], nudge.get("source_insight_id") or nudge_id, response,
        nudge.get("chatbot_context") or nudge["type"], nudge.get("severity"),
        shown_at=nudge.get("created_at"), responded_at=now,
    )
    return get_nudge(conn, nudge_id)


def delete_nudge(conn: sqlite3.Connection, nudge_id: str) -> bool:
    cur = conn.execute("DELETE FROM nudges WHERE id = ?", (nudge_id,))
    return cur.rowcount > 0


def agentic_notification(conn: sqlite3.Connection, user_id: str, insight: Dict,
                         transaction: Optional[Dict] = None) -> Dict:
    """Persist a nudge for an insight and push it to the user's socket."""
    kind, title, severity, question = AGENTIC_NOTIFICATIONS.get(insight["type"], DEFAULT_AGENTIC)
    nudge = save_nudge(conn, user_id, {
        "message": insight["content"],
        "type": kind,
        "severity": severity,
        "action_required": True,
        "related_transaction_id": transaction["id"] if transaction else None,
        "related_transactions": [transaction["id"]] if transaction else [],
        "source_insight_id": insight["id"],
        "chatbot_context": insight["type"],
        "suggested_question": question,
    })
    hub.send_notification(user_id, make_notification(
        "nudge", title, insight["content"], severity,
        {"insight_id": insight["id"], "nudge_id": nudge["id"], "suggested_question": question,
         "has_action_button": True}))
    return nudge
