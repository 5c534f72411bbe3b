from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from . import insights as insights_mod
from . import llm, nudges
from .repositories import transactions_repo, users_repo

logger = logging.getLogger(__name__)

CONTEXT_KINDS = ("user_initiated", "get_tips_clicked", "insight_followup", "notification_action", "transaction_analysis")

DEFAULT_AVAILABLE_DATA = ["transaction_history", "spending_patterns", "user_profile", "financial_goals"]

# insight type -> (suggested question, transaction context)
INSIGHT_QUESTIONS = {
    "burn_risk": ("How can I reduce my {category} to avoid overspending?", "burn_risk_analysis"),
    "savings_opportunity": ("What are some effective ways to save money based on my current spending pattern?",
                            "savings_optimization"),
    "pattern": ("How can I break my recurring spending habits?", "habit_breaking"),
    "goal": ("How can I accelerate my progress towards my financial goals?", "goal_acceleration"),
}
DEFAULT_INSIGHT_QUESTION = ("How can I improve my financial health?", "general_advice")

# nudge type -> (suggested question, transaction context)
NOTIFICATION_QUESTIONS = {
    "burn_risk_alert": ("How can I avoid this type of spending in the future?", "burn_prevention"),
    "savings_opportunity": ("What are the best ways to save money right now?", "savings_strategy"),
    "habit_pattern": ("How can I change this spending habit?", "habit_modification"),
    "goal_progress": ("How can I stay on track with my financial goals?", "goal_maintenance"),
}
DEFAULT_NOTIFICATION_QUESTION = ("How can I improve my financial situation?", "general_improvement")


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def is_fallback_session(session_id: Optional[str]) -> bool:
    return bool(session_id) and session_id.startswith("fallback_")


# --- chatbot contexts -------------------------------------------------------

def _row_to_context(r: sqlite3.Row) -> Dict:
    d = dict(r)
    d["is_active"] = bool(d.get("is_active"))
    d["available_data"] = json.loads(d.pop("available_data_json") or "[]")
    return d


def create_context(conn: sqlite3.Connection, user_id: str, context: str, user_type: Optional[str],
                   spending_personality: Optional[str], transaction_context: Optional[str] = None,
                   recent_behavior: Optional[str] = None, suggested_question: Optional[str] = None,
                   available_data: Optional[List[str]] = None, source_insight_id: Optional[str] = None,
                   source_notification_id: Optional[str] = None) -> Dict:
    if context not in CONTEXT_KINDS:
        raise ValueError("invalid_context")
    session_id = f"session_{uuid.uuid4()}"
    now = _now()
    conn.execute(
        """
        INSERT INTO chatbot_contexts (session_id, user_id, context, transaction_context, user_type,
                                      spending_personality, recent_behavior, suggested_question,
                                      available_data_json, source_insight_id, source_notification_id,
                                      is_active, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
        """,
        (session_id, user_id, context, transaction_context, user_type or "test",
         spending_personality or "Medium Spender", recent_behavior, suggested_question,
         json.dumps(available_data or DEFAULT_AVAILABLE_DATA), source_insight_id, source_notification_id,
         now, now),
    )
    logger.info("Opened chatbot session %s (%s) for %s", session_id, context, user_id)
    return get_context(conn, user_id, session_id)


def get_context(conn: sqlite3.Connection, user_id: str, session_id: str) -> Optional[Dict]:
    r = conn.execute(
        "SELECT * FROM chatbot_contexts WHERE user_id = ? AND session_id = ?", (user_id, session_id)
    ).fetchone()
    return _row_to_context(r) if r else None


def get_active_context(conn: sqlite3.Connection, user_id: str, session_id: Optional[str] = None) -> Optional[Dict]:
    if session_id:
        r = conn.execute(
            "SELECT * FROM chatbot_contexts WHERE user_id = ? AND session_id = ? AND is_active = 1",
            (user_id, session_id),
        ).fetchone()
    else:
        r = conn.execute(
            """
            SELECT * FROM chatbot_contexts WHERE user_id = ? AND is_active = 1
            ORDER BY created_at DESC, rowid DESC LIMIT 1
            """,
            (user_id,),
        ).fetchone()
    return _row_to_context(r) if r else None


def create_context_from_insight(conn: sqlite3.Connection, user_id: str, insight_id: str,
                                user_type: Optional[str], spending_personality: Optional[str]) -> Optional[Dict]:
    insight = insights_mod.get_insight(conn, user_id, insight_id)
    if insight is None:
        return None
    question, tx_context = INSIGHT_QUESTIONS.get(insight["type"], DEFAULT_INSIGHT_QUESTION)
    category = (insight.get("data") or {}).get("category") or "spending"
    return create_context(
        conn, user_id, "get_tips_clicked", user_type, spending_personality,
        transaction_context=tx_context, recent_behavior=insight["content"],
        suggested_question=question.format(category=category), source_insight_id=insight_id,
    )


def create_context_from_notification(conn: sqlite3.Connection, user_id: str, notification_id: str,
                                     user_type: Optional[str], spending_personality: Optional[str]) -> Optional[Dict]:
    nudge = nudges.get_nudge(conn, notification_id)
    if nudge is None or nudge["user_id"] != user_id:
        return None
    question, tx_context = NOTIFICATION_QUESTIONS.get(nudge["type"], DEFAULT_NOTIFICATION_QUESTION)
    return create_context(
        conn, user_id, "notification_action", user_type, spending_personality,
        transaction_context=tx_context, recent_behavior=nudge["message"],
        suggested_question=question, source_notification_id=notification_id,
    )


def create_context_for_transaction(conn: sqlite3.Connection, user_id: str, transaction: Dict,
                                   user_type: Optional[str], spending_personality: Optional[str]) -> Dict:
    category = transaction.get("category") or "general"
    return create_context(
        conn, user_id, "transaction_analysis", user_type, spending_personality,
        transaction_context=f"{category}_analysis",
        recent_behavior=f"Recent {category} transaction of ₹{float(transaction.get('amount') or 0):,.0f}",
        suggested_question=f"Can you analyze this {category} transaction and provide advice?",
        available_data=DEFAULT_AVAILABLE_DATA + ["category_analysis"],
    )


def add_message(conn: sqlite3.Connection, user_id: str, session_id: str, message: str,
                is_user: bool, context: Optional[str] = None) -> bool:
    """Append to an active session. Returns False when the session is missing or closed."""
    if get_active_context(conn, user_id, session_id) is None:
        return False
    now = _now()
    conn.execute(
        "INSERT INTO chatbot_messages (session_id, message, is_user, context, timestamp) VALUES (?, ?, ?, ?, ?)",
        (session_id, message, int(is_user), context, now),
    )
    conn.execute("UPDATE chatbot_contexts SET updated_at = ? WHERE session_id = ?", (now, session_id))
    return True


def conversation_history(conn: sqlite3.Connection, user_id: str, session_id: str) -> List[Dict]:
    if get_active_context(conn, user_id, session_id) is None:
        return []
    rows = conn.execute(
        "SELECT message, is_user, context, timestamp FROM chatbot_messages WHERE session_id = ? ORDER BY id ASC",
        (session_id,),
    ).fetchall()
    return [dict(r, is_user=bool(r["is_user"])) for r in rows]


def deactivate_context(conn: sqlite3.Connection, user_id: str, session_id: str) -> bool:
    cur = conn.execute(
        "UPDATE chatbot_contexts SET is_active = 0, updated_at = ? WHERE user_id = ? AND session_id = ?",
        (_now(), user_id, session_id),
    )
    return cur.rowcount > 0


def list_contexts(conn: sqlite3.Connection, user_id: str, limit: int = 10) -> List[Dict]:
    rows = conn.execute(
        "SELECT * FROM chatbot_contexts WHERE user_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
        (user_id, limit),
    ).fetchall()
    return [_row_to_context(r) for r in rows]


def contextual_prompt(conn: sqlite3.Connection, user_id: str, session_id: Optional[str], message: str) -> str:
    if is_fallback_session(session_id):
        user = users_repo.get_user(conn, user_id) or {}
        return (
            f"You are Stash AI, a financial advisor for {user.get('user_type') or 'test'} with "
            f"{user.get('spending_personality') or 'Medium Spender'} personality.\n\n"
            "Context: general_financial_advice\n"
            'Recent Behavior: User clicked "Get Tips" on a financial insight\n'
            f"Available Data: {', '.join(DEFAULT_AVAILABLE_DATA)}\n\n"
            "Provide personalized, actionable financial advice based on the user's spending personality. "
            "Be specific, encouraging, and practical. Focus on the user's question and provide concrete "
            "steps they can take.\n\n"
            f"User: {message}\n\nAssistant:"
        )
    ctx = get_active_context(conn, user_id, session_id) if session_id else None
    if ctx is None:
        return message
    history = "\n".join(
        f"{'User' if m['is_user'] else 'Assistant'}: {m['message']}"
        for m in conversation_history(conn, user_id, session_id)[-5:]
    )
    return (
        f"You are Stash AI, a financial advisor for {ctx['user_type']} with "
        f"{ctx['spending_personality']} personality.\n\n"
        f"Context: {ctx.get('transaction_context') or 'general_financial_advice'}\n"
        f"Recent Behavior: {ctx.get('recent_behavior') or 'No recent behavior data'}\n"
        f"Available Data: {', '.join(ctx['available_data']) or 'transaction_history'}\n\n"
        "Provide personalized, actionable financial advice based on the user's spending personality and "
        "recent behavior. Be specific, encouraging, and practical.\n\n"
        f"Previous conversation:\n{history}\n\n"
        f"User: {message}\n\nAssistant:"
    )


def chat(conn: sqlite3.Connection, user_id: str, session_id: Optional[str], message: str) -> Dict:
    """One context-aware exchange. Stored sessions record both sides."""
    if not message or not message.strip():
        raise ValueError("message_required")
    stored = session_id is not None and not is_fallback_session(session_id)
    if stored:
        add_message(conn, user_id, session_id, message, True)
    prompt = contextual_prompt(conn, user_id, session_id, message)
    reply = llm.generate_response_from_prompt(prompt)
    if stored:
        add_message(conn, user_id, session_id, reply, False, "ai_response")
    return {"message": reply, "session_id": session_id}


# --- plain chat -------------------------------------------------------------

def _row_to_message(r: sqlite3.Row) -> Dict:
    return dict(r, is_user=bool(r["is_user"]))


def _store_chat_message(conn: sqlite3.Connection, user_id: str, message: str, is_user: bool) -> Dict:
    row = {"id": uuid.uuid4().hex, "user_id": user_id, "message": message,
           "is_user": is_user, "timestamp": datetime.now().isoformat(timespec="microseconds")}
    conn.execute(
        "INSERT INTO chat_messages (id, user_id, message, is_user, timestamp) VALUES (?, ?, ?, ?, ?)",
        (row["id"], user_id, message, int(is_user), row["timestamp"]),
    )
    return row


def chat_history(conn: sqlite3.Connection, user_id: str, limit: int = 50) -> List[Dict]:
    """Most recent `limit` messages in chronological order."""
    rows = conn.execute(
        "SELECT * FROM chat_messages WHERE user_id = ? ORDER BY timestamp DESC, rowid DESC LIMIT ?",
        (user_id, limit),
    ).fetchall()
    return [_row_to_message(r) for r in reversed(rows)]


def user_chat_context(conn: sqlite3.Connection, user_id: str) -> Dict:
    user = users_repo.get_user(conn, user_id) or {}
    recent = transactions_repo.list_recent(conn, user_id, 10)
    return {
        "name": user.get("name") or "User",
        "age": user.get("age") or 25,
        "spending_personality": user.get("spending_personality") or "Medium Spender",
        "recent_transactions": [
            {k: t[k] for k in ("amount", "category", "merchant", "date")} for t in recent
        ],
        "financial_goals": [],
        "monthly_income": users_repo.salary_amount(conn, user_id) if user else None,
        "chat_history": chat_history(conn, user_id, 10),
    }


def send_chat_message(conn: sqlite3.Connection, user_id: str, message: str) -> Dict:
    if not message or not message.strip():
        raise ValueError("message_required")
    user_message = _store_chat_message(conn, user_id, message, True)
    reply = llm.generate_chat_response(message, user_chat_context(conn, user_id))
    ai_message = _store_chat_message(conn, user_id, reply, False)
    return {"user_message": user_message, "ai_message": ai_message}


def clear_chat_history(conn: sqlite3.Connection, user_id: str) -> int:
    cur = conn.execute("DELETE FROM chat_messages WHERE user_id = ?", (user_id,))
    return cur.rowcount
