from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional
import logging
import sqlite3

from .. import behavior, nudges, personas
from ..config import is_realtime_enabled
from ..insights import (
    deactivate_insight,
    generate_insights_for_user,
    get_active_insights,
    insight_history,
    update_insight_response,
)
from ..repositories import transactions_repo, users_repo
from ..utils.dates import tx_date

logger = logging.getLogger(__name__)

ALERT_PRIORITIES = ("critical", "warning")


def _profile_or_raise(conn: sqlite3.Connection, user_id: str) -> Dict:
    profile = users_repo.user_profile(conn, user_id)
    if profile is None:
        raise KeyError("user_not_found")
    return profile


def gather_transactions(conn: sqlite3.Connection, user_id: str, personality: str,
                        today: Optional[date] = None, persona_limit: int = 100) -> List[Dict]:
    """Persona feed plus the user's manual transactions, newest first."""
    persona_rows = [
        personas.to_transaction(r, user_id)
        for r in personas.latest_transactions(personas.persona_type_for(personality), persona_limit, today)
    ]
    manual = transactions_repo.list_manual(conn, user_id)
    return sorted(persona_rows + manual, key=tx_date, reverse=True)


def generate(conn: sqlite3.Connection, user_id: str, transaction: Optional[Dict] = None,
             today: Optional[date] = None, now: Optional[datetime] = None) -> List[Dict]:
    profile = _profile_or_raise(conn, user_id)
    txs = gather_transactions(conn, user_id, profile["spending_personality"], today)
    if transaction and not any(t["id"] == transaction.get("id") for t in txs):
        txs.insert(0, dict(transaction, id=transaction.get("id") or "new_transaction", user_id=user_id))
    items = generate_insights_for_user(conn, user_id, txs, profile, persist=True, today=today, now=now)
    if is_realtime_enabled():
        for item in items:
            if item["priority"] in ALERT_PRIORITIES:
                nudges.agentic_notification(conn, user_id, item, transaction)
    return items


def list_active(conn: sqlite3.Connection, user_id: str, limit: int = 3) -> List[Dict]:
    return get_active_insights(conn, user_id, limit)


def history(conn: sqlite3.Connection, user_id: str, limit: int = 50) -> List[Dict]:
    return insight_history(conn, user_id, limit)


def respond(conn: sqlite3.Connection, user_id: str, insight_id: str, response: str) -> Dict:
    updated = update_insight_response(conn, user_id, insight_id, response)
    if updated is None:
        raise KeyError("insight_not_found")
    return updated


def deactivate(conn: sqlite3.Connection, user_id: str, insight_id: str) -> None:
    if not deactivate_insight(conn, user_id, insight_id):
        raise KeyError("insight_not_found")


def behavior_summary(conn: sqlite3.Connection, user_id: str, now: Optional[datetime] = None) -> Dict:
    now = now or datetime.now()
    profile = behavior.get_profile(conn, user_id)
    return {
        "profile": profile.to_dict() if profile else None,
        "thresholds": behavior.adaptive_thresholds(profile).to_dict(),
        "optimal_timing": behavior.optimal_timing(profile, now),
        "insights": behavior.behavioral_insights(profile),
    }
