from __future__ import annotations

from typing import Dict
import sqlite3

from ..repositories import budgets_repo, users_repo


def _user_or_raise(conn: sqlite3.Connection, user_id: str) -> Dict:
    user = users_repo.get_user(conn, user_id)
    if not user:
        raise KeyError("user_not_found")
    return user


def budget_caps(conn: sqlite3.Connection, user_id: str) -> Dict:
    """Persona defaults overlaid with the user's own caps."""
    user = _user_or_raise(conn, user_id)
    personality = user.get("spending_personality")
    return {
        "budget_caps": budgets_repo.merged_budget_caps(conn, user_id, personality) or {},
        "spending_personality": personality,
    }


def set_cap(conn: sqlite3.Connection, user_id: str, category: str, budget_cap: float) -> Dict:
    if budget_cap is None or budget_cap <= 0:
        raise ValueError("budget_cap_must_be_positive")
    category = (category or "").strip()
    if not category:
        raise ValueError("missing_category")
    user = _user_or_raise(conn, user_id)
    budgets_repo.upsert_cap(conn, user_id, category, float(budget_cap), user.get("spending_personality"))
    return {"user_id": user_id, "category": category, "budget_cap": float(budget_cap),
            "spending_personality": user.get("spending_personality")}


def reset_caps(conn: sqlite3.Connection, user_id: str) -> int:
    return budgets_repo.reset(conn, user_id)
