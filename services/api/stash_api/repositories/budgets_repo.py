from __future__ import annotations

from typing import Dict, Optional
import sqlite3

from ..utils.budget_data import merge_caps
from ..utils.dates import now_iso


def custom_caps(conn: sqlite3.Connection, user_id: str) -> Dict[str, float]:
    rows = conn.execute(
        "SELECT category, budget_cap FROM budgets WHERE user_id = ? ORDER BY category",
        (user_id,),
    ).fetchall()
    return {r["category"]: float(r["budget_cap"]) for r in rows}


def merged_budget_caps(conn: sqlite3.Connection, user_id: str, personality: Optional[str]) -> Optional[Dict[str, float]]:
    return merge_caps(personality, custom_caps(conn, user_id))


def upsert_cap(conn: sqlite3.Connection, user_id: str, category: str, cap: float, personality: Optional[str]) -> None:
    stamp = now_iso()
    conn.execute(
        """
        INSERT INTO budgets (user_id, category, budget_cap, spending_personality, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, category) DO UPDATE SET
            budget_cap = excluded.budget_cap,
            spending_personality = excluded.spending_personality,
            updated_at = excluded.updated_at
        """,
        (user_id, category, float(cap), personality, stamp, stamp),
    )


def reset(conn: sqlite3.Connection, user_id: str) -> int:
    cur = conn.execute("DELETE FROM budgets WHERE user_id = ?", (user_id,))
    return cur.rowcount
