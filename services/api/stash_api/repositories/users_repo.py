from __future__ import annotations

from typing import Optional, Dict, Any, List
import sqlite3
import uuid

from ..config import DEFAULT_SALARY
from ..utils.dates import now_iso


def get_user(conn: sqlite3.Connection, user_id: str) -> Optional[Dict[str, Any]]:
    r = conn.execute(
        """
        SELECT id, name, age, theme, spending_personality, user_type, created_at
        FROM users WHERE id = ?
        """,
        (user_id,),
    ).fetchone()
    return dict(r) if r else None


def create_user(conn: sqlite3.Connection, user: Dict[str, Any]) -> Dict[str, Any]:
    conn.execute(
        """
        INSERT INTO users (id, name, age, theme, spending_personality, user_type, password_hash, password_salt,
                           created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user["id"], user.get("name"), user.get("age"), user.get("theme") or "light",
            user.get("spending_personality") or "Medium Spender", user.get("user_type") or "test",
            user.get("password_hash"), user.get("password_salt"), now_iso(),
        ),
    )
    return get_user(conn, user["id"])


def update_field(conn: sqlite3.Connection, user_id: str, field: str, value: Any) -> Optional[Dict[str, Any]]:
    if field not in ("theme", "spending_personality", "name", "age"):
        raise ValueError(f"unsupported_field:{field}")
    cur = conn.execute(f"UPDATE users SET {field} = ? WHERE id = ?", (value, user_id))
    if cur.rowcount == 0:
        return None
    return get_user(conn, user_id)


def list_users(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    rows = conn.execute(
        "SELECT id, name, spending_personality, user_type FROM users ORDER BY id"
    ).fetchall()
    return [dict(r) for r in rows]


def latest_salary(conn: sqlite3.Connection, user_id: str) -> Optional[Dict[str, Any]]:
    r = conn.execute(
        """
        SELECT id, user_id, salary, created_at FROM salaries
        WHERE user_id = ?
        ORDER BY created_at DESC, rowid DESC
        LIMIT 1
        """,
        (user_id,),
    ).fetchone()
    return dict(r) if r else None


def salary_amount(conn: sqlite3.Connection, user_id: str) -> float:
    rec = latest_salary(conn, user_id)
    return float(rec["salary"]) if rec else DEFAULT_SALARY


def add_salary(conn: sqlite3.Connection, user_id: str, salary: float) -> Dict[str, Any]:
    sid = uuid.uuid4().hex
    conn.execute(
        "INSERT INTO salaries (id, user_id, salary, created_at) VALUES (?, ?, ?, ?)",
        (sid, user_id, float(salary), now_iso()),
    )
    return latest_salary(conn, user_id)


def clear_salaries(conn: sqlite3.Connection, user_id: str) -> int:
    cur = conn.execute("DELETE FROM salaries WHERE user_id = ?", (user_id,))
    return cur.rowcount


def user_profile(conn: sqlite3.Connection, user_id: str) -> Optional[Dict[str, Any]]:
    """The profile the insight engine needs: identity, personality and salary."""
    user = get_user(conn, user_id)
    if not user:
        return None
    return {
        "user_id": user_id,
        "name": user.get("name"),
        "age": user.get("age"),
        "user_type": user.get("user_type") or "test",
        "spending_personality": user.get("spending_personality") or "Medium Spender",
        "salary": salary_amount(conn, user_id),
    }
