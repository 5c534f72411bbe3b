from __future__ import annotations

from typing import Optional, Dict, Any, List
import sqlite3

from ..utils.dates import now_iso

_COLUMNS = "id, user_id, date, merchant, amount, category, payment_mode, is_simulated, created_at"

PAYMENT_MODES = ("UPI", "Card", "NetBanking", "Cash")


def _row(r: sqlite3.Row) -> Dict[str, Any]:
    d = dict(r)
    d["is_simulated"] = bool(d.get("is_simulated"))
    return d


def insert_transaction(conn: sqlite3.Connection, row: Dict[str, Any]) -> bool:
    """Insert a transaction row. Returns True if inserted, False if ignored (duplicate by PK)."""
    pre = conn.total_changes
    conn.execute(
        """
        INSERT OR IGNORE INTO transactions (
            id, user_id, date, merchant, amount, category, payment_mode, is_simulated, created_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            row["id"], row["user_id"], row["date"], row["merchant"], float(row["amount"]),
            row["category"], row.get("payment_mode") or "UPI", int(bool(row.get("is_simulated", False))),
            now_iso(),
        ),
    )
    return conn.total_changes > pre


def get(conn: sqlite3.Connection, user_id: str, transaction_id: str) -> Optional[Dict[str, Any]]:
    r = conn.execute(
        f"SELECT {_COLUMNS} FROM transactions WHERE user_id = ? AND id = ?",
        (user_id, transaction_id),
    ).fetchone()
    return _row(r) if r else None


def list_page(conn: sqlite3.Connection, user_id: str, page: int, limit: int) -> Dict[str, Any]:
    total = conn.execute(
        "SELECT COUNT(*) FROM transactions WHERE user_id = ?", (user_id,)
    ).fetchone()[0]
    rows = conn.execute(
        f"""
        SELECT {_COLUMNS} FROM transactions
        WHERE user_id = ?
        ORDER BY date DESC, created_at DESC
        LIMIT ? OFFSET ?
        """,
        (user_id, limit, (page - 1) * limit),
    ).fetchall()
    pages = (total + limit - 1) // limit if limit else 0
    return {
        "transactions": [_row(r) for r in rows],
        "pagination": {"page": page, "limit": limit, "total": total, "pages": pages},
    }


def list_recent(conn: sqlite3.Connection, user_id: str, limit: int) -> List[Dict[str, Any]]:
    rows = conn.execute(
        f"""
        SELECT {_COLUMNS} FROM transactions
        WHERE user_id = ?
        ORDER BY date DESC, created_at DESC
        LIMIT ?
        """,
        (user_id, limit),
    ).fetchall()
    return [_row(r) for r in rows]


def list_manual(conn: sqlite3.Connection, user_id: str, limit: int = 500) -> List[Dict[str, Any]]:
    rows = conn.execute(
        f"""
        SELECT {_COLUMNS} FROM transactions
        WHERE user_id = ? AND is_simulated = 0
        ORDER BY date DESC, created_at DESC
        LIMIT ?
        """,
        (user_id, limit),
    ).fetchall()
    return [_row(r) for r in rows]


def list_between(conn: sqlite3.Connection, user_id: str, start: str, end: str) -> List[Dict[str, Any]]:
    """Transactions with start <= date <= end (ISO dates, inclusive), newest first."""
    rows = conn.execute(
        f"""
        SELECT {_COLUMNS} FROM transactions
        WHERE user_id = ? AND substr(date, 1, 10) BETWEEN ? AND ?
        ORDER BY date DESC, created_at DESC
        """,
        (user_id, start, end),
    ).fetchall()
    return [_row(r) for r in rows]


def last_transaction_date(conn: sqlite3.Connection, user_id: str) -> Optional[str]:
    r = conn.execute(
        "SELECT MAX(substr(date, 1, 10)) AS d FROM transactions WHERE user_id = ?",
        (user_id,),
    ).fetchone()
    return r["d"] if r and r["d"] else None


def delete(conn: sqlite3.Connection, user_id: str, transaction_id: str) -> int:
    cur = conn.execute(
        "DELETE FROM transactions WHERE user_id = ? AND id = ?",
        (user_id, transaction_id),
    )
    return cur.rowcount


def delete_manual(conn: sqlite3.Connection, user_id: str) -> int:
    cur = conn.execute(
        "DELETE FROM transactions WHERE user_id = ? AND is_simulated = 0",
        (user_id,),
    )
    return cur.rowcount


def delete_all(conn: sqlite3.Connection, user_id: str) -> int:
    cur = conn.execute("DELETE FROM transactions WHERE user_id = ?", (user_id,))
    return cur.rowcount
