from __future__ import annotations

import hashlib
import hmac
import os
import sqlite3
from typing import Dict, Optional, Tuple
from fastapi import Request

from .budget_data import is_valid_personality

TEST_USERS = ("test1", "test2", "test3")
TEST_PASSWORD = "test@123"
THEMES = ("light", "dark")


def current_username(request: Request) -> Optional[str]:
    """Return the stateless user id from headers, or None.

    Looks for `X-User-Id` or `X-User`.
    """
    header_user = request.headers.get("x-user-id") or request.headers.get("x-user")
    if header_user:
        return header_user.strip()
    return None


def hash_password(password: str, salt: bytes) -> str:
    """PBKDF2-SHA256 password hashing (120k iterations)."""
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, 120_000).hex()


def new_password_hash(password: str) -> Tuple[str, str]:
    salt = os.urandom(16)
    return hash_password(password, salt), salt.hex()


def verify_credentials(conn: sqlite3.Connection, username: str, password: str) -> bool:
    """Test users log in with the shared demo password; others need a stored hash."""
    if username in TEST_USERS and password == TEST_PASSWORD:
        return True
    row = conn.execute(
        "SELECT password_hash, password_salt FROM users WHERE id = ?", (username,)
    ).fetchone()
    if not row or not row["password_salt"] or not row["password_hash"]:
        return False
    candidate = hash_password(password, bytes.fromhex(row["password_salt"]))
    return hmac.compare_digest(candidate, row["password_hash"])


def validate_registration(body: Dict) -> Dict:
    """Normalise a registration payload or raise ValueError with a detail code."""
    username = (body.get("username") or "").strip()
    name = (body.get("name") or "").strip()
    if not username or not name or body.get("age") in (None, "") or not body.get("theme") \
            or not body.get("spending_personality"):
        raise ValueError("all_fields_required")
    try:
        age = int(body["age"])
    except (TypeError, ValueError):
        raise ValueError("invalid_age")
    if not 18 <= age <= 100:
        raise ValueError("invalid_age")
    if body["theme"] not in THEMES:
        raise ValueError("invalid_theme")
    if not is_valid_personality(body["spending_personality"]):
        raise ValueError("invalid_spending_personality")
    return {"id": username, "name": name, "age": age, "theme": body["theme"],
            "spending_personality": body["spending_personality"],
            "user_type": body.get("user_type") or "test"}
