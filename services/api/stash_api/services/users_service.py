from __future__ import annotations

from typing import Dict
import logging
import sqlite3

from ..config import MIN_SALARY
from ..repositories import users_repo
from ..utils import auth
from ..utils.budget_data import is_valid_personality

logger = logging.getLogger(__name__)


def _public(user: Dict) -> Dict:
    return {
        "id": user["id"],
        "username": user["id"],
        "name": user.get("name"),
        "age": user.get("age"),
        "theme": user.get("theme"),
        "spending_personality": user.get("spending_personality"),
        "user_type": user.get("user_type"),
    }


def login(conn: sqlite3.Connection, username: str, password: str) -> Dict:
    username = (username or "").strip()
    if not auth.verify_credentials(conn, username, password or ""):
        raise PermissionError("invalid_credentials")
    user = users_repo.get_user(conn, username)
    if user is None:
        # valid test credentials but onboarding not done yet
        raise KeyError("user_not_found")
    logger.info("User %s logged in", username)
    return _public(user)


def register(conn: sqlite3.Connection, body: Dict) -> Dict:
    record = auth.validate_registration(body)
    if users_repo.get_user(conn, record["id"]) is not None:
        raise FileExistsError("user_exists")
    if body.get("password"):
        record["password_hash"], record["password_salt"] = auth.new_password_hash(body["password"])
    user = users_repo.create_user(conn, record)
    logger.info("Registered user %s (%s)", user["id"], user["spending_personality"])
    return _public(user)


def profile(conn: sqlite3.Connection, username: str) -> Dict:
    user = users_repo.get_user(conn, username)
    if user is None:
        raise KeyError("user_not_found")
    return _public(user)


def set_theme(conn: sqlite3.Connection, username: str, theme: str) -> Dict:
    if theme not in auth.THEMES:
        raise ValueError("invalid_theme")
    user = users_repo.update_field(conn, username, "theme", theme)
    if user is None:
        raise KeyError("user_not_found")
    return _public(user)


def set_personality(conn: sqlite3.Connection, username: str, personality: str) -> Dict:
    if not is_valid_personality(personality):
        raise ValueError("invalid_spending_personality")
    user = users_repo.update_field(conn, username, "spending_personality", personality)
    if user is None:
        raise KeyError("user_not_found")
    return _public(user)


def get_salary(conn: sqlite3.Connection, user_id: str) -> Dict:
    rec = users_repo.latest_salary(conn, user_id)
    if rec is None:
        return {"salary": MIN_SALARY, "created_at": None}
    return {"salary": float(rec["salary"]), "created_at": rec["created_at"]}


def set_salary(conn: sqlite3.Connection, user_id: str, salary) -> Dict:
    # bool is an int subclass; reject it along with strings
    if isinstance(salary, bool) or not isinstance(salary, (int, float)):
        raise ValueError("salary_must_be_numeric")
    if salary < MIN_SALARY:
        raise ValueError("salary_below_minimum")
    rec = users_repo.add_salary(conn, user_id, salary)
    return {"salary": float(rec["salary"]), "created_at": rec["created_at"]}


def clear_salary(conn: sqlite3.Connection, user_id: str) -> int:
    return users_repo.clear_salaries(conn, user_id)
