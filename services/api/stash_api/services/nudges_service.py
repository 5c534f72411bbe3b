from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional
import logging
import sqlite3

from .. import nudges
from ..config import is_realtime_enabled
from ..notifications import hub, make_notification
from ..repositories import users_repo

logger = logging.getLogger(__name__)


def generate_and_save(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    """Run the nudge triggers, store each result and push it to a live socket."""
    if users_repo.get_user(conn, user_id) is None:
        raise KeyError("user_not_found")
    saved = []
    for trigger in nudges.generate_nudges(conn, user_id, today):
        nudge = nudges.save_nudge(conn, user_id, trigger)
        saved.append(nudge)
        if is_realtime_enabled():
            hub.send_notification(user_id, make_notification(
                "nudge", "Smart Nudge", nudge["message"], nudge["severity"],
                {"nudge_id": nudge["id"], "action_required": nudge["action_required"]}))
    logger.info("Generated %d nudges for %s", len(saved), user_id)
    return saved


def mark_read(conn: sqlite3.Connection, nudge_id: str) -> Dict:
    nudge = nudges.mark_read(conn, nudge_id)
    if nudge is None:
        raise KeyError("nudge_not_found")
    return nudge


def respond(conn: sqlite3.Connection, nudge_id: str, response: str) -> Dict:
    nudge = nudges.respond(conn, nudge_id, response)
    if nudge is None:
        raise KeyError("nudge_not_found")
    return nudge


def delete(conn: sqlite3.Connection, nudge_id: str) -> None:
    if not nudges.delete_nudge(conn, nudge_id):
        raise KeyError("nudge_not_found")
