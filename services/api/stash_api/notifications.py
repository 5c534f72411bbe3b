from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
import uuid
from collections import deque
from datetime import date, datetime
from typing import Deque, Dict, List, Optional

from fastapi import WebSocket

from .repositories import transactions_repo, users_repo
from .utils.dates import window_start

logger = logging.getLogger(__name__)

DAILY_LIMITS = {
    "Heavy Spender": 2000,
    "Medium Spender": 1500,
    "Max Saver": 800,
}

MAX_PENDING = 20


def daily_limit(personality: Optional[str]) -> float:
    return float(DAILY_LIMITS.get(personality or "", DAILY_LIMITS["Medium Spender"]))


def make_notification(kind: str, title: str, message: str, severity: str = "low",
                      data: Optional[Dict] = None) -> Dict:
    return {
        "id": uuid.uuid4().hex,
        "type": kind,
        "title": title,
        "message": message,
        "severity": severity,
        "data": data or {},
        "timestamp": datetime.now().isoformat(timespec="seconds"),
    }


class NotificationHub:
    def __init__(self, max_pending: int = MAX_PENDING):
        self.max_pending = max_pending
        self._sockets: Dict[str, WebSocket] = {}
        self._pending: Dict[str, Deque[Dict]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()

    async def authenticate(self, user_id: str, websocket: WebSocket) -> None:
        with self._lock:
            self._sockets[user_id] = websocket
            queued = list(self._pending.pop(user_id, []))
        logger.info("User %s authenticated for notifications (%d queued)", user_id, len(queued))
        for payload in queued:
            await websocket.send_json(payload)
        await websocket.send_json(self._frame("notification", make_notification(
            "nudge", "Welcome to Stash AI!", "Your real-time financial notifications are now active.")))

    def disconnect(self, websocket: WebSocket) -> Optional[str]:
        with self._lock:
            for user_id, ws in list(self._sockets.items()):
                if ws is websocket:
                    del self._sockets[user_id]
                    logger.info("User %s disconnected from notifications", user_id)
                    return user_id
        return None

    def acknowledge(self, user_id: Optional[str], notification_id: str) -> None:
        logger.info("Notification %s acknowledged by %s", notification_id, user_id)

    @staticmethod
    def _frame(event: str, notification: Dict) -> Dict:
        return dict(notification, event=event)

    def _schedule(self, websocket: WebSocket, payload: Dict) -> None:
        future = asyncio.run_coroutine_threadsafe(websocket.send_json(payload), self._loop)

        def _done(f):
            if not f.cancelled() and f.exception() is not None:
                logger.warning("Failed to deliver notification: %s", f.exception())
                self.disconnect(websocket)

        future.add_done_callback(_done)

    def send_notification(self, user_id: str, notification: Dict) -> bool:
        """Deliver to a connected user, or queue it. Returns True when sent live."""
        payload = self._frame("notification", notification)
        with self._lock:
            websocket = self._sockets.get(user_id)
            if websocket is None or self._loop is None or self._loop.is_closed():
                queue = self._pending.setdefault(user_id, deque(maxlen=self.max_pending))
                queue.append(payload)
                logger.info("User %s not connected; queued notification %r", user_id, notification.get("title"))
                return False
        self._schedule(websocket, payload)
        return True

    def broadcast(self, notification: Dict) -> int:
        payload = self._frame("broadcast", notification)
        with self._lock:
            sockets = list(self._sockets.values())
        if self._loop is None:
            return 0
        for websocket in sockets:
            self._schedule(websocket, payload)
        return len(sockets)

    def pending(self, user_id: str) -> List[Dict]:
        with self._lock:
            return list(self._pending.get(user_id, []))

    def connected_users(self) -> List[str]:
        with self._lock:
            return list(self._sockets.keys())

    def connected_count(self) -> int:
        with self._lock:
            return len(self._sockets)

    def is_connected(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._sockets

    def reset(self) -> None:
        with self._lock:
            self._sockets.clear()
            self._pending.clear()


hub = NotificationHub()


def monitor_transaction(conn: sqlite3.Connection, user_id: str, transaction: Dict,
                        personality: Optional[str] = None, today: Optional[date] = None) -> List[Dict]:
    """Spending alerts for a freshly added transaction. Returns what was sent."""
    today = today or date.today()
    if personality is None:
        user = users_repo.get_user(conn, user_id)
        personality = user.get("spending_personality") if user else None
    limit = daily_limit(personality)
    todays = transactions_repo.list_between(conn, user_id, today.isoformat(), today.isoformat())
    daily_total = sum(float(t["amount"]) for t in todays)
    amount = float(transaction["amount"])
    sent: List[Dict] = []

    if daily_total > limit * 1.5:
        sent.append(make_notification(
            "alert", "🚨 High Daily Spending Alert",
            f"You've spent ₹{daily_total:,.0f} today, which is significantly above your daily limit of ₹{limit:,.0f}.",
            "high", {"daily_total": daily_total, "limit": limit, "transaction": transaction}))
    elif daily_total > limit:
        sent.append(make_notification(
            "alert", "⚠️ Daily Limit Warning",
            f"You've spent ₹{daily_total:,.0f} today, which is above your daily limit of ₹{limit:,.0f}.",
            "medium", {"daily_total": daily_total, "limit": limit, "transaction": transaction}))

    if amount > limit * 0.5:
        sent.append(make_notification(
            "transaction", "💰 Large Transaction Detected",
            f"You just spent ₹{amount:,.0f} at {transaction['merchant']}. "
            "This is a significant amount for your spending profile.",
            "medium", {"transaction": transaction, "daily_total": daily_total}))

    category_total = sum(float(t["amount"]) for t in todays if t["category"] == transaction["category"])
    if category_total > limit * 0.4:
        sent.append(make_notification(
            "nudge", "📊 Category Spending Alert",
            f"You've spent ₹{category_total:,.0f} on {transaction['category']} today. Consider diversifying your spending.",
            "medium", {"category": transaction["category"], "category_total": category_total,
                       "daily_total": daily_total}))

    for n in sent:
        hub.send_notification(user_id, n)
    return sent


def send_periodic_insights(conn: sqlite3.Connection, today: Optional[date] = None) -> int:
    from .nudges import analyze_spending_patterns

    count = 0
    for user_id in hub.connected_users():
        patterns = analyze_spending_patterns(conn, user_id, today)
        if patterns and patterns[0]["percentage_of_total"] > 35:
            top = patterns[0]
            hub.send_notification(user_id, make_notification(
                "nudge", "📈 Weekly Spending Insight",
                f"Your top spending category is {top['category']} ({top['percentage_of_total']:.1f}% of total). "
                "Consider setting a budget for this category.",
                "low", {"patterns": patterns[:3]}))
            count += 1
    return count


def send_goal_reminders(conn: sqlite3.Connection, today: Optional[date] = None) -> int:
    today = today or date.today()
    start = window_start(today, 7).isoformat()
    count = 0
    for user_id in hub.connected_users():
        if transactions_repo.list_between(conn, user_id, start, today.isoformat()):
            continue
        hub.send_notification(user_id, make_notification(
            "goal", "🎯 Financial Goal Reminder",
            "Haven't seen you in a while! Remember to track your spending to stay on top of your financial goals.",
            "low"))
        count += 1
    return count
