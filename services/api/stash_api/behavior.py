from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List, Optional

from .utils.dates import parse_datetime

logger = logging.getLogger(__name__)

RESPONSES = ("accepted", "ignored", "snoozed", "dismissed")

SENSITIVITY_MULTIPLIER = {"low": 1.5, "medium": 1.0, "high": 0.7}


@dataclass
class BehaviorProfile:
    user_id: str
    response_patterns: Dict[str, Dict[str, int]] = field(default_factory=dict)
    active_hours: Dict[int, int] = field(default_factory=dict)
    preferred_insight_types: List[str] = field(default_factory=list)
    sensitivity_level: str = "medium"
    last_active_time: Optional[datetime] = None
    average_response_time: float = 0.0

    @property
    def total_responses(self) -> int:
        return sum(p["total"] for p in self.response_patterns.values())

    def to_dict(self) -> Dict:
        d = asdict(self)
        d["active_hours"] = {str(h): n for h, n in self.active_hours.items()}
        d["last_active_time"] = self.last_active_time.isoformat() if self.last_active_time else None
        return d


@dataclass
class AdaptiveThresholds:
    budget_overrun_threshold: float = 100.0
    burn_risk_threshold: int = 5
    savings_goal_threshold: float = 50.0
    response_time_threshold: float = 60.0

    def to_dict(self) -> Dict:
        return asdict(self)


def record_response(conn: sqlite3.Connection, user_id: str, insight_id: Optional[str], response: str,
                    insight_type: str, insight_priority: Optional[str] = None,
                    shown_at: Optional[str] = None, responded_at: Optional[datetime] = None) -> None:
    if response not in RESPONSES:
        raise ValueError(f"invalid_response:{response}")
    responded_at = responded_at or datetime.now()
    conn.execute(
        """
        INSERT INTO insight_responses (user_id, insight_id, response, insight_type, insight_priority,
                                       shown_at, responded_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (user_id, insight_id, response, insight_type, insight_priority, shown_at,
         responded_at.isoformat(timespec="seconds")),
    )
    logger.info("Recorded %s response to %s insight for %s", response, insight_type, user_id)


def list_responses(conn: sqlite3.Connection, user_id: str) -> List[Dict]:
    rows = conn.execute(
        """
        SELECT insight_id, response, insight_type, insight_priority, shown_at, responded_at
        FROM insight_responses
        WHERE user_id = ?
        ORDER BY responded_at ASC, id ASC
        """,
        (user_id,),
    ).fetchall()
    return [dict(r) for r in rows]


def _sensitivity(patterns: Dict[str, Dict[str, int]]) -> str:
    total = sum(p["total"] for p in patterns.values())
    if total < 5:
        return "medium"
    ignored = sum(p["ignored"] for p in patterns.values()) / total
    accepted = sum(p["accepted"] for p in patterns.values()) / total
    if ignored > 0.7:
        return "low"
    if accepted > 0.6:
        return "high"
    return "medium"


def _preferred_types(patterns: Dict[str, Dict[str, int]]) -> List[str]:
    rates = {t: p["accepted"] / p["total"] for t, p in patterns.items() if p["total"] > 0}
    return [t for t, _ in sorted(rates.items(), key=lambda kv: kv[1], reverse=True)[:3]]


def _minutes_between(start: Optional[str], end: datetime) -> float:
    if not start:
        return 0.0
    try:
        delta = end - parse_datetime(start)
    except ValueError:
        logger.warning("Unparseable shown_at timestamp %r", start)
        return 0.0
    return max(0.0, delta.total_seconds() / 60)


def get_profile(conn: sqlite3.Connection, user_id: str) -> Optional[BehaviorProfile]:
    responses = list_responses(conn, user_id)
    if not responses:
        return None
    profile = BehaviorProfile(user_id=user_id)
    for r in responses:
        pattern = profile.response_patterns.setdefault(
            r["insight_type"], {"accepted": 0, "ignored": 0, "snoozed": 0, "dismissed": 0, "total": 0})
        pattern[r["response"]] += 1
        pattern["total"] += 1
        responded = parse_datetime(r["responded_at"])
        profile.active_hours[responded.hour] = profile.active_hours.get(responded.hour, 0) + 1
        profile.last_active_time = responded
        rt = _minutes_between(r.get("shown_at"), responded)
        profile.average_response_time = (profile.average_response_time + rt) / 2
    profile.sensitivity_level = _sensitivity(profile.response_patterns)
    profile.preferred_insight_types = _preferred_types(profile.response_patterns)
    return profile


def adaptive_thresholds(profile: Optional[BehaviorProfile]) -> AdaptiveThresholds:
    if profile is None:
        return AdaptiveThresholds()
    m = SENSITIVITY_MULTIPLIER[profile.sensitivity_level]
    return AdaptiveThresholds(
        budget_overrun_threshold=100 * m,
        burn_risk_threshold=max(3, round(5 * m)),
        savings_goal_threshold=50 * m,
        response_time_threshold=60 * m,
    )


def is_user_likely_active(profile: Optional[BehaviorProfile], now: datetime) -> bool:
    if profile is None:
        return True
    total = sum(profile.active_hours.values())
    if total == 0:
        return True
    return profile.active_hours.get(now.hour, 0) / total > 0.1


def optimal_timing(profile: Optional[BehaviorProfile], now: datetime) -> Dict:
    if profile is None:
        return {"should_send": True, "reason": "New user - default timing"}
    if profile.last_active_time is not None:
        since = (now - profile.last_active_time).total_seconds() / 60
        if since < profile.average_response_time:
            return {"should_send": False, "reason": "User recently active"}
    if not is_user_likely_active(profile, now):
        return {"should_send": False, "reason": "User typically inactive at this time"}
    return {"should_send": True, "reason": "Optimal timing detected"}


def behavioral_insights(profile: Optional[BehaviorProfile]) -> List[str]:
    if profile is None:
        return []
    out: List[str] = []
    for insight_type, p in profile.response_patterns.items():
        if p["total"] < 3:
            continue
        ignored = p["ignored"] / p["total"]
        accepted = p["accepted"] / p["total"]
        if ignored > 0.8:
            out.append(f"You often ignore {insight_type} alerts. I'll adjust the frequency and timing.")
        elif accepted > 0.7:
            out.append(f"You respond well to {insight_type} insights. I'll prioritize similar recommendations.")
    peak = sorted(profile.active_hours.items(), key=lambda kv: kv[1], reverse=True)[:3]
    if peak:
        hours = ", ".join(f"{h}:00" for h, _ in peak)
        out.append(f"I notice you're most active around {hours}. I'll time insights accordingly.")
    if profile.sensitivity_level == "low":
        out.append("I've reduced alert sensitivity since you prefer fewer notifications.")
    elif profile.sensitivity_level == "high":
        out.append("I've increased alert sensitivity since you respond well to proactive guidance.")
    return out
