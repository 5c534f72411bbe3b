from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from . import forecast
from .repositories import transactions_repo, users_repo
from .utils.dates import WEEKDAY_NAMES, months_back, tx_date

logger = logging.getLogger(__name__)


def spending_trends(conn: sqlite3.Connection, user_id: str, months: int = 3,
                    today: Optional[date] = None) -> List[Dict]:
    today = today or date.today()
    rows = transactions_repo.list_between(
        conn, user_id, months_back(today, months).isoformat(), today.isoformat())
    by_month: Dict[str, List[Dict]] = {}
    for t in rows:
        by_month.setdefault(tx_date(t).strftime("%Y-%m"), []).append(t)
    trends = []
    prev_total = None
    for period in sorted(by_month):
        txs = by_month[period]
        total = sum(float(t["amount"]) for t in txs)
        breakdown: Dict[str, float] = {}
        for t in txs:
            breakdown[t["category"]] = breakdown.get(t["category"], 0.0) + float(t["amount"])
        trend = "stable"
        if prev_total is not None:
            if total > prev_total * 1.1:
                trend = "increasing"
            elif total < prev_total * 0.9:
                trend = "decreasing"
        trends.append({
            "period": period,
            "total_spent": total,
            "category_breakdown": breakdown,
            "average_transaction": total / len(txs),
            "trend": trend,
        })
        prev_total = total
    return trends


def financial_health_score(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> Dict:
    today = today or date.today()
    user = users_repo.get_user(conn, user_id)
    if not user:
        logger.warning("Health score requested for unknown user %s", user_id)
        return {
            "overall": 50, "spending": 50, "savings": 50, "budgeting": 50,
            "recommendations": ["Unable to calculate score at this time"],
        }
    rows = transactions_repo.list_between(
        conn, user_id, months_back(today, 1).isoformat(), today.isoformat())
    total = sum(float(t["amount"]) for t in rows)
    income = users_repo.salary_amount(conn, user_id)

    spending = max(0.0, 100 - total / 50000 * 100)
    savings = min(100.0, (income - total) / (income * 0.2) * 100)
    budgeting = min(100.0, len({t["category"] for t in rows}) * 10)

    recommendations = []
    if spending < 50:
        recommendations.append("Consider reducing overall spending")
    if savings < 50:
        recommendations.append("Focus on increasing savings")
    if budgeting < 50:
        recommendations.append("Create a detailed budget plan")
    return {
        "overall": round((spending + savings + budgeting) / 3),
        "spending": round(spending),
        "savings": round(savings),
        "budgeting": round(budgeting),
        "recommendations": recommendations,
    }


def mood_correlation(conn: sqlite3.Connection, user_id: str) -> List[Dict]:
    by_day: Dict[str, List[float]] = {}
    for t in transactions_repo.list_recent(conn, user_id, 100):
        by_day.setdefault(WEEKDAY_NAMES[tx_date(t).weekday()], []).append(float(t["amount"]))
    out = []
    for day, amounts in by_day.items():
        avg = sum(amounts) / len(amounts)
        mood = "neutral"
        if avg > 2000:
            mood = "high_spending"
        elif avg < 500:
            mood = "low_spending"
        out.append({
            "day_of_week": day,
            "average_spend": avg,
            "mood_indicator": mood,
            "correlation": min(1.0, avg / 3000),
        })
    return out


def _recommendation(predicted: float) -> str:
    if predicted > 2000:
        return "High spending predicted - consider alternatives"
    if predicted < 500:
        return "Low spending predicted - good for savings"
    return "Consider this spending pattern"


def predictive_patterns(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    today = today or date.today()
    by_cat: Dict[str, List[Dict]] = {}
    for t in transactions_repo.list_recent(conn, user_id, 50):
        by_cat.setdefault(t["category"], []).append(t)
    out = []
    for category, txs in by_cat.items():
        if len(txs) < 3:
            continue
        txs = sorted(txs, key=tx_date)
        amounts = [float(t["amount"]) for t in txs]
        avg = sum(amounts) / len(amounts)
        variance = sum((a - avg) ** 2 for a in amounts) / len(amounts)
        confidence = max(0.3, 1 - variance / (avg * avg)) if avg else 0.3
        predicted, method = forecast.extrapolate(amounts)
        dates = [tx_date(t) for t in txs]
        gaps = [(b - a).days for a, b in zip(dates, dates[1:])]
        gap = max(1, round(sum(gaps) / len(gaps)))
        next_occurrence = max(dates[-1] + timedelta(days=gap), today + timedelta(days=1))
        out.append({
            "category": category,
            "predicted_spend": round(predicted),
            "confidence": round(confidence * 100),
            "next_occurrence": next_occurrence.isoformat(),
            "recommendation": _recommendation(predicted),
            "model": method,
        })
    return out


def category_insights(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    from .nudges import analyze_spending_patterns

    return analyze_spending_patterns(conn, user_id, today)


def analytics_report(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> Dict:
    trends = spending_trends(conn, user_id, today=today)
    health = financial_health_score(conn, user_id, today)
    correlations = mood_correlation(conn, user_id)
    predictions = predictive_patterns(conn, user_id, today)
    return {
        "user_id": user_id,
        "report_id": f"report_{uuid.uuid4()}",
        "generated_at": datetime.now().isoformat(timespec="seconds"),
        "trends": trends,
        "health_score": health,
        "correlations": correlations,
        "predictions": predictions,
        "summary": {
            "total_trends": len(trends),
            "health_score": health["overall"],
            "correlation_insights": len(correlations),
            "predictions": len(predictions),
        },
    }
