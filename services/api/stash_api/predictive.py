from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Dict, List, Optional

from .utils.dates import tx_date, within_days, days_remaining_in_month

# Monthly category caps used for the overrun forecast.
FORECAST_CAPS: Dict[str, Dict[str, float]] = {
    "Heavy Spender": {
        "Dining": 8000, "Shopping": 15000, "Entertainment": 12000,
        "Transport": 6000, "Healthcare": 4000, "Education": 8000,
    },
    "Medium Spender": {
        "Dining": 5000, "Shopping": 8000, "Entertainment": 6000,
        "Transport": 4000, "Healthcare": 3000, "Education": 5000,
    },
    "Max Saver": {
        "Dining": 3000, "Shopping": 4000, "Entertainment": 3000,
        "Transport": 2500, "Healthcare": 2000, "Education": 3000,
    },
}
DEFAULT_FORECAST_CAP = 5000.0

SAVINGS_TARGET_RATES = {
    "Heavy Spender": 0.05,
    "Medium Spender": 0.20,
    "Max Saver": 0.40,
}


@dataclass
class SpendingPattern:
    daily_average: float = 0.0
    weekly_average: float = 0.0
    monthly_average: float = 0.0
    weekend_spending: float = 0.0
    weekday_spending: float = 0.0
    category_trends: Dict[str, float] = field(default_factory=dict)


@dataclass
class Prediction:
    type: str
    message: str
    confidence: float
    predicted_amount: Optional[float] = None
    current_amount: Optional[float] = None
    target_amount: Optional[float] = None
    percentage: Optional[float] = None

    def to_dict(self) -> Dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def analyze_spending_patterns(transactions: List[Dict], today: date) -> SpendingPattern:
    recent = [t for t in transactions if within_days(t, today, 30)]
    if not recent:
        return SpendingPattern()
    total = sum(float(t["amount"]) for t in recent)
    daily = total / 30
    weekend = sum(float(t["amount"]) for t in recent if tx_date(t).weekday() >= 5)
    weekday = sum(float(t["amount"]) for t in recent if tx_date(t).weekday() < 5)
    categories: Dict[str, float] = {}
    for t in recent:
        key = (t.get("category") or "").lower()
        categories[key] = categories.get(key, 0.0) + float(t["amount"])
    return SpendingPattern(
        daily_average=daily,
        weekly_average=daily * 7,
        monthly_average=daily * 30,
        weekend_spending=weekend,
        weekday_spending=weekday,
        category_trends=categories,
    )


def predict_monthly_spending(transactions: List[Dict], today: date) -> float:
    """Monthly average nudged by 30% of the recent per-transaction trend."""
    patterns = analyze_spending_patterns(transactions, today)
    recent = sorted(transactions, key=tx_date)[-10:]
    if len(recent) < 5:
        return patterns.monthly_average
    half = len(recent) // 2
    first, second = recent[:half], recent[half:]
    first_avg = sum(float(t["amount"]) for t in first) / len(first)
    second_avg = sum(float(t["amount"]) for t in second) / len(second)
    return max(0.0, patterns.monthly_average + (second_avg - first_avg) * 0.3)


def forecast_cap(personality: Optional[str], category: str) -> float:
    caps = FORECAST_CAPS.get(personality or "", FORECAST_CAPS["Medium Spender"])
    for name, cap in caps.items():
        if name.lower() == category.lower():
            return float(cap)
    return DEFAULT_FORECAST_CAP


def forecast_budget_overrun(transactions: List[Dict], personality: Optional[str], category: str, today: date) -> Dict:
    patterns = analyze_spending_patterns(transactions, today)
    cap = forecast_cap(personality, category)
    month_start = today.replace(day=1)
    current = sum(
        float(t["amount"]) for t in transactions
        if (t.get("category") or "").lower() == category.lower() and month_start <= tx_date(t) <= today
    )
    daily_avg = patterns.category_trends.get(category.lower(), 0.0) / 30
    predicted = current + daily_avg * days_remaining_in_month(today)
    return {
        "will_overrun": predicted > cap,
        "overrun_amount": max(0.0, predicted - cap),
        "percentage": predicted / cap * 100,
        "predicted_total": predicted,
        "budget_cap": cap,
    }


def track_savings_goal(transactions: List[Dict], personality: Optional[str], salary: float,
                       savings_cap: Optional[float] = None) -> Dict:
    current = sum(float(t["amount"]) for t in transactions
                  if (t.get("category") or "").lower() == "savings")
    if savings_cap:
        target = float(savings_cap)
    else:
        target = salary * SAVINGS_TARGET_RATES.get(personality or "", 0.20)
    percentage = current / target * 100 if target else 0.0
    return {
        "current_savings": current,
        "target_savings": target,
        "percentage": percentage,
        "on_track": percentage >= 60,
    }


def generate_predictive_insights(transactions: List[Dict], personality: Optional[str], salary: float,
                                 savings_cap: Optional[float], today: date) -> List[Prediction]:
    out: List[Prediction] = []
    patterns = analyze_spending_patterns(transactions, today)
    predicted = predict_monthly_spending(transactions, today)
    current = patterns.monthly_average

    if predicted > current * 1.1:
        out.append(Prediction(
            type="spending_prediction",
            message=(f"You're likely to spend ₹{round(predicted - current)} more this month "
                     f"based on your current spending trend."),
            confidence=0.75,
            predicted_amount=predicted,
            current_amount=current,
        ))

    top = sorted(patterns.category_trends.items(), key=lambda kv: kv[1], reverse=True)[:3]
    for category, _amount in top:
        fc = forecast_budget_overrun(transactions, personality, category, today)
        if fc["will_overrun"]:
            out.append(Prediction(
                type="budget_forecast",
                message=(f"At this rate, you'll exceed your {category} budget by "
                         f"₹{round(fc['overrun_amount'])} ({fc['percentage']:.1f}% of budget)."),
                confidence=0.8,
                predicted_amount=fc["overrun_amount"],
                percentage=fc["percentage"],
            ))

    goal = track_savings_goal(transactions, personality, salary, savings_cap)
    out.append(Prediction(
        type="goal_tracking",
        message=(f"You're {goal['percentage']:.0f}% towards your savings goal "
                 f"(₹{round(goal['current_savings'])} of ₹{round(goal['target_savings'])})."),
        confidence=0.9,
        current_amount=goal["current_savings"],
        target_amount=goal["target_savings"],
        percentage=goal["percentage"],
    ))
    return out
