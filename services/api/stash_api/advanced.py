from __future__ import annotations

import hashlib
import logging
import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

from .financial import detect_savings_transactions
from .repositories import transactions_repo, users_repo
from .utils.dates import months_back

logger = logging.getLogger(__name__)

OPTIMIZATION_MONTHS = 3
EMERGENCY_FUND_MONTHS = 6
SAVINGS_RATE = 0.20
INVESTMENT_RATE = 0.10


@dataclass
class BudgetOptimization:
    category: str
    current_budget: float
    recommended_budget: float
    reasoning: str
    confidence: float
    potential_savings: float


@dataclass
class FinancialGoal:
    id: str
    type: str  # savings | investment | debt_payoff | emergency_fund
    name: str
    target_amount: float
    current_amount: float
    timeline: int  # months
    priority: str
    recommendation: str
    next_action: str


@dataclass
class PersonalizedInsight:
    id: str
    category: str  # spending_pattern | savings_opportunity | investment_advice | risk_assessment
    title: str
    content: str
    confidence: float
    action_items: List[str] = field(default_factory=list)
    related_transactions: List[str] = field(default_factory=list)


@dataclass
class EducationTopic:
    id: str
    topic: str
    title: str
    content: str
    difficulty: str
    relevance: int  # 0-100
    estimated_read_time: int  # minutes
    tags: List[str] = field(default_factory=list)


def _item_id(prefix: str, user_id: str, kind: str, day: date) -> str:
    raw = f"{user_id}|{kind}|{day.isoformat()}"
    return f"{prefix}_" + hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


def _require_user(conn: sqlite3.Connection, user_id: str) -> Dict:
    user = users_repo.get_user(conn, user_id)
    if not user:
        raise KeyError("user_not_found")
    return user


def _rupees(value: float) -> str:
    return f"₹{round(value):,}"


def budget_optimization(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    """Per-category monthly budget recommendations from the last three months of spending.

    Categories above 30% of salary are cut by 20%, those above 15% by 10%; the
    rest get 10% headroom. Sorted by potential savings, largest first.
    """
    _require_user(conn, user_id)
    today = today or date.today()
    salary = users_repo.salary_amount(conn, user_id)
    rows = transactions_repo.list_between(
        conn, user_id, months_back(today, OPTIMIZATION_MONTHS).isoformat(), today.isoformat())

    spent: Dict[str, float] = {}
    for t in rows:
        spent[t["category"]] = spent.get(t["category"], 0.0) + float(t["amount"])

    out: List[BudgetOptimization] = []
    for category, total in spent.items():
        monthly = total / OPTIMIZATION_MONTHS
        pct = monthly / salary * 100 if salary else 0.0
        if pct > 30:
            recommended = monthly * 0.8
            reasoning = (f"High spending in {category} ({pct:.1f}% of salary). "
                         "Consider reducing by 20% to improve financial health.")
            confidence = 0.9
        elif pct > 15:
            recommended = monthly * 0.9
            reasoning = f"Moderate spending in {category}. Small reduction can help with savings goals."
            confidence = 0.8
        else:
            recommended = monthly * 1.1
            reasoning = f"Low spending in {category}. You can afford to spend slightly more if needed."
            confidence = 0.6
        savings = max(0.0, monthly - recommended)
        out.append(BudgetOptimization(
            category=category,
            current_budget=round(monthly, 2),
            recommended_budget=round(recommended),
            reasoning=reasoning,
            confidence=confidence,
            potential_savings=round(savings),
        ))
    out.sort(key=lambda o: o.potential_savings, reverse=True)
    return [asdict(o) for o in out]


def financial_goals(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    _require_user(conn, user_id)
    today = today or date.today()
    salary = users_repo.salary_amount(conn, user_id)
    recent = transactions_repo.list_recent(conn, user_id, 50)
    total = sum(float(t["amount"]) for t in recent)
    # average transaction scaled to a 30-day month
    monthly_spending = total / len(recent) * 30 if recent else 0.0

    emergency = salary * EMERGENCY_FUND_MONTHS
    savings_target = salary * SAVINGS_RATE
    left_over = max(0.0, salary - monthly_spending)
    gap = savings_target - (salary - monthly_spending)
    if gap > 0:
        savings_action = f"Review spending categories and identify areas to reduce by {_rupees(gap)}"
    else:
        savings_action = "Move the surplus into savings at the start of each month"
    investment = salary * INVESTMENT_RATE

    goals = [
        FinancialGoal(
            id=_item_id("goal", user_id, "emergency_fund", today),
            type="emergency_fund",
            name="Emergency Fund",
            target_amount=round(emergency),
            current_amount=detect_savings_transactions(conn, user_id),
            timeline=12,
            priority="high",
            recommendation=(f"Build an emergency fund of {_rupees(emergency)} "
                            f"({EMERGENCY_FUND_MONTHS} months of salary) for financial security."),
            next_action=f"Set up automatic monthly transfer of {_rupees(emergency / 12)}",
        ),
        FinancialGoal(
            id=_item_id("goal", user_id, "savings", today),
            type="savings",
            name="Monthly Savings",
            target_amount=round(savings_target),
            current_amount=round(left_over, 2),
            timeline=1,
            priority="high",
            recommendation=(f"Aim to save {_rupees(savings_target)} monthly (20% of salary) "
                            "for long-term financial goals."),
            next_action=savings_action,
        ),
        FinancialGoal(
            id=_item_id("goal", user_id, "investment", today),
            type="investment",
            name="Investment Portfolio",
            target_amount=round(investment),
            current_amount=0.0,
            timeline=6,
            priority="medium",
            recommendation=(f"Start investing {_rupees(investment)} monthly for wealth building "
                            "and retirement planning."),
            next_action="Research index funds or mutual funds suitable for your risk profile",
        ),
    ]
    return [asdict(g) for g in goals]


def personalized_insights(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    _require_user(conn, user_id)
    today = today or date.today()
    recent = transactions_repo.list_recent(conn, user_id, 100)
    if not recent:
        return []

    counts: Dict[str, int] = {}
    for t in recent:
        counts[t["category"]] = counts.get(t["category"], 0) + 1
    top_category, top_count = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[0]

    out: List[PersonalizedInsight] = []
    if top_count >= 5:
        out.append(PersonalizedInsight(
            id=_item_id("pinsight", user_id, "spending_pattern", today),
            category="spending_pattern",
            title="High Frequency Spending Detected",
            content=(f"You make frequent purchases in {top_category} ({top_count} transactions). "
                     "Consider bulk buying or subscription services to save money."),
            confidence=0.85,
            action_items=[
                "Review if all purchases are necessary",
                "Consider bulk buying for frequently purchased items",
                "Look for subscription alternatives",
            ],
            related_transactions=[t["id"] for t in recent if t["category"] == top_category][:5],
        ))

    average = sum(float(t["amount"]) for t in recent) / len(recent)
    if average > 1000:
        out.append(PersonalizedInsight(
            id=_item_id("pinsight", user_id, "savings_opportunity", today),
            category="savings_opportunity",
            title="High Transaction Values",
            content=(f"Your average transaction is {_rupees(average)}. "
                     "Consider breaking down large purchases or looking for better deals."),
            confidence=0.8,
            action_items=[
                "Compare prices before making large purchases",
                "Consider installment options for expensive items",
                "Look for cashback or discount opportunities",
            ],
            related_transactions=[t["id"] for t in recent if float(t["amount"]) > average][:3],
        ))
    return [asdict(i) for i in out]


def financial_education(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> List[Dict]:
    _require_user(conn, user_id)
    today = today or date.today()
    recent = transactions_repo.list_recent(conn, user_id, 20)
    total = sum(float(t["amount"]) for t in recent)
    categories = {t["category"] for t in recent}

    topics: List[EducationTopic] = []
    if len(categories) > 3:
        topics.append(EducationTopic(
            id=_item_id("edu", user_id, "budgeting", today),
            topic="budgeting",
            title="Mastering Category-Based Budgeting",
            content=("Learn how to create and maintain effective budgets across multiple spending categories. "
                     "This guide will help you track expenses, set realistic limits, and achieve your "
                     "financial goals."),
            difficulty="intermediate",
            relevance=95,
            estimated_read_time=8,
            tags=["budgeting", "expense tracking", "financial planning"],
        ))
    if total > 50000:
        topics.append(EducationTopic(
            id=_item_id("edu", user_id, "savings", today),
            topic="savings",
            title="Building Your Emergency Fund",
            content=("Discover the importance of emergency funds and learn strategies to build one. "
                     "This essential financial safety net can protect you from unexpected expenses and "
                     "financial stress."),
            difficulty="beginner",
            relevance=90,
            estimated_read_time=6,
            tags=["emergency fund", "savings", "financial security"],
        ))
    topics.append(EducationTopic(
        id=_item_id("edu", user_id, "investment", today),
        topic="investment",
        title="Getting Started with Investments",
        content=("Begin your investment journey with this comprehensive guide. Learn about different "
                 "investment options, risk management, and how to start building wealth for your future."),
        difficulty="beginner",
        relevance=85,
        estimated_read_time=10,
        tags=["investing", "wealth building", "financial growth"],
    ))
    topics.sort(key=lambda t: t.relevance, reverse=True)
    return [asdict(t) for t in topics]


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def total_potential_savings(optimizations: List[Dict]) -> float:
    return sum(o["potential_savings"] for o in optimizations)


def high_priority_count(goals: List[Dict]) -> int:
    return sum(1 for g in goals if g["priority"] == "high")


def average_confidence(items: List[Dict]) -> float:
    return _mean([i["confidence"] for i in items])


def average_relevance(topics: List[Dict]) -> float:
    return _mean([t["relevance"] for t in topics])


def comprehensive_report(conn: sqlite3.Connection, user_id: str, today: Optional[date] = None) -> Dict:
    optimizations = budget_optimization(conn, user_id, today)
    goals = financial_goals(conn, user_id, today)
    insights = personalized_insights(conn, user_id, today)
    education = financial_education(conn, user_id, today)
    logger.info("Comprehensive report for %s: %d optimizations, %d insights", user_id,
                len(optimizations), len(insights))
    return {
        "user_id": user_id,
        "summary": {
            "total_potential_savings": total_potential_savings(optimizations),
            "high_priority_goals": high_priority_count(goals),
            "average_confidence": average_confidence(insights),
            "average_relevance": average_relevance(education),
            "total_insights": len(insights),
            "total_education_topics": len(education),
        },
        "optimizations": optimizations,
        "goals": goals,
        "insights": insights,
        "education": education,
        "generated_at": datetime.now().isoformat(timespec="seconds"),
    }
