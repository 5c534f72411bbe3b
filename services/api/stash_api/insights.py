from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from . import behavior
from . import predictive
from .repositories import budgets_repo
from .utils.category_mapping import normalize_category
from .utils.dates import now_iso, tx_date, within_days

logger = logging.getLogger(__name__)

PRIORITY_RANK = {"critical": 0, "warning": 1, "tip": 2, "info": 3}

INSIGHT_RESPONSES = ("acted_on", "ignored", "dismissed", "get_tips_clicked")

# insight response -> behaviour log response
_BEHAVIOR_RESPONSE = {
    "acted_on": "accepted",
    "get_tips_clicked": "accepted",
    "ignored": "ignored",
    "dismissed": "dismissed",
}

# JS-style day order (Sunday first) for weekday pattern detection
_DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass
class InsightContext:
    user_id: str
    spending_personality: str
    salary: float
    transactions: List[Dict]
    today: date
    user_type: str = "test"
    thresholds: behavior.AdaptiveThresholds = field(default_factory=behavior.AdaptiveThresholds)
    budget_caps: Optional[Dict[str, float]] = None
    savings_target: Optional[float] = None
    sensitivity_level: str = "medium"

    def recent(self, days: int) -> List[Dict]:
        return [t for t in self.transactions if within_days(t, self.today, days)]


@dataclass
class InsightTemplate:
    type: str
    priority: str
    title: str
    condition: Callable[[InsightContext], bool]
    content: Callable[[InsightContext], str]


def _money(value: float) -> str:
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def _total(rows: List[Dict]) -> float:
    return sum(float(t["amount"]) for t in rows)


def _category_counts(rows: List[Dict]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for t in rows:
        counts[t["category"]] = counts.get(t["category"], 0) + 1
    return counts


def _first_with_count(counts: Dict[str, int], minimum: int):
    for key, n in counts.items():
        if n >= minimum:
            return key, n
    return None


# --- budget_overrun ---------------------------------------------------------

def _budget_overrun_content(ctx: InsightContext) -> str:
    if not ctx.budget_caps:
        return "Unable to analyze budget status."
    spending: Dict[str, float] = {}
    for t in ctx.transactions:
        cat = normalize_category(t["category"], ctx.spending_personality)
        spending[cat] = spending.get(cat, 0.0) + float(t["amount"])
    trigger = ctx.thresholds.budget_overrun_threshold / 100
    over: List[str] = []
    for category, cap in ctx.budget_caps.items():
        spent = spending.get(category, 0.0)
        if spent > cap * trigger:
            overrun = spent - cap
            pct = f"{overrun / cap * 100:.1f}" if cap > 0 else "inf"
            over.append(f"{category} (₹{_money(overrun)} over, {pct}% of budget)")
    if not over:
        return "Great job! You're staying within your budget limits."
    return (f"Budget Alert: You've exceeded limits in {', '.join(over)}. "
            "Consider reducing spending in these categories for the rest of the month.")


# --- burn_risk --------------------------------------------------------------

BURN_RISK_BASE = 3


def burn_risk_minimum(ctx: InsightContext) -> int:
    """Same-category transactions in 7 days that raise the alert, scaled by sensitivity."""
    return max(2, round(BURN_RISK_BASE * behavior.SENSITIVITY_MULTIPLIER[ctx.sensitivity_level]))


def _burn_risk_condition(ctx: InsightContext) -> bool:
    counts = _category_counts(ctx.recent(7))
    return _first_with_count(counts, burn_risk_minimum(ctx)) is not None


def _burn_risk_content(ctx: InsightContext) -> str:
    hit = _first_with_count(_category_counts(ctx.recent(7)), burn_risk_minimum(ctx))
    if hit:
        category, n = hit
        return (f"You've made {n} transactions in {category} this week. "
                "Consider setting a daily limit to avoid overspending.")
    return "Multiple similar transactions detected. Review your spending patterns."


# --- savings_opportunity ----------------------------------------------------

def _savings_opportunity_condition(ctx: InsightContext) -> bool:
    return _total(ctx.recent(3)) < ctx.salary * 0.1


def _savings_opportunity_content(ctx: InsightContext) -> str:
    spent = _total(ctx.recent(3))
    potential = ctx.salary * 0.2 - spent
    return (f"You've spent ₹{_money(spent)} in the last 3 days. You could save ₹{_money(potential)} "
            "this month by maintaining this controlled spending pattern!")


# --- pattern ----------------------------------------------------------------

def _weekday_counts(rows: List[Dict]) -> Dict[int, int]:
    counts = {i: 0 for i in range(7)}
    for t in rows:
        counts[(tx_date(t).weekday() + 1) % 7] += 1
    return counts


def _pattern_condition(ctx: InsightContext) -> bool:
    return any(n >= 2 for n in _weekday_counts(ctx.recent(14)).values())


def _pattern_content(ctx: InsightContext) -> str:
    for day, n in _weekday_counts(ctx.recent(14)).items():
        if n >= 2:
            return (f"You tend to spend more on {_DAY_NAMES[day]}s. "
                    "Consider planning your purchases to avoid impulse spending.")
    return "We detected a recurring spending pattern. Review your habits."


# --- goal -------------------------------------------------------------------

def _savings_rows(ctx: InsightContext) -> List[Dict]:
    return [
        t for t in ctx.recent(7)
        if "savings" in (t.get("category") or "").lower() or "savings" in (t.get("merchant") or "").lower()
    ]


def _goal_content(ctx: InsightContext) -> str:
    saved = _total(_savings_rows(ctx))
    return (f"Great job! You've saved ₹{_money(saved)} this week. "
            "Keep up the momentum towards your financial goals!")


# --- tip --------------------------------------------------------------------

def _tip_content(ctx: InsightContext) -> str:
    if ctx.spending_personality == "Heavy Spender":
        spent = _total(ctx.recent(7))
        return (f"As a Heavy Spender, you've spent ₹{_money(spent)} this week. "
                "Consider setting up automatic savings transfers to balance your spending habits.")
    if ctx.spending_personality == "Max Saver":
        return ("Excellent saving behavior! You've maintained your Max Saver habits. "
                "Consider treating yourself occasionally while staying on track.")
    return "You're maintaining a good balance between spending and saving. Keep up the moderate approach!"


# --- proactive_action -------------------------------------------------------

def _monthly_projection(ctx: InsightContext) -> float:
    return _total(ctx.recent(5)) / 5 * 30


def _proactive_condition(ctx: InsightContext) -> bool:
    projection = _monthly_projection(ctx)
    return ctx.salary * 0.15 < projection < ctx.salary * 0.8


def _proactive_content(ctx: InsightContext) -> str:
    projection = _monthly_projection(ctx)
    pct = projection / ctx.salary * 100 if ctx.salary else 0.0
    return (f"Your current spending rate projects to ₹{_money(projection)} this month ({pct:.1f}% of salary). "
            "Consider setting up automatic savings now to stay ahead of your budget!")


# --- smart_categorization ---------------------------------------------------

def _smart_categorization_content(ctx: InsightContext) -> str:
    recent = ctx.recent(7)
    hit = _first_with_count(_category_counts(recent), 4)
    if hit:
        category, n = hit
        total = _total([t for t in recent if t["category"] == category])
        return (f"I noticed {n} transactions in {category} (₹{_money(total)}). "
                "Consider creating a dedicated budget for this category to better track your spending.")
    return ("Your spending patterns suggest opportunities for better categorization. "
            "Review your transaction categories for accuracy.")


# --- budget_cap_warning -----------------------------------------------------

def _budget_cap_content(ctx: InsightContext) -> str:
    if not ctx.budget_caps:
        return "Unable to analyze budget caps."
    total_caps = sum(ctx.budget_caps.values())
    ratio = total_caps / ctx.salary if ctx.salary else 0.0
    if ratio > 0.8:
        return (f"Your total budget caps (₹{_money(total_caps)}) represent {ratio * 100:.1f}% of your salary. "
                "Consider reducing caps to maintain healthy savings.")
    return f"Your budget caps are well-balanced at {ratio * 100:.1f}% of your salary."


# --- predictive_spending ----------------------------------------------------

def next_purchase_date(dates: List[date], today: date) -> date:
    """Last purchase plus the mean gap between purchases, kept 3-7 days out."""
    ordered = sorted(dates)
    if len(ordered) >= 2:
        gaps = [(b - a).days for a, b in zip(ordered, ordered[1:])]
        gap = max(1, round(sum(gaps) / len(gaps)))
    else:
        gap = 7
    predicted = ordered[-1] + timedelta(days=gap)
    earliest, latest = today + timedelta(days=3), today + timedelta(days=7)
    return min(max(predicted, earliest), latest)


def _predictive_spending_content(ctx: InsightContext) -> str:
    recent = ctx.recent(14)
    if not recent:
        return "No recent transactions to analyze. Start spending to get personalized predictions."
    counts = _category_counts(recent)
    category, n = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[0]
    rows = [t for t in recent if t["category"] == category]
    avg = _total(rows) / n
    when = next_purchase_date([tx_date(t) for t in rows], ctx.today)
    confidence = min(85, max(60, n * 10))
    return (f"Next {category} purchase predicted: ₹{_money(round(avg))} on {when.strftime('%d/%m/%Y')} "
            f"({confidence}% confidence).")


TEMPLATES: List[InsightTemplate] = [
    InsightTemplate("budget_overrun", "critical", "Budget Limit Exceeded",
                    lambda ctx: True, _budget_overrun_content),
    InsightTemplate("burn_risk", "critical", "High Burn Risk Detected",
                    _burn_risk_condition, _burn_risk_content),
    InsightTemplate("savings_opportunity", "tip", "Savings Opportunity",
                    _savings_opportunity_condition, _savings_opportunity_content),
    InsightTemplate("pattern", "warning", "Spending Pattern Detected",
                    _pattern_condition, _pattern_content),
    InsightTemplate("goal", "info", "Goal Progress Update",
                    lambda ctx: bool(_savings_rows(ctx)), _goal_content),
    InsightTemplate("tip", "tip", "Personalized Tip",
                    lambda ctx: ctx.spending_personality == "Heavy Spender", _tip_content),
    InsightTemplate("proactive_action", "tip", "Proactive Financial Action",
                    _proactive_condition, _proactive_content),
    InsightTemplate("smart_categorization", "info", "Smart Categorization",
                    lambda ctx: _first_with_count(_category_counts(ctx.recent(7)), 4) is not None,
                    _smart_categorization_content),
    InsightTemplate("budget_cap_warning", "warning", "Budget Cap Analysis",
                    lambda ctx: True, _budget_cap_content),
    InsightTemplate("predictive_spending", "tip", "Predictive Spending Analysis",
                    lambda ctx: True, _predictive_spending_content),
]

# prediction type -> (insight type, priority, title)
PREDICTION_MAP = {
    "spending_prediction": ("pattern", "warning", "Spending Prediction"),
    "budget_forecast": ("pattern", "critical", "Budget Forecast"),
    "goal_tracking": ("goal", "info", "Goal Progress"),
}


def insight_id(user_id: str, kind: str, content: str, day: date) -> str:
    raw = f"{user_id}|{kind}|{content}|{day.isoformat()}"
    return "insight_" + hashlib.sha1(raw.encode("utf-8")).hexdigest()[:24]


def _make_insight(ctx: InsightContext, kind: str, priority: str, title: str, content: str,
                  related: List[str], data: Dict, generated_at: str) -> Dict:
    return {
        "id": insight_id(ctx.user_id, kind, content, ctx.today),
        "user_id": ctx.user_id,
        "type": kind,
        "priority": priority,
        "title": title,
        "content": content,
        "generated_at": generated_at,
        "user_type": ctx.user_type,
        "spending_personality": ctx.spending_personality,
        "related_transactions": related,
        "is_active": True,
        "data": data,
    }


def _predictive_insights(ctx: InsightContext, related: List[str], generated_at: str) -> List[Dict]:
    out = []
    for p in predictive.generate_predictive_insights(
            ctx.transactions, ctx.spending_personality, ctx.salary, ctx.savings_target, ctx.today):
        kind, priority, title = PREDICTION_MAP.get(p.type, ("pattern", "info", "Predictive Insight"))
        data = {"template_type": "predictive", "prediction_type": p.type, "generated_at": generated_at}
        data.update({k: v for k, v in p.to_dict().items() if k not in ("type", "message")})
        out.append(_make_insight(ctx, kind, priority, title, p.message, related, data, generated_at))
    return out


def _behavioral_insights(ctx: InsightContext, profile: Optional[behavior.BehaviorProfile],
                         now: datetime, generated_at: str) -> List[Dict]:
    out = []
    timing = behavior.optimal_timing(profile, now)
    if timing["should_send"]:
        for message in behavior.behavioral_insights(profile):
            out.append(_make_insight(
                ctx, "agentic_analysis", "info", "Behavioral Adaptation", message, [],
                {"template_type": "behavioral", "timing_reason": timing["reason"], "generated_at": generated_at},
                generated_at))
    if profile is not None and profile.sensitivity_level != "medium":
        t = ctx.thresholds
        message = (f"I've adjusted alert sensitivity based on your behavior. Budget alerts now trigger at "
                   f"{t.budget_overrun_threshold:.0f}% and transaction warnings at "
                   f"{t.burn_risk_threshold} transactions.")
        out.append(_make_insight(
            ctx, "agentic_analysis", "info", "Adaptive Thresholds", message, [],
            {"template_type": "adaptive_thresholds", "sensitivity_level": profile.sensitivity_level,
             "thresholds": t.to_dict(), "generated_at": generated_at},
            generated_at))
    return out


def dedupe_and_prioritize(items: List[Dict]) -> List[Dict]:
    seen = set()
    unique = []
    for x in items:
        key = (x["type"], x["content"])
        if key in seen:
            continue
        seen.add(key)
        unique.append(x)
    return sorted(unique, key=lambda x: PRIORITY_RANK.get(x["priority"], len(PRIORITY_RANK)))


def evaluate(ctx: InsightContext, profile: Optional[behavior.BehaviorProfile] = None,
             now: Optional[datetime] = None, templates: Optional[List[InsightTemplate]] = None) -> List[Dict]:
    """Run templates and analyzers over the context. Pure: no persistence."""
    now = now or datetime.now()
    generated_at = now.isoformat(timespec="seconds")
    related = [t["id"] for t in sorted(ctx.transactions, key=tx_date)[-5:]]
    items: List[Dict] = []
    for template in templates if templates is not None else TEMPLATES:
        if not template.condition(ctx):
            continue
        data = {
            "template_type": template.type,
            "transaction_count": len(ctx.transactions),
            "generated_at": generated_at,
        }
        items.append(_make_insight(ctx, template.type, template.priority, template.title,
                                   template.content(ctx), related, data, generated_at))
    try:
        items += _predictive_insights(ctx, related, generated_at)
    except Exception:
        logger.exception("Predictive insights failed for %s", ctx.user_id)
    try:
        items += _behavioral_insights(ctx, profile, now, generated_at)
    except Exception:
        logger.exception("Behavioral insights failed for %s", ctx.user_id)
    return dedupe_and_prioritize(items)


def build_context(conn: sqlite3.Connection, profile: Dict, transactions: List[Dict],
                  today: Optional[date] = None,
                  behavior_profile: Optional[behavior.BehaviorProfile] = None) -> InsightContext:
    personality = profile.get("spending_personality") or "Medium Spender"
    return InsightContext(
        user_id=profile["user_id"],
        user_type=profile.get("user_type") or "test",
        spending_personality=personality,
        salary=float(profile.get("salary") or 0.0),
        transactions=transactions,
        today=today or date.today(),
        thresholds=behavior.adaptive_thresholds(behavior_profile),
        budget_caps=budgets_repo.merged_budget_caps(conn, profile["user_id"], personality),
        savings_target=budgets_repo.custom_caps(conn, profile["user_id"]).get("Savings"),
        sensitivity_level=behavior_profile.sensitivity_level if behavior_profile else "medium",
    )


def generate_insights_for_user(conn: sqlite3.Connection, user_id: str, transactions: List[Dict],
                               profile: Dict, persist: bool = True, today: Optional[date] = None,
                               now: Optional[datetime] = None) -> List[Dict]:
    bprofile = behavior.get_profile(conn, user_id)
    ctx = build_context(conn, dict(profile, user_id=user_id), transactions, today, bprofile)
    items = evaluate(ctx, bprofile, now)
    if persist and items:
        upsert_insights(conn, items)
    logger.info("Generated %d insights for %s", len(items), user_id)
    return items


def upsert_insights(conn: sqlite3.Connection, items: List[Dict]):
    # Same-day regeneration refreshes text and data but keeps the user's response and active flag
    for x in items:
        conn.execute(
            """
            INSERT INTO ai_insights (
                id, user_id, type, priority, title, content, generated_at,
                related_transactions_json, user_type, spending_personality, is_active, data_json, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                priority = excluded.priority,
                title = excluded.title,
                generated_at = excluded.generated_at,
                related_transactions_json = excluded.related_transactions_json,
                data_json = excluded.data_json
            """,
            (
                x["id"], x["user_id"], x["type"], x["priority"], x["title"], x["content"],
                x["generated_at"], json.dumps(x.get("related_transactions") or []),
                x.get("user_type"), x.get("spending_personality"), int(bool(x.get("is_active", True))),
                json.dumps(x.get("data") or {}), now_iso(),
            ),
        )


def _row_to_insight(r: sqlite3.Row) -> Dict:
    d = dict(r)
    d["is_active"] = bool(d.get("is_active"))
    d["related_transactions"] = json.loads(d.pop("related_transactions_json") or "[]")
    d["data"] = json.loads(d.pop("data_json") or "{}")
    return d


_SELECT = """
    SELECT id, user_id, type, priority, title, content, generated_at, user_response,
           related_transactions_json, user_type, spending_personality, is_active, data_json, created_at
    FROM ai_insights
"""


def get_insight(conn: sqlite3.Connection, user_id: str, iid: str) -> Optional[Dict]:
    r = conn.execute(_SELECT + " WHERE user_id = ? AND id = ?", (user_id, iid)).fetchone()
    return _row_to_insight(r) if r else None


def get_active_insights(conn: sqlite3.Connection, user_id: str, limit: int = 3) -> List[Dict]:
    rows = conn.execute(
        _SELECT + " WHERE user_id = ? AND is_active = 1 ORDER BY generated_at DESC, created_at DESC",
        (user_id,),
    ).fetchall()
    seen = set()
    out = []
    for r in rows:
        key = (r["type"], r["content"])
        if key in seen:
            continue
        seen.add(key)
        out.append(_row_to_insight(r))
        if len(out) >= limit:
            break
    return out


def insight_history(conn: sqlite3.Connection, user_id: str, limit: int = 50) -> List[Dict]:
    rows = conn.execute(
        _SELECT + " WHERE user_id = ? ORDER BY generated_at DESC, created_at DESC LIMIT ?",
        (user_id, limit),
    ).fetchall()
    return [_row_to_insight(r) for r in rows]


def update_insight_response(conn: sqlite3.Connection, user_id: str, iid: str, response: str,
                            now: Optional[datetime] = None) -> Optional[Dict]:
    if response not in INSIGHT_RESPONSES:
        raise ValueError(f"invalid_response:{response}")
    insight = get_insight(conn, user_id, iid)
    if insight is None:
        return None
    conn.execute(
        "UPDATE ai_insights SET user_response = ? WHERE user_id = ? AND id = ?",
        (response, user_id, iid),
    )
    behavior.record_response(
        conn, user_id, iid, _BEHAVIOR_RESPONSE[response], insight["type"], insight["priority"],
        shown_at=insight.get("generated_at"), responded_at=now,
    )
    insight["user_response"] = response
    return insight


def deactivate_insight(conn: sqlite3.Connection, user_id: str, iid: str) -> bool:
    cur = conn.execute(
        "UPDATE ai_insights SET is_active = 0 WHERE user_id = ? AND id = ?",
        (user_id, iid),
    )
    return cur.rowcount > 0
