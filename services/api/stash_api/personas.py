from __future__ import annotations

import json
import logging
import random
from datetime import date, timedelta
from typing import Dict, List, Optional

from .config import get_persona_data_dir
from .utils.category_mapping import normalize_category
from .utils.dates import window_start

logger = logging.getLogger(__name__)

PERSONA_FILES = {
    "heavy": "heavy-spender.json",
    "medium": "medium-spender.json",
    "max": "max-saver.json",
}

PERSONALITY_TO_TYPE = {
    "Heavy Spender": "heavy",
    "Medium Spender": "medium",
    "Max Saver": "max",
}

_MERCHANTS = {
    "heavy": ["Luxury Restaurant", "Shopping Mall", "Cinema Hall", "Gaming Zone", "Uber", "Netflix"],
    "medium": ["Local Kirana", "Restaurant", "Shopping Mall", "Metro Card", "Savings Account Transfer"],
    "max": ["Local Kirana", "Metro Card", "Savings Account Transfer", "Electricity Bill", "Local Market"],
}

_CATEGORIES = {
    "heavy": ["dining", "entertainment", "shopping", "transport"],
    "medium": ["groceries", "food", "shopping", "transport", "savings"],
    "max": ["groceries", "transport", "savings", "utilities"],
}

# (low, high) inclusive-exclusive bounds for synthetic amounts
_AMOUNT_RANGES = {
    "heavy": (500, 2500),
    "medium": (200, 1200),
    "max": (100, 600),
}

_PAYMENT_METHODS = ["Card", "UPI", "NetBanking", "Cash"]

_PERSONA_CACHE: Optional[Dict[str, List[Dict]]] = None


def persona_type_for(personality: Optional[str]) -> str:
    return PERSONALITY_TO_TYPE.get(personality or "", "medium")


def load_persona_data(force: bool = False) -> Dict[str, List[Dict]]:
    global _PERSONA_CACHE
    if _PERSONA_CACHE is not None and not force:
        return _PERSONA_CACHE
    data_dir = get_persona_data_dir()
    loaded: Dict[str, List[Dict]] = {}
    for persona_type, filename in PERSONA_FILES.items():
        path = data_dir / filename
        if not path.exists():
            logger.warning("Persona data file missing: %s", path)
            continue
        with open(path, "r", encoding="utf-8") as f:
            loaded[persona_type] = json.load(f)
        logger.info("Loaded %d %s persona transactions",
                    len(loaded[persona_type]), persona_type)
    _PERSONA_CACHE = loaded
    return loaded


def persona_types() -> List[str]:
    return list(load_persona_data().keys())


def _sort_newest_first(rows: List[Dict]) -> List[Dict]:
    return sorted(rows, key=lambda r: (r["date"], r.get("time") or ""), reverse=True)


def _synthetic_transaction(persona_type: str, day: date, index: int, rng: random.Random) -> Dict:
    merchants = _MERCHANTS.get(persona_type, _MERCHANTS["medium"])
    categories = _CATEGORIES.get(persona_type, _CATEGORIES["medium"])
    low, high = _AMOUNT_RANGES.get(persona_type, _AMOUNT_RANGES["max"])
    return {
        "id": f"persona_{persona_type}_{day.strftime('%Y%m%d')}_{index:03d}",
        "date": day.isoformat(),
        "merchant": rng.choice(merchants),
        "amount": rng.randrange(low, high),
        "category": rng.choice(categories),
        "payment_method": rng.choice(_PAYMENT_METHODS),
        "synthetic": True,
    }


def synthesize_days(persona_type: str, after: date, through: date) -> List[Dict]:
    """1-3 synthetic transactions for every day in (after, through], newest first."""
    out: List[Dict] = []
    day = after + timedelta(days=1)
    while day <= through:
        rng = random.Random(f"{persona_type}|{day.isoformat()}")
        for i in range(rng.randint(1, 3)):
            out.append(_synthetic_transaction(persona_type, day, i + 1, rng))
        day += timedelta(days=1)
    return _sort_newest_first(out)


def latest_transactions(persona_type: str, limit: int = 10, today: Optional[date] = None) -> List[Dict]:
    if persona_type not in PERSONA_FILES:
        return []
    today = today or date.today()
    month_start = today.replace(day=1)
    rows = load_persona_data().get(persona_type, [])
    valid = _sort_newest_first([
        r for r in rows if month_start.isoformat() <= r["date"] <= today.isoformat()
    ])
    anchor = date.fromisoformat(valid[0]["date"]) if valid else month_start - timedelta(days=1)
    if today > anchor:
        valid = synthesize_days(persona_type, anchor, today) + valid
    return valid[:limit]


def transactions_by_date_range(persona_type: str, start: str, end: str) -> List[Dict]:
    rows = load_persona_data().get(persona_type, [])
    return _sort_newest_first([r for r in rows if start <= r["date"] <= end])


def transactions_by_date_range_and_category(persona_type: str, start: str, end: str, personality: str) -> List[Dict]:
    out = []
    for r in transactions_by_date_range(persona_type, start, end):
        item = dict(r)
        item["category"] = normalize_category(r.get("category"), personality)
        out.append(item)
    return out


def transaction_stats(persona_type: str, days: int = 30, today: Optional[date] = None) -> Dict:
    today = today or date.today()
    start = window_start(today, days).isoformat()
    rows = transactions_by_date_range(persona_type, start, today.isoformat())
    total = sum(float(r["amount"]) for r in rows)
    count = len(rows)
    by_cat: Dict[str, Dict[str, float]] = {}
    for r in rows:
        agg = by_cat.setdefault(r["category"], {"amount": 0.0, "count": 0})
        agg["amount"] += float(r["amount"])
        agg["count"] += 1
    top = sorted(
        ({"category": c, "amount": v["amount"], "count": int(v["count"])} for c, v in by_cat.items()),
        key=lambda x: x["amount"], reverse=True,
    )[:5]
    return {
        "total_amount": total,
        "transaction_count": count,
        "average_amount": total / count if count else 0.0,
        "top_categories": top,
    }


def daily_totals(persona_type: str, end: date, days: int = 7) -> Dict[str, float]:
    start = end - timedelta(days=days - 1)
    totals = {(start + timedelta(days=i)).isoformat(): 0.0 for i in range(days)}
    for r in transactions_by_date_range(persona_type, start.isoformat(), end.isoformat()):
        if r["date"] in totals:
            totals[r["date"]] += float(r["amount"])
    return totals


def to_transaction(row: Dict, user_id: str) -> Dict:
    """Persona row -> the transaction shape used by the engine and the DB."""
    return {
        "id": row["id"],
        "user_id": user_id,
        "date": row["date"],
        "merchant": row["merchant"],
        "amount": float(row["amount"]),
        "category": row["category"],
        "payment_mode": row.get("payment_method") or "UPI",
        "is_simulated": True,
    }


PERSONA_DESCRIPTIONS = {
    "heavy": ("Heavy Spender", "High spending on entertainment, dining, and shopping"),
    "medium": ("Medium Spender", "Balanced spending with regular savings"),
    "max": ("Max Saver", "Minimal spending focused on essentials and savings"),
}


def describe_types() -> List[Dict]:
    return [{"id": t, "name": name, "description": desc} for t, (name, desc) in PERSONA_DESCRIPTIONS.items()]


def transactions_until(persona_type: str, current_date: str) -> List[Dict]:
    """Seed rows dated on or before `current_date`, oldest first."""
    if persona_type not in PERSONA_FILES:
        raise ValueError("invalid_user_type")
    rows = load_persona_data().get(persona_type, [])
    return sorted((r for r in rows if r["date"] <= current_date), key=lambda r: (r["date"], r.get("time") or ""))
