from __future__ import annotations

from typing import Dict, List, Optional

# Raw transaction categories -> budget categories, per spending personality.
CATEGORY_MAPPINGS: Dict[str, Dict[str, str]] = {
    "Heavy Spender": {
        "entertainment": "Entertainment",
        "food": "Food & Dining",
        "food & dining": "Food & Dining",
        "dining": "Food & Dining",
        "groceries": "Groceries",
        "shopping": "Shopping",
        "transport": "Transport",
        "transportation": "Transport",
    },
    "Medium Spender": {
        "food": "Food & Dining",
        "food & dining": "Food & Dining",
        "dining": "Food & Dining",
        "groceries": "Groceries",
        "savings": "Savings",
        "shopping": "Shopping",
        "transport": "Transport",
        "transportation": "Transport",
    },
    "Max Saver": {
        "transport": "Transport",
        "transportation": "Transport",
        "groceries": "Groceries",
        "travel": "Travel",
        "utilities": "Utilities",
        "savings": "Savings",
    },
}


def normalize_category(category: Optional[str], personality: Optional[str]) -> str:
    """Map a raw category onto the personality's budget category.

    Unknown personalities and unmapped categories pass through unchanged.
    """
    raw = category or ""
    mapping = CATEGORY_MAPPINGS.get(personality or "")
    if not mapping:
        return raw
    if raw in mapping:
        return mapping[raw]
    return mapping.get(raw.strip().lower(), raw)


def valid_categories(personality: Optional[str]) -> List[str]:
    mapping = CATEGORY_MAPPINGS.get(personality or "")
    if not mapping:
        return []
    seen: List[str] = []
    for target in mapping.values():
        if target not in seen:
            seen.append(target)
    return seen
