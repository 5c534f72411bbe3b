from __future__ import annotations

from typing import Dict, Optional


PERSONALITIES = ("Heavy Spender", "Medium Spender", "Max Saver")

PERSONA_BUDGETS: Dict[str, Dict[str, float]] = {
    "Heavy Spender": {
        "Entertainment": 12000,
        "Food & Dining": 10000,
        "Groceries": 12000,
        "Shopping": 15000,
        "Transport": 4000,
    },
    "Medium Spender": {
        "Food & Dining": 6000,
        "Groceries": 7000,
        "Savings": 20000,
        "Shopping": 12000,
        "Transport": 5000,
    },
    "Max Saver": {
        "Transport": 5000,
        "Groceries": 6000,
        "Travel": 4000,
        "Utilities": 7000,
        "Savings": 25000,
    },
}

DEFAULT_EMI = {
    "Heavy Spender": 45000,
    "Medium Spender": 20000,
    "Max Saver": 12000,
}


def is_valid_personality(personality: Optional[str]) -> bool:
    return personality in PERSONA_BUDGETS


def budget_for_persona(personality: Optional[str]) -> Optional[Dict[str, float]]:
    caps = PERSONA_BUDGETS.get(personality or "")
    return dict(caps) if caps is not None else None


def default_emi(personality: Optional[str]) -> float:
    return float(DEFAULT_EMI.get(personality or "", 20000))


def merge_caps(personality: Optional[str], custom: Dict[str, float]) -> Optional[Dict[str, float]]:
    """Persona default caps overlaid with the user's custom caps.

    Returns None when the personality has no default budget table.
    """
    base = budget_for_persona(personality)
    if base is None:
        return None
    for category, cap in custom.items():
        base[category] = float(cap)
    return base
