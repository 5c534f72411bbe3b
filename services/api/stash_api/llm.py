from __future__ import annotations

import logging
from typing import Dict, List, Optional

from openai import OpenAI

from .config import get_openai_api_key, get_openai_model, is_llm_enabled

logger = logging.getLogger(__name__)

PROMPT_FALLBACK = (
    "I'm here to help with your financial questions! "
    "What would you like to know about your spending or savings?"
)

COACH_STYLE = (
    "Keep responses conversational and short (2-3 sentences max). "
    "Be proactive and encouraging, not analytical. "
    "Ask a follow-up question to keep the conversation going. "
    "Use Indian context (₹, UPI, Indian banks). "
    "Focus on one specific actionable tip at a time."
)

SYSTEM = "You are Stash AI, a mindful money coach and financial advisor. " + COACH_STYLE


def _client() -> OpenAI:
    if not is_llm_enabled():
        raise RuntimeError("llm_disabled_in_config")
    key = get_openai_api_key()
    if not key:
        raise RuntimeError("missing_openai_api_key_in_config_or_env")
    return OpenAI(api_key=key)


def llm_available() -> bool:
    return is_llm_enabled() and bool(get_openai_api_key())


def _complete(messages: List[Dict]) -> Optional[str]:
    resp = _client().chat.completions.create(
        model=get_openai_model(),
        messages=messages,
        temperature=0.8,
        max_tokens=150,
        presence_penalty=0.1,
        frequency_penalty=0.1,
    )
    return resp.choices[0].message.content


def _top_categories(transactions: List[Dict], n: int = 3) -> List[str]:
    totals: Dict[str, float] = {}
    for t in transactions:
        cat = t.get("category") or "Other"
        totals[cat] = totals.get(cat, 0.0) + float(t.get("amount") or 0)
    return [c for c, _ in sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:n]]


def build_system_prompt(context: Dict) -> str:
    txs = context.get("recent_transactions") or []
    total = sum(float(t.get("amount") or 0) for t in txs)
    avg = total / len(txs) if txs else 0.0
    income = context.get("monthly_income")
    goals = ", ".join(context.get("financial_goals") or []) or "Not specified"
    return (
        f"You are Stash AI, a mindful money coach and financial advisor. You're speaking with "
        f"{context['name']}, a {context['age']}-year-old with a {context['spending_personality']} "
        "spending personality.\n\n"
        f"Monthly income: {f'₹{income:,.0f}' if income else 'Not specified'}\n"
        f"Financial goals: {goals}\n"
        f"Total recent spending: ₹{total:,.0f}\n"
        f"Average transaction: ₹{avg:,.0f}\n"
        f"Top spending categories: {', '.join(_top_categories(txs))}\n\n"
        + COACH_STYLE + " Always end with a question."
    )


def fallback_chat_response(message: str, context: Dict) -> str:
    name = context.get("name") or "there"
    personality = context.get("spending_personality") or "Medium Spender"
    text = message.lower()
    if "save" in text or "saving" in text:
        return (
            f"Hi {name}! I can see you're interested in saving money. As a {personality}, here are some "
            "personalized tips:\n\n"
            "💡 Quick Savings Tips:\n"
            "• Set up automatic transfers to savings account\n"
            "• Track your daily spending with our app\n"
            "• Look for areas where you can reduce expenses\n\n"
            "Would you like me to help you set up a savings goal or analyze your spending patterns?"
        )
    if "spend" in text or "expense" in text:
        if personality == "Heavy Spender":
            note = "I notice you have several high-value transactions. Consider setting daily spending limits."
        elif personality == "Max Saver":
            note = "Great job maintaining low spending! You're on track with your savings goals."
        else:
            note = "Your spending is well-balanced. Keep up the good work!"
        return (
            f"Hey {name}! Let me analyze your spending patterns as a {personality}:\n\n"
            "📊 I can help you understand your spending patterns and identify areas for improvement.\n\n"
            f"🎯 {note}\n\n"
            "Would you like me to help you create a budget or identify areas for improvement?"
        )
    return (
        f"Hi {name}! I'm your Stash AI financial coach. I can help you analyze your spending, "
        "find savings, set and track goals, and answer budgeting questions.\n\n"
        f"I can see you're a {personality}. How can I help you today?"
    )


def generate_chat_response(message: str, context: Dict) -> str:
    """Coach reply for a chat message.

    `context` carries name, age, spending_personality, recent_transactions and
    chat_history (oldest first, dicts with `message`/`is_user`). Falls back to a
    canned reply when the LLM is not configured or the call fails.
    """
    if not llm_available():
        return fallback_chat_response(message, context)
    history = [
        {"role": "user" if m.get("is_user") else "assistant", "content": m["message"]}
        for m in (context.get("chat_history") or [])[-10:]
    ]
    messages = [{"role": "system", "content": build_system_prompt(context)}] + history + [
        {"role": "user", "content": f'User message: "{message}"\n'
                                    "Please provide a personalized response based on the user's "
                                    "financial profile and recent transactions."},
    ]
    try:
        return _complete(messages) or fallback_chat_response(message, context)
    except Exception:
        logger.exception("Chat completion failed")
        return fallback_chat_response(message, context)


def generate_response_from_prompt(prompt: str) -> str:
    if not llm_available():
        return PROMPT_FALLBACK
    try:
        return _complete([
            {"role": "system", "content": SYSTEM},
            {"role": "user", "content": prompt},
        ]) or PROMPT_FALLBACK
    except Exception:
        logger.exception("Prompt completion failed")
        return PROMPT_FALLBACK
