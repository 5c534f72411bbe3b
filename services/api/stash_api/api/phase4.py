from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException

from .. import advanced as advanced_mod
from .. import db as db_mod


router = APIRouter(prefix="/api/phase4", tags=["phase4"])


def _stamp() -> str:
    return datetime.now().isoformat(timespec="seconds")


@router.get("/{user_id}/budget-optimization")
def budget_optimization(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            optimizations = advanced_mod.budget_optimization(conn, user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {
        "user_id": user_id,
        "optimizations": optimizations,
        "generated_at": _stamp(),
        "total_potential_savings": advanced_mod.total_potential_savings(optimizations),
    }


@router.get("/{user_id}/financial-goals")
def financial_goals(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            goals = advanced_mod.financial_goals(conn, user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {
        "user_id": user_id,
        "goals": goals,
        "generated_at": _stamp(),
        "total_goals": len(goals),
        "high_priority_goals": advanced_mod.high_priority_count(goals),
    }


@router.get("/{user_id}/personalized-insights")
def personalized_insights(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            insights = advanced_mod.personalized_insights(conn, user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {
        "user_id": user_id,
        "insights": insights,
        "generated_at": _stamp(),
        "total_insights": len(insights),
        "average_confidence": advanced_mod.average_confidence(insights),
    }


@router.get("/{user_id}/financial-education")
def financial_education(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            education = advanced_mod.financial_education(conn, user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {
        "user_id": user_id,
        "education": education,
        "generated_at": _stamp(),
        "total_topics": len(education),
        "average_relevance": advanced_mod.average_relevance(education),
    }


@router.get("/{user_id}/comprehensive-report")
def comprehensive_report(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            return advanced_mod.comprehensive_report(conn, user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
