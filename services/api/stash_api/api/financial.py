from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from .. import db as db_mod
from .. import financial as financial_mod
from .. import nudges as nudges_mod
from ..repositories import users_repo
from ..services import budget_service, users_service


router = APIRouter(prefix="/api/financial", tags=["financial"])


class SalaryRequest(BaseModel):
    salary: Any = None


class CategoryCapRequest(BaseModel):
    budget_cap: float


@router.get("/metrics/{user_id}")
def metrics(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            return financial_mod.financial_metrics(conn, user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.get("/budget/{user_id}")
def budget_overview(user_id: str):
    with db_mod.get_connection() as conn:
        user = users_repo.get_user(conn, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="user_not_found")
        return {"budget_overview": financial_mod.budget_overview(conn, user_id, user["spending_personality"])}


@router.get("/patterns/{user_id}")
def patterns(user_id: str, days: int = Query(30, ge=1, le=365)):
    with db_mod.get_connection() as conn:
        return {"patterns": nudges_mod.analyze_spending_patterns(conn, user_id, days=days)}


@router.get("/weekly/{user_id}")
def weekly(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            return {"days": financial_mod.weekly_spending(conn, user_id)}
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.get("/insights/{user_id}")
def insights(user_id: str):
    """Dashboard cards plus the current nudge triggers (not stored)."""
    try:
        with db_mod.get_connection() as conn:
            return {
                "cards": financial_mod.financial_insights(conn, user_id),
                "triggers": nudges_mod.generate_nudges(conn, user_id),
                "savings_detected": financial_mod.detect_savings_transactions(conn, user_id),
            }
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.patch("/salary/{user_id}")
def update_salary(user_id: str, body: SalaryRequest):
    try:
        with db_mod.get_connection() as conn:
            return users_service.set_salary(conn, user_id, body.salary)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/budget/{user_id}/category/{category}")
def update_category_cap(user_id: str, category: str, body: CategoryCapRequest):
    try:
        with db_mod.get_connection() as conn:
            return budget_service.set_cap(conn, user_id, category, body.budget_cap)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
