from __future__ import annotations

from fastapi import APIRouter, Query

from .. import analytics as analytics_mod
from .. import db as db_mod
from .. import forecast as forecast_mod


router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/{user_id}/trends")
def trends(user_id: str, months: int = Query(3, ge=1, le=24)):
    with db_mod.get_connection() as conn:
        return {"trends": analytics_mod.spending_trends(conn, user_id, months)}


@router.get("/{user_id}/health-score")
def health_score(user_id: str):
    with db_mod.get_connection() as conn:
        return analytics_mod.financial_health_score(conn, user_id)


@router.get("/{user_id}/mood-correlation")
def mood_correlation(user_id: str):
    with db_mod.get_connection() as conn:
        return {"correlations": analytics_mod.mood_correlation(conn, user_id)}


@router.get("/{user_id}/predictions")
def predictions(user_id: str):
    with db_mod.get_connection() as conn:
        return {"predictions": analytics_mod.predictive_patterns(conn, user_id)}


@router.get("/{user_id}/forecast")
def category_forecast(user_id: str, months_history: int = Query(6, ge=2, le=24),
                      top_k: int = Query(8, ge=1, le=50)):
    with db_mod.get_connection() as conn:
        return forecast_mod.forecast_categories(conn, user_id, months_history, top_k)


@router.get("/{user_id}/report")
def report(user_id: str):
    with db_mod.get_connection() as conn:
        return analytics_mod.analytics_report(conn, user_id)


@router.get("/{user_id}/category-insights")
def category_insights(user_id: str):
    with db_mod.get_connection() as conn:
        return {"categories": analytics_mod.category_insights(conn, user_id)}
