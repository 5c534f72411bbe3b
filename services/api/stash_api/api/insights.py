from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from .. import db as db_mod
from ..services import insights_service as svc


router = APIRouter(prefix="/api/agentic/insights", tags=["insights"])


class InsightsGenerateRequest(BaseModel):
    transaction: Optional[Dict[str, Any]] = None


class InsightResponseRequest(BaseModel):
    response: str


@router.get("/{user_id}")
def list_insights(user_id: str, limit: int = Query(3, ge=1, le=50)):
    with db_mod.get_connection() as conn:
        return {"insights": svc.list_active(conn, user_id, limit)}


@router.get("/{user_id}/history")
def insights_history(user_id: str, limit: int = Query(50, ge=1, le=200)):
    with db_mod.get_connection() as conn:
        return {"insights": svc.history(conn, user_id, limit)}


@router.get("/{user_id}/behavior")
def behavior_summary(user_id: str):
    with db_mod.get_connection() as conn:
        return svc.behavior_summary(conn, user_id)


@router.post("/{user_id}/generate")
def insights_generate(user_id: str, body: Optional[InsightsGenerateRequest] = None):
    try:
        with db_mod.get_connection() as conn:
            items = svc.generate(conn, user_id, body.transaction if body else None)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {"user_id": user_id, "count": len(items), "insights": items}


@router.put("/{user_id}/{insight_id}/response")
def insight_response(user_id: str, insight_id: str, body: InsightResponseRequest):
    try:
        with db_mod.get_connection() as conn:
            return svc.respond(conn, user_id, insight_id, body.response)
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid_response")
    except KeyError:
        raise HTTPException(status_code=404, detail="insight_not_found")


@router.delete("/{user_id}/{insight_id}")
def deactivate_insight(user_id: str, insight_id: str):
    try:
        with db_mod.get_connection() as conn:
            svc.deactivate(conn, user_id, insight_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="insight_not_found")
    return {"deactivated": True}
