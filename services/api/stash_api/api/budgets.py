from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from .. import db as db_mod
from ..services import budget_service as svc


router = APIRouter(prefix="/api/budget", tags=["budgets"])


class BudgetCapRequest(BaseModel):
    budget_cap: float


@router.get("/{user_id}")
def get_budget(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            return svc.budget_caps(conn, user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.put("/{user_id}/{category}")
def put_budget_cap(user_id: str, category: str, body: BudgetCapRequest):
    try:
        with db_mod.get_connection() as conn:
            return svc.set_cap(conn, user_id, category, body.budget_cap)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.delete("/{user_id}")
def reset_budget(user_id: str):
    with db_mod.get_connection() as conn:
        return {"deleted": svc.reset_caps(conn, user_id)}
