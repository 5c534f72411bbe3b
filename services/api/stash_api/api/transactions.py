from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from .. import db as db_mod
from ..repositories import transactions_repo
from ..services import transactions_service as svc
from ..utils.auth import current_username


router = APIRouter(prefix="/api/transactions", tags=["transactions"])


class TransactionCreateRequest(BaseModel):
    date: str
    merchant: str
    amount: float
    category: str
    payment_mode: str = "UPI"


class SimulateRequest(BaseModel):
    spending_personality: Optional[str] = None


@router.get("/latest/{persona}")
def latest_persona_transactions(persona: str, limit: int = Query(10, ge=1, le=500)):
    return svc.latest_for_persona(persona, limit)


@router.get("/{user_id}")
def list_transactions(user_id: str, page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=500)):
    with db_mod.get_connection() as conn:
        return transactions_repo.list_page(conn, user_id, page, limit)


@router.get("/{user_id}/recent")
def recent_transactions(user_id: str, limit: int = Query(10, ge=1, le=100)):
    try:
        with db_mod.get_connection() as conn:
            return {"transactions": svc.recent(conn, user_id, limit)}
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.get("/{user_id}/budget")
def budget_transactions(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            return svc.budget_transactions(conn, user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.post("/{user_id}", status_code=201)
def create_transaction(user_id: str, body: TransactionCreateRequest, request: Request):
    """Add a manual transaction, run spending alerts and regenerate insights."""
    # Enforce that caller is the same user (stateless header auth)
    u = current_username(request)
    if not u or u != user_id:
        raise HTTPException(status_code=401, detail="not_authenticated")
    try:
        with db_mod.get_connection() as conn:
            return svc.add(conn, user_id, body.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{user_id}/simulate", status_code=201)
def simulate_transactions(user_id: str, body: Optional[SimulateRequest] = None):
    try:
        with db_mod.get_connection() as conn:
            return svc.simulate(conn, user_id, body.spending_personality if body else None)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.get("/{user_id}/stats")
def transaction_stats(user_id: str, period: str = Query("month")):
    try:
        with db_mod.get_connection() as conn:
            return svc.stats(conn, user_id, period)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{user_id}/weekly")
def weekly_transactions(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            return {"days": svc.weekly(conn, user_id)}
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.delete("/{user_id}/manual")
def delete_manual_transactions(user_id: str):
    with db_mod.get_connection() as conn:
        return {"deleted": transactions_repo.delete_manual(conn, user_id)}


@router.delete("/{user_id}/{transaction_id}")
def delete_transaction(user_id: str, transaction_id: str):
    try:
        with db_mod.get_connection() as conn:
            svc.delete(conn, user_id, transaction_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="transaction_not_found")
    return {"deleted": True}
