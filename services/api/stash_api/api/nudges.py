from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from .. import db as db_mod
from .. import nudges as nudges_mod
from ..services import nudges_service as svc


router = APIRouter(prefix="/api/nudges", tags=["nudges"])


class NudgeResponseRequest(BaseModel):
    response: str


@router.get("/{user_id}")
def list_nudges(user_id: str, unread_only: bool = False, limit: int = Query(20, ge=1, le=200)):
    with db_mod.get_connection() as conn:
        return nudges_mod.list_nudges(conn, user_id, unread_only, limit)


@router.patch("/{user_id}/read-all")
def mark_all_read(user_id: str):
    with db_mod.get_connection() as conn:
        return {"updated": nudges_mod.mark_all_read(conn, user_id)}


@router.patch("/{nudge_id}/read")
def mark_read(nudge_id: str):
    try:
        with db_mod.get_connection() as conn:
            return svc.mark_read(conn, nudge_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="nudge_not_found")


@router.patch("/{nudge_id}/respond")
def respond(nudge_id: str, body: NudgeResponseRequest):
    try:
        with db_mod.get_connection() as conn:
            return svc.respond(conn, nudge_id, body.response)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeyError:
        raise HTTPException(status_code=404, detail="nudge_not_found")


@router.post("/{user_id}/generate")
def generate(user_id: str):
    try:
        with db_mod.get_connection() as conn:
            items = svc.generate_and_save(conn, user_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {"user_id": user_id, "count": len(items), "nudges": items}


@router.delete("/{nudge_id}")
def delete(nudge_id: str):
    try:
        with db_mod.get_connection() as conn:
            svc.delete(conn, nudge_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="nudge_not_found")
    return {"deleted": True}
