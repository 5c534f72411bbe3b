from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from .. import db as db_mod
from ..services import users_service as svc


router = APIRouter(prefix="/api/salary", tags=["salary"])


class SalaryRequest(BaseModel):
    # validated in the service so strings get a 400 rather than a coerced value
    salary: Any = None


@router.get("/{user_id}")
def get_salary(user_id: str):
    with db_mod.get_connection() as conn:
        return svc.get_salary(conn, user_id)


@router.put("/{user_id}")
def put_salary(user_id: str, body: SalaryRequest):
    try:
        with db_mod.get_connection() as conn:
            return svc.set_salary(conn, user_id, body.salary)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{user_id}")
def clear_salary(user_id: str):
    with db_mod.get_connection() as conn:
        return {"deleted": svc.clear_salary(conn, user_id)}
