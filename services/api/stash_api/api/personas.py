from __future__ import annotations

import re

from fastapi import APIRouter, HTTPException

from .. import personas as personas_mod


router = APIRouter(prefix="/api/personas", tags=["personas"])

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@router.get("/types")
def persona_types():
    return {"persona_types": personas_mod.describe_types()}


@router.get("/{user_type}/transactions/{current_date}")
def persona_transactions(user_type: str, current_date: str):
    if not _DATE_RE.match(current_date):
        raise HTTPException(status_code=400, detail="invalid_date_format")
    try:
        rows = personas_mod.transactions_until(user_type.lower(), current_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "transactions": rows,
        "user_type": user_type.lower(),
        "current_date": current_date,
        "total_transactions": len(rows),
        "total_amount": sum(float(r["amount"]) for r in rows),
    }
