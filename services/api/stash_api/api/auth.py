from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from .. import db as db_mod
from ..services import users_service as svc
from ..utils.auth import current_username


router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    username: str
    password: str


class RegisterRequest(BaseModel):
    username: str
    name: str
    age: int
    theme: str = "light"
    spending_personality: str
    user_type: Optional[str] = None
    password: Optional[str] = None


class ThemeRequest(BaseModel):
    theme: str


class PersonalityRequest(BaseModel):
    spending_personality: str


@router.post("/login")
def auth_login(body: LoginRequest):
    try:
        with db_mod.get_connection() as conn:
            user = svc.login(conn, body.username, body.password)
    except PermissionError:
        raise HTTPException(status_code=401, detail="invalid_credentials")
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {"user": user}


@router.post("/register", status_code=201)
def auth_register(body: RegisterRequest):
    try:
        with db_mod.get_connection() as conn:
            user = svc.register(conn, body.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except FileExistsError:
        raise HTTPException(status_code=409, detail="user_exists")
    return {"user": user}


@router.get("/me")
def auth_me(request: Request):
    u = current_username(request)
    if not u:
        raise HTTPException(status_code=401, detail="not_authenticated")
    return auth_profile(u)


@router.get("/profile/{username}")
def auth_profile(username: str):
    try:
        with db_mod.get_connection() as conn:
            return {"user": svc.profile(conn, username)}
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")


@router.patch("/theme/{username}")
def auth_theme(username: str, body: ThemeRequest):
    try:
        with db_mod.get_connection() as conn:
            user = svc.set_theme(conn, username, body.theme)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {"theme": user["theme"]}


@router.patch("/personality/{username}")
def auth_personality(username: str, body: PersonalityRequest):
    try:
        with db_mod.get_connection() as conn:
            user = svc.set_personality(conn, username, body.spending_personality)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except KeyError:
        raise HTTPException(status_code=404, detail="user_not_found")
    return {"user": user}
