from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from .. import chatbot as chatbot_mod
from .. import db as db_mod
from ..repositories import users_repo


router = APIRouter(prefix="/api/agentic/chatbot", tags=["chatbot"])


class InsightContextRequest(BaseModel):
    insight_id: str


class NotificationContextRequest(BaseModel):
    notification_id: str


class TransactionContextRequest(BaseModel):
    transaction: Dict[str, Any]


class ChatRequest(BaseModel):
    message: str
    session_id: Optional[str] = None


def _user(conn, user_id: str) -> Dict:
    user = users_repo.get_user(conn, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="user_not_found")
    return user


def _summary(ctx: Dict) -> Dict:
    return {
        "session_id": ctx["session_id"],
        "suggested_question": ctx.get("suggested_question"),
        "context": ctx["context"],
    }


@router.post("/{user_id}/context/insight")
def context_from_insight(user_id: str, body: InsightContextRequest):
    with db_mod.get_connection() as conn:
        user = _user(conn, user_id)
        ctx = chatbot_mod.create_context_from_insight(
            conn, user_id, body.insight_id, user.get("user_type"), user.get("spending_personality"))
    if ctx is None:
        raise HTTPException(status_code=404, detail="insight_not_found")
    return _summary(ctx)


@router.post("/{user_id}/context/notification")
def context_from_notification(user_id: str, body: NotificationContextRequest):
    with db_mod.get_connection() as conn:
        user = _user(conn, user_id)
        ctx = chatbot_mod.create_context_from_notification(
            conn, user_id, body.notification_id, user.get("user_type"), user.get("spending_personality"))
    if ctx is None:
        raise HTTPException(status_code=404, detail="notification_not_found")
    return _summary(ctx)


@router.post("/{user_id}/context/transaction")
def context_for_transaction(user_id: str, body: TransactionContextRequest):
    with db_mod.get_connection() as conn:
        user = _user(conn, user_id)
        ctx = chatbot_mod.create_context_for_transaction(
            conn, user_id, body.transaction, user.get("user_type"), user.get("spending_personality"))
    return _summary(ctx)


@router.post("/{user_id}/chat")
def chat(user_id: str, body: ChatRequest):
    try:
        with db_mod.get_connection() as conn:
            return chatbot_mod.chat(conn, user_id, body.session_id, body.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{user_id}/chat/{session_id}/history")
def chat_history(user_id: str, session_id: str):
    with db_mod.get_connection() as conn:
        return {"messages": chatbot_mod.conversation_history(conn, user_id, session_id)}


@router.get("/{user_id}/context/active")
def active_context(user_id: str, session_id: Optional[str] = None):
    with db_mod.get_connection() as conn:
        ctx = chatbot_mod.get_active_context(conn, user_id, session_id)
    if ctx is None:
        raise HTTPException(status_code=404, detail="no_active_context")
    return ctx


@router.delete("/{user_id}/context/{session_id}")
def deactivate_context(user_id: str, session_id: str):
    with db_mod.get_connection() as conn:
        if not chatbot_mod.deactivate_context(conn, user_id, session_id):
            raise HTTPException(status_code=404, detail="context_not_found")
    return {"deactivated": True}


@router.get("/{user_id}/contexts")
def list_contexts(user_id: str, limit: int = Query(10, ge=1, le=100)):
    with db_mod.get_connection() as conn:
        return {"contexts": chatbot_mod.list_contexts(conn, user_id, limit)}
