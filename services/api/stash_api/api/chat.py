from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from .. import chatbot as chatbot_mod
from .. import db as db_mod


router = APIRouter(prefix="/api/chat", tags=["chat"])


class ChatMessageRequest(BaseModel):
    message: str


@router.get("/{user_id}")
def chat_history(user_id: str, limit: int = Query(50, ge=1, le=500)):
    with db_mod.get_connection() as conn:
        return {"messages": chatbot_mod.chat_history(conn, user_id, limit)}


@router.post("/{user_id}/message")
def chat_message(user_id: str, body: ChatMessageRequest):
    try:
        with db_mod.get_connection() as conn:
            return chatbot_mod.send_chat_message(conn, user_id, body.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{user_id}")
def clear_chat(user_id: str):
    with db_mod.get_connection() as conn:
        return {"deleted": chatbot_mod.clear_chat_history(conn, user_id)}
