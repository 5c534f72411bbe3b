from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..notifications import hub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket):
    await hub.connect(websocket)
    user_id = None
    try:
        while True:
            msg = await websocket.receive_json()
            event = msg.get("event")
            if event == "authenticate" and msg.get("user_id"):
                user_id = str(msg["user_id"])
                await hub.authenticate(user_id, websocket)
            elif event == "acknowledge":
                hub.acknowledge(user_id, str(msg.get("notification_id")))
            else:
                logger.debug("Ignoring socket event %r", event)
                await websocket.send_json({"event": "error", "detail": "unknown_event"})
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(websocket)
