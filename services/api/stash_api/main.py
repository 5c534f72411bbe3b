from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from . import db as db_mod
from . import notifications
from .api import analytics as analytics_router
from .api import auth as auth_router
from .api import budgets as budgets_router
from .api import chat as chat_router
from .api import chatbot as chatbot_router
from .api import financial as financial_router
from .api import insights as insights_router
from .api import nudges as nudges_router
from .api import personas as personas_router
from .api import phase4 as phase4_router
from .api import salary as salary_router
from .api import system as system_router
from .api import transactions as transactions_router
from .api import ws as ws_router
from .config import get_cors_origin, is_llm_enabled, is_realtime_enabled

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

PERIODIC_INTERVAL_SECONDS = 3600

app = FastAPI(title="Stash Coach API", version="0.1.0")

_periodic_task = None


def _run_periodic_jobs() -> None:
    with db_mod.get_connection() as conn:
        sent = notifications.send_periodic_insights(conn)
        reminded = notifications.send_goal_reminders(conn)
    logger.info("Periodic notifications: %d insights, %d goal reminders", sent, reminded)


async def _periodic_loop() -> None:
    while True:
        await asyncio.sleep(PERIODIC_INTERVAL_SECONDS)
        try:
            await asyncio.to_thread(_run_periodic_jobs)
        except Exception:
            logger.exception("Periodic notification run failed")


@app.on_event("startup")
async def on_startup():
    global _periodic_task
    db_mod.init_db()
    logger.info("Real-time notifications: %s", "enabled" if is_realtime_enabled() else "disabled")
    logger.info("LLM integration: %s", "enabled" if is_llm_enabled() else "disabled")
    if is_realtime_enabled():
        _periodic_task = asyncio.create_task(_periodic_loop())


@app.on_event("shutdown")
async def on_shutdown():
    if _periodic_task is not None:
        _periodic_task.cancel()


# CORS for the web frontend

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_cors_origin()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info("%s %s -> %d (%.1f ms)", request.method, request.url.path,
                response.status_code, (time.perf_counter() - start) * 1000)
    return response


app.include_router(auth_router.router)
app.include_router(transactions_router.router)
app.include_router(budgets_router.router)
app.include_router(salary_router.router)
app.include_router(nudges_router.router)
app.include_router(insights_router.router)
app.include_router(chatbot_router.router)
app.include_router(chat_router.router)
app.include_router(analytics_router.router)
app.include_router(financial_router.router)
app.include_router(personas_router.router)
app.include_router(phase4_router.router)
app.include_router(system_router.router)
app.include_router(ws_router.router)


@app.get("/", tags=["meta"])
def root():
    return {"name": "Stash Coach API", "status": "ok"}


@app.get("/api", tags=["meta"])
def api_index():
    return {
        "name": "Stash Coach API",
        "version": app.version,
        "endpoints": {
            "auth": "/api/auth",
            "transactions": "/api/transactions",
            "budget": "/api/budget",
            "salary": "/api/salary",
            "nudges": "/api/nudges",
            "insights": "/api/agentic/insights",
            "chatbot": "/api/agentic/chatbot",
            "chat": "/api/chat",
            "analytics": "/api/analytics",
            "financial": "/api/financial",
            "personas": "/api/personas",
            "phase4": "/api/phase4",
            "system": "/api/system",
            "notifications": "/ws/notifications",
        },
    }


@app.get("/health", tags=["meta"])
def health():
    # Basic DB connectivity check
    try:
        with db_mod.get_connection() as conn:
            conn.execute("SELECT 1").fetchone()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"db_error: {e}")
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "realtime": is_realtime_enabled(),
        "connected_clients": notifications.hub.connected_count(),
    }
