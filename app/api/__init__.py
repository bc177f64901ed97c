"""
API module - HTTP endpoints for the Telegram webhook, admin broadcast and health.
"""
from fastapi import FastAPI
from fastapi.responses import JSONResponse

import database
from app.api import admin_broadcast, telegram_webhook

app = FastAPI()
app.include_router(telegram_webhook.router)
app.include_router(admin_broadcast.router)


@app.get("/health")
async def health():
    """Does not touch the database, only reads the readiness flag."""
    db_ready = database.DB_READY
    return JSONResponse({"status": "ok" if db_ready else "degraded", "db_ready": db_ready})
