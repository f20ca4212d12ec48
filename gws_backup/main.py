"""Gmail Workspace Backup admin API - FastAPI Application."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from gws_backup.config import settings
from gws_backup.database import adapter, init_db
from gws_backup.routes import auth, backup, domains, emails, exports, users
from gws_backup import cache

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("GWS backup API starting up (%s)", adapter.describe())
    init_db()
    logger.info("Redis available: %s", cache.ping())
    yield
    logger.info("GWS backup API shut down")


app = FastAPI(
    title="Gmail Workspace Backup",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, domains, users, emails, exports, backup):
    app.include_router(module.router, prefix="/api")


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ── Health ────────────────────────────────────────────────────────────

@app.get("/health")
def health():
    return {"status": "OK", "timestamp": datetime.utcnow().isoformat()}
