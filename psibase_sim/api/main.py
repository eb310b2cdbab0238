"""
psibase_sim.api.main — FastAPI application entry point
=======================================================

Run with::

    uvicorn psibase_sim.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from psibase_sim.api.deps import get_engine  # noqa: E402
from psibase_sim.api.routes.transactions import router as transactions_router  # noqa: E402
from psibase_sim.database.engine import init_db  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — verify tables and seed tokens."""
    engine = get_engine()
    init_db(engine)
    logger.info("Psibase simulator API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Psibase simulator API shutting down")


app = FastAPI(
    title="Psibase Simulator API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(transactions_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
