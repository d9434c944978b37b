"""FastAPI app: case status workflow over HTTP."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from case_workflow import ENGINE_VERSION, __version__
from case_workflow.audit_context import set_audit_context
from case_workflow.cases_api import cases_router
from case_workflow.config import get_config
from case_workflow.db import get_engine, init_db
from case_workflow.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    setup_logging(config.get("app", {}).get("log_level", "INFO"))
    db_url = config.get("database", {}).get("url", "sqlite:///./data/cases.db")
    echo = config.get("database", {}).get("echo", False)
    init_db(db_url, echo=echo)
    logger.info("Case workflow API started (engine_version=%s)", ENGINE_VERSION)
    yield


app = FastAPI(title="Case Workflow API", version=__version__, lifespan=lifespan)


class AuditContextMiddleware(BaseHTTPMiddleware):
    """Set correlation_id per request; echo X-Correlation-ID in response.
    Actor starts as anonymous; require_api_key binds the key's actor on mutating routes.
    """

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        set_audit_context(correlation_id, "anonymous")
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


app.add_middleware(AuditContextMiddleware)

app.include_router(cases_router)


@app.get("/health")
def health() -> dict[str, Any]:
    """Liveness and version; db_status indicates DB connectivity."""
    db_status = "unknown"
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "error"
    return {
        "status": "ok",
        "version": __version__,
        "engine_version": ENGINE_VERSION,
        "db_status": db_status,
    }
