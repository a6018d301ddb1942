"""
marketplace/routers/system.py
Operational endpoints: health probe and the admin view of recent requests.
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from marketplace.core.security import require_admin
from marketplace.database import get_db

logger = logging.getLogger("marketplace.system")

router = APIRouter(tags=["System"])


@router.get("/health")
def health(db: Session = Depends(get_db)):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check failed: %s", e)
        return JSONResponse(
            status_code=500,
            content={"status": "unhealthy", "timestamp": timestamp, "error": "Database unavailable"},
        )
    return {"status": "healthy", "database": "connected", "timestamp": timestamp}


@router.get("/logs/recent", dependencies=[Depends(require_admin)])
def recent_logs(request: Request):
    """Last N requests, oldest first. POST bodies are never stored."""
    entries = request.app.state.request_log.recent()
    return {"logs": entries, "count": len(entries)}
