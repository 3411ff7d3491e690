"""
Health check endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_runtime
from app.runtime import EcobeeRuntime
from app.utils.auth import verify_api_key

router = APIRouter()


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    """
    Extended health check with service status.

    Returns:
        dict: {
            "ok": true,
            "timestamp": "2024-01-01T12:00:00.000000Z",
            "services": {"database": true, "auth": "authenticated", "devices": 2}
        }
    """
    try:
        await db.execute(text("SELECT 1"))
        db_ok = True
    except (SQLAlchemyError, OSError):
        db_ok = False

    return {
        "ok": db_ok,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "services": {
            "database": db_ok,
            "auth": runtime.controller.tokens.state.value,
            "devices": len(runtime.controller.devices),
        }
    }
