"""
User-facing alerts (configuration and authorization problems).
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_runtime
from app.runtime import EcobeeRuntime
from app.utils.auth import verify_api_key

router = APIRouter()


@router.get("/alerts")
async def get_alerts(
    runtime: EcobeeRuntime = Depends(get_runtime),
    _: str = Depends(verify_api_key)
):
    return {"alerts": [a.to_dict() for a in runtime.alerts.list()]}
