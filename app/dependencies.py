"""
FastAPI dependency injection for the runtime and its collaborators.
"""

from fastapi import Depends, HTTPException, Request, status

from app.devices.ecobee_controller import EcobeeController
from app.runtime import EcobeeRuntime


def get_runtime(request: Request) -> EcobeeRuntime:
    """
    Dependency that provides the runtime created at startup.

    Raises:
        HTTPException: 503 if the application has not finished starting
    """
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Runtime not started"
        )
    return runtime


def get_controller(runtime: EcobeeRuntime = Depends(get_runtime)) -> EcobeeController:
    return runtime.controller
