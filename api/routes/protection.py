"""
Bot protection status routes.
"""

from fastapi import APIRouter, HTTPException

from ..services import get_services

router = APIRouter()


@router.get("/protection/status")
async def protection_status():
    """Enabled layers, thresholds and tracked-client count."""
    services = get_services()
    if services.gate is None:
        raise HTTPException(status_code=503, detail="Protection gate not initialized")
    return services.gate.status()
