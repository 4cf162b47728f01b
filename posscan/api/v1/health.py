"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

from fastapi import APIRouter

from posscan.core.dependencies import get_decoder
from posscan.core.exceptions import AppException


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def check_decoder(self) -> str:
        """Check that the decode capability can be loaded."""
        try:
            get_decoder()
            return "healthy"
        except AppException:
            return "unavailable"

    def get_health(self) -> dict:
        """Get full health status."""
        decoder_status = self.check_decoder()

        overall = "healthy" if decoder_status == "healthy" else "degraded"

        return {
            "status": overall,
            "components": {
                "api": "healthy",
                "decoder": decoder_status
            }
        }


@router.get("")
async def health_check():
    """
    Health check endpoint.

    Returns system status including API and decoder.
    """
    controller = HealthController()
    return controller.get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
