"""
==============================================================================
Camera Endpoints
==============================================================================

Diagnostics for the capture devices visible to the server.

==============================================================================
"""

import asyncio

from fastapi import APIRouter, Depends

from posscan.core.dependencies import get_video_capture
from posscan.scanner import VideoCapture
from posscan.schemas import CameraDeviceListResponse, CameraDeviceResponse


router = APIRouter(prefix="/camera", tags=["Camera"])


@router.get("/devices", response_model=CameraDeviceListResponse)
async def list_devices(capture: VideoCapture = Depends(get_video_capture)):
    """Enumerate cameras with their facing hints."""
    devices = await asyncio.get_running_loop().run_in_executor(
        None, capture.enumerate_devices
    )

    return CameraDeviceListResponse(
        total=len(devices),
        devices=[
            CameraDeviceResponse(
                device_id=d.device_id,
                label=d.label,
                facing=d.facing
            )
            for d in devices
        ]
    )
