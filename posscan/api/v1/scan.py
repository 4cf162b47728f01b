"""
==============================================================================
Scan Endpoints
==============================================================================

Code validation and still image scanning.

==============================================================================
"""

from fastapi import APIRouter, Depends

from posscan.core import exceptions
from posscan.core.dependencies import ScannerFactory, get_scanner_factory
from posscan.scanner import JANCodeValidator
from posscan.schemas import (
    CodeCheckRequest,
    CodeCheckResponse,
    ImageScanRequest,
    ImageScanResponse,
)


router = APIRouter(prefix="/scan", tags=["Scan"])


class ScanController:
    """Controller for scan operations."""

    def __init__(self, factory: ScannerFactory = None):
        self._factory = factory
        self._validator = JANCodeValidator()

    def check_code(self, code: str) -> CodeCheckResponse:
        """Validate a typed code."""
        outcome = self._validator.validate(code)
        return CodeCheckResponse(
            code=code.strip(),
            status=outcome.status,
            valid=outcome.is_valid,
            message=self._validator.error_message(outcome)
        )

    async def scan_image(self, request: ImageScanRequest) -> ImageScanResponse:
        """Decode a base64 still image."""
        data = request.image_bytes()
        if data is None:
            raise exceptions.invalid_image("payload is not valid base64")

        result = await self._factory.create_image_scanner().scan_bytes(data)

        if not result.found:
            return ImageScanResponse(found=False, message="No barcode found")

        return ImageScanResponse(
            found=True,
            code=result.text,
            status=result.outcome.status,
            valid=result.outcome.is_valid,
            message=self._validator.error_message(result.outcome)
        )


@router.post("/validate", response_model=CodeCheckResponse)
async def validate_code(request: CodeCheckRequest):
    """Check the format and check digit of a JAN code."""
    controller = ScanController()
    return controller.check_code(request.code)


@router.post("/image", response_model=ImageScanResponse)
async def scan_image(
    request: ImageScanRequest,
    factory: ScannerFactory = Depends(get_scanner_factory)
):
    """Decode the first barcode of a still image."""
    controller = ScanController(factory)
    return await controller.scan_image(request)
