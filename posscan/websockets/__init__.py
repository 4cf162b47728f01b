"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for barcode scanning.

Handlers:
---------
- scanner: Live camera scanning session with JAN code validation

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
