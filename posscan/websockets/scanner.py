"""
==============================================================================
Scanner WebSocket Module
==============================================================================

Live barcode scanning session over a WebSocket connection.

Protocol:
---------
1. Client connects; the server negotiates a camera
2. Server sends ``{"type": "ready", "strategy": ...}`` or an error and closes
3. Server pushes ``{"type": "scan", "code": ...}`` for each accepted code
   and ``{"type": "error", "code": ..., "message": ...}`` for rejected ones
4. Client sends ``{"type": "stop"}`` (or disconnects) to end the session

==============================================================================
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from posscan.core.dependencies import ScannerFactory, get_scanner_factory
from posscan.core.exceptions import (
    CAMERA_UNAVAILABLE_MESSAGE,
    INVALID_CHECKSUM_MESSAGE,
    INVALID_FORMAT_MESSAGE,
)


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


ERROR_CODES = {
    INVALID_FORMAT_MESSAGE: "INVALID_FORMAT",
    INVALID_CHECKSUM_MESSAGE: "INVALID_CHECKSUM",
    CAMERA_UNAVAILABLE_MESSAGE: "CAMERA_UNAVAILABLE",
}


class ScannerWebSocketHandler:
    """
    Handler for one live scanning connection.

    Manages the lifecycle of a scanning session including:
    - Camera negotiation
    - Forwarding scan and validation events
    - Guaranteed camera release on every exit path
    """

    def __init__(self, websocket: WebSocket, factory: ScannerFactory):
        self._websocket = websocket
        self._events: asyncio.Queue = asyncio.Queue()
        self._sampler = factory.create_sampler(
            on_scan=self._queue_scan,
            on_error=self._queue_error
        )

    def _queue_scan(self, code: str) -> None:
        self._events.put_nowait({"type": "scan", "code": code})

    def _queue_error(self, message: str) -> None:
        self._events.put_nowait({
            "type": "error",
            "code": ERROR_CODES.get(message, "SCAN_ERROR"),
            "message": message
        })

    async def _forward_events(self) -> None:
        """Send queued events until cancelled."""
        while True:
            event = await self._events.get()
            await self._websocket.send_json(event)

    async def _flush_events(self) -> None:
        while not self._events.empty():
            await self._websocket.send_json(self._events.get_nowait())

    async def _close(self) -> None:
        try:
            await self._websocket.close()
        except RuntimeError:
            # Already closed by the client
            pass

    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info("📱 Scanner WebSocket connected")

        if not await self._sampler.start():
            await self._flush_events()
            await self._close()
            logger.info("❌ Scanner WebSocket closed: camera unavailable")
            return

        await self._websocket.send_json({
            "type": "ready",
            "strategy": self._sampler.camera.strategy
        })

        sender = asyncio.create_task(self._forward_events())

        try:
            while True:
                data = await self._websocket.receive_json()

                if data.get("type") == "stop":
                    logger.info("🛑 Client requested stop")
                    break

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
        finally:
            self._sampler.stop()
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Event sender ended with: {e}")
            await self._close()
            logger.info("✅ Scanner WebSocket closed")


@router.websocket("/ws/scan")
async def websocket_scan(
    websocket: WebSocket,
    factory: ScannerFactory = Depends(get_scanner_factory)
):
    """Live barcode scanning via WebSocket."""
    handler = ScannerWebSocketHandler(websocket, factory)
    await handler.run()
