"""
Device API endpoints and the device WebSocket transport.
Supports SSE for real-time frontend updates.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from starlette.websockets import WebSocketState

from ..discovery import Event, EventType, WebSocketHandle
from ..service import PairingService
from .dependencies import get_service

logger = logging.getLogger(__name__)
router = APIRouter()

# Events forwarded to SSE clients
SSE_EVENT_TYPES = (
    EventType.DEVICE_REGISTERED,
    EventType.DEVICE_REPLACED,
    EventType.DEVICE_DISCONNECTED,
    EventType.DEVICE_ERROR,
    EventType.SETTINGS_CHANGED,
    EventType.ALERT,
)


class SendRequest(BaseModel):
    message: Dict[str, Any]


class KickRequest(BaseModel):
    message: Optional[str] = None


@router.get("/devices")
async def list_devices(service: PairingService = Depends(get_service)):
    """List devices that completed the HELO handshake."""
    registry = service.registry
    return {
        "devices": registry.get_all_devices(),
        "total": registry.connection_count,
    }


@router.post("/devices/broadcast")
async def broadcast(request: SendRequest, service: PairingService = Depends(get_service)):
    """Send a message to every registered device."""
    results = await service.broadcast_to_all(request.message)
    return {
        "notified": sum(1 for ok in results.values() if ok),
        "total_registered": len(results),
        "results": results,
    }


@router.post("/devices/{device_id}/send")
async def send_to_device(device_id: str, request: SendRequest, service: PairingService = Depends(get_service)):
    """Send a message to a single device."""
    if not service.registry.is_registered(device_id):
        raise HTTPException(status_code=404, detail=f"Device {device_id} not connected")

    sent = await service.route_to_device(device_id, request.message)
    return {"device_id": device_id, "sent": sent}


@router.post("/devices/{device_id}/kick")
async def kick_device(
    device_id: str,
    request: Optional[KickRequest] = None,
    service: PairingService = Depends(get_service)
):
    """Ask a device to disconnect."""
    if not service.registry.is_registered(device_id):
        raise HTTPException(status_code=404, detail=f"Device {device_id} not connected")

    sent = await service.registry.kick(device_id, request.message if request else None)
    return {"device_id": device_id, "kicked": sent}


@router.get("/events")
async def events_stream(service: PairingService = Depends(get_service)):
    """
    Server-Sent Events endpoint for device and alert updates.

    Events:
    - device_registered / device_replaced: a device completed HELO
    - device_disconnected / device_error: a registered device went away
    - settings_changed: settings were pushed to devices
    - alert: discovery warnings and errors meant for the user
    """
    bus = service.event_bus
    queue: asyncio.Queue = asyncio.Queue()

    def _forward(event: Event):
        queue.put_nowait(json.dumps(event.to_dict()))

    async def event_generator():
        for event_type in SSE_EVENT_TYPES:
            bus.subscribe(event_type, _forward)
        try:
            yield f"data: {json.dumps({'type': 'connected', 'data': {'message': 'SSE connected'}})}\n\n"

            while True:
                try:
                    event_data = await asyncio.wait_for(queue.get(), timeout=30.0)
                    yield f"data: {event_data}\n\n"
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
        finally:
            for event_type in SSE_EVENT_TYPES:
                bus.unsubscribe(event_type, _forward)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }
    )


@router.websocket("/ws")
async def device_websocket(websocket: WebSocket):
    """
    WebSocket endpoint for devices.

    Devices identify themselves with a HELO message; until then they are
    not routable. This endpoint owns the socket and reports its end to the
    registry exactly once.
    """
    service: PairingService = websocket.app.state.service
    await websocket.accept()

    handle = WebSocketHandle(websocket)
    service.on_connection_opened(handle)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(code=message.get("code", 1000))

            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            handle.touch()
            await service.on_connection_message(handle, data)

    except WebSocketDisconnect:
        service.on_connection_closed(handle)
    except Exception as e:
        logger.error(f"Error on device connection {handle}: {e}")
        service.on_connection_error(handle, e)
        if websocket.application_state == WebSocketState.CONNECTED:
            try:
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            except Exception as close_error:
                logger.debug(f"Closing {handle} failed: {close_error}")
