"""WebSocket event channel."""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from core.logger import logger
from models.schemas.events import SubscribeMessage

router = APIRouter()


@router.websocket("/ws")
async def event_channel(websocket: WebSocket):
    """Clients send ``{"type": "subscribe", "channels": [...]}`` and then
    receive every event published on those channels."""
    manager = websocket.app.state.connections
    await manager.connect(websocket)
    try:
        while True:
            payload = await websocket.receive_json()
            if isinstance(payload, dict) and payload.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            try:
                message = SubscribeMessage.model_validate(payload)
            except PydanticValidationError as e:
                await websocket.send_json(
                    {"type": "error", "message": "expected {type: subscribe|unsubscribe, channels: [...]}",
                     "details": e.errors(include_url=False, include_context=False)}
                )
                continue

            if message.type == "subscribe":
                channels = manager.subscribe(websocket, message.channels)
            else:
                channels = manager.unsubscribe(websocket, message.channels)
            await websocket.send_json({"type": "subscribed", "channels": sorted(channels)})
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        manager.disconnect(websocket)
