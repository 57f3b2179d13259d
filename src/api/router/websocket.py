"""WebSocket router for real-time transfer events."""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from src.core.logger.logger import logger

router = APIRouter()


@router.websocket("/ws/transfers/{user_id}")
async def transfer_events(websocket: WebSocket, user_id: str):
    """
    Stream orchestration events for one user.

    Every state change and every balance sample observed while waiting
    for funds is pushed as a JSON message. Client messages are only logged.
    """
    manager = websocket.app.state.ws_manager

    await manager.connect(websocket, user_id)

    try:
        while True:
            data = await websocket.receive_text()
            logger.info("Received via WebSocket", extra={"user_id": user_id, "data": data})

    except WebSocketDisconnect:
        manager.disconnect(websocket, user_id)
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        manager.disconnect(websocket, user_id)
