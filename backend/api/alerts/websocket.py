import asyncio
import logging
import redis.asyncio as redis
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

# WebSocket router
router = APIRouter()


class AlertHub:
    """Dashboard WebSocket connections and the Redis listener that feeds them."""

    def __init__(self):
        self.connections = set()

    def connect(self, websocket: WebSocket):
        self.connections.add(websocket)

    def disconnect(self, websocket: WebSocket):
        self.connections.discard(websocket)

    async def broadcast(self, message: str) -> int:
        """Sends a raw JSON event to every client, dropping the ones that fail."""
        to_remove = set()
        sent = 0
        for connection in list(self.connections):
            try:
                await connection.send_text(message)
                sent += 1
            except Exception:
                to_remove.add(connection)

        # Remove disconnected clients
        for conn in to_remove:
            self.connections.discard(conn)
        return sent

    async def listen(self, redis_url: str, channel: str):
        """Relays every event published on `channel` to the connected clients."""
        while True:
            client = redis.from_url(redis_url, decode_responses=True)
            try:
                async with client.pubsub() as pubsub:
                    await pubsub.subscribe(channel)
                    logger.info(f"Listening for live events on {channel}")
                    async for message in pubsub.listen():
                        if message.get("type") != "message":
                            continue
                        await self.broadcast(message["data"])
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in Redis listener: {e}")
                await asyncio.sleep(1)  # Wait before retrying
            finally:
                await client.aclose()


hub = AlertHub()


@router.websocket("/ws/alerts")
async def websocket_alerts(websocket: WebSocket):
    """Pushes `alert` and `device_status` events to a dashboard client."""
    await websocket.accept()
    hub.connect(websocket)
    logger.info("Client connected to live alerts")

    try:
        while True:
            await websocket.receive_text()  # clients only listen; this detects disconnects
    except WebSocketDisconnect:
        logger.info("Client disconnected from live alerts")
    finally:
        hub.disconnect(websocket)
