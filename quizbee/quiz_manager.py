# quizbee/quiz_manager.py
import asyncio
import json
import logging
import os
from typing import Dict, Optional, Set
from uuid import uuid4

import redis.asyncio as redis
from fastapi import WebSocket

from quizbee.reconciler import ReconciliationEngine
from quizbee.schemas import quiz_to_wire

# Configure basic logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379")
PUBSUB_CHANNEL_PREFIX = "quiz_channel:"  # one channel per editing session


class SessionNotFound(KeyError):
    pass


class QuizManager:
    """
    Keeps the in-memory editing sessions, the WebSocket connections watching each
    session, and the Redis Pub/Sub fan-out that pushes quiz updates to them.
    """

    def __init__(self, redis_url: str = REDIS_URL, redis_client=None):
        self.redis = redis_client if redis_client is not None else redis.from_url(redis_url, decode_responses=True)
        self.sessions: Dict[str, ReconciliationEngine] = {}
        self.connections: Dict[str, Set[WebSocket]] = {}
        self._pubsub_task: Optional[asyncio.Task] = None
        logger.info(f"QuizManager initialized with Redis URL: {redis_url}")

    # sessions

    def open_session(self, engine: ReconciliationEngine) -> str:
        session_id = str(uuid4())
        self.sessions[session_id] = engine
        logger.info(f"Opened editing session {session_id} ({len(engine.quiz)} questions)")
        return session_id

    def get_session(self, session_id: str) -> ReconciliationEngine:
        try:
            return self.sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None

    def snapshot(self, session_id: str) -> dict:
        engine = self.get_session(session_id)
        return {
            "session_id": session_id,
            "quiz": quiz_to_wire(engine.quiz),
            "form": engine.form.to_wire() if engine.form is not None else None,
        }

    async def publish_session(self, session_id: str) -> None:
        """Publishes the session's current quiz and form to its channel."""
        channel = f"{PUBSUB_CHANNEL_PREFIX}{session_id}"
        message = json.dumps({"type": "QUIZ_DATA", **self.snapshot(session_id)})
        logger.info(f"Publishing quiz data to Redis channel: {channel}")
        await self.redis.publish(channel, message)

    # pub/sub listener

    async def start_listener(self):
        """Starts the background Redis PubSub listener task."""
        if self._pubsub_task and not self._pubsub_task.done():
            logger.info("PubSub listener already running.")
            return
        logger.info("Starting Redis PubSub listener...")
        self._pubsub_task = asyncio.create_task(self._listen_pubsub())
        self._pubsub_task.add_done_callback(self._handle_listener_completion)

    async def stop_listener(self):
        if self._pubsub_task and not self._pubsub_task.done():
            self._pubsub_task.cancel()
            try:
                await self._pubsub_task
            except asyncio.CancelledError:
                pass

    def _handle_listener_completion(self, task: asyncio.Task):
        """Callback to log if the listener task stops unexpectedly."""
        try:
            task.result()
            logger.info("PubSub listener task finished cleanly.")
        except asyncio.CancelledError:
            logger.info("PubSub listener task was cancelled.")
        except Exception:
            logger.exception("PubSub listener task failed unexpectedly!")

    async def _listen_pubsub(self):
        """Listens to all session channels on Redis and broadcasts messages."""
        async with self.redis.pubsub() as ps:
            await ps.psubscribe(f"{PUBSUB_CHANNEL_PREFIX}*")
            logger.info(f"Subscribed to Redis channels pattern: {PUBSUB_CHANNEL_PREFIX}*")
            while True:
                try:
                    message = await ps.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    if message is None:
                        await asyncio.sleep(0.01)
                        continue
                    if message.get("type") == "pmessage":
                        await self._broadcast_channel(message.get("channel"), message.get("data"))
                except redis.ConnectionError:
                    logger.error("Redis connection error in listener. Attempting to reconnect...")
                    await asyncio.sleep(5)
                    await ps.psubscribe(f"{PUBSUB_CHANNEL_PREFIX}*")
                except Exception:
                    logger.exception("Error in Redis listener loop.")
                    await asyncio.sleep(1)  # Prevent tight loop on other errors

    async def _broadcast_channel(self, channel: str, data):
        """Sends data to all WebSockets connected to the channel's session."""
        if not channel or not channel.startswith(PUBSUB_CHANNEL_PREFIX):
            logger.warning(f"Ignoring message from unexpected channel: {channel}")
            return
        if isinstance(data, bytes):
            data = data.decode()

        session_id = channel[len(PUBSUB_CHANNEL_PREFIX):]
        active_connections = list(self.connections.get(session_id, set()))
        if not active_connections:
            logger.info(f"No active WebSocket connections for session: {session_id}")
            return

        logger.info(f"Broadcasting to {len(active_connections)} connections for session: {session_id}")
        results = await asyncio.gather(
            *(ws.send_text(data) for ws in active_connections), return_exceptions=True
        )

        # Sockets that failed to receive are dropped from the room
        disconnects = [ws for ws, result in zip(active_connections, results) if isinstance(result, Exception)]
        for ws in disconnects:
            logger.warning(f"Failed to send to client for session {session_id}, disconnecting.")
        if disconnects:
            await asyncio.gather(*(self.disconnect(session_id, ws) for ws in disconnects))

    # websockets

    async def connect(self, session_id: str, websocket: WebSocket):
        """Accepts a WebSocket connection and adds it to the session room."""
        await websocket.accept()
        self.connections.setdefault(session_id, set()).add(websocket)
        logger.info(f"Client connected to session {session_id}. Connections: {len(self.connections[session_id])}")

    async def disconnect(self, session_id: str, websocket: WebSocket):
        """Removes a WebSocket connection from the session room and closes it."""
        conns = self.connections.get(session_id)
        if conns and websocket in conns:
            conns.remove(websocket)
            logger.info(f"Client disconnected from session {session_id}. Remaining connections: {len(conns)}")
            if not conns:
                del self.connections[session_id]

        try:
            if websocket.client_state.name == "CONNECTED":
                await websocket.close()
        except RuntimeError as e:
            # already closing/closed on the client side
            logger.debug(f"WebSocket for session {session_id} already closed: {e}")
