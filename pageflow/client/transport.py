from typing import Any, Dict, List, Optional
import asyncio
import json
import logging
from urllib.parse import urlencode

import websockets

from pageflow.core.errors import TransportLoss

logger = logging.getLogger(__name__)


class WebSocketTransport:
    """Client side of the realtime channel.

    Keeps one connection open, reconnecting with exponential back-off, sends
    an application ``ping`` every ``heartbeat_interval`` seconds and hands
    decoded events to subscribed listeners. A listener implements
    ``handle_event(type, data)``, ``async handle_connected()`` and
    ``handle_disconnected()``.
    """

    def __init__(
        self,
        url: str,
        token: str,
        heartbeat_interval: float = 25.0,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0
    ):
        self.url = url
        self.token = token
        self.heartbeat_interval = heartbeat_interval
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.session_id: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None
        self._listeners: List[Any] = []
        self._connection = None
        self._closing = False

    @property
    def uri(self) -> str:
        return f"{self.url}?{urlencode({'token': self.token})}"

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def subscribe(self, listener) -> None:
        self._listeners.append(listener)

    async def send(self, event_type: str, data: Dict[str, Any]) -> None:
        if self._connection is None:
            raise TransportLoss("Not connected")
        try:
            await self._connection.send(json.dumps({"type": event_type, "data": data}, default=str))
        except websockets.ConnectionClosed as e:
            raise TransportLoss(f"Connection closed: {e}") from e

    async def run(self) -> None:
        """Connect and serve until ``close()`` is called"""
        delay = self.reconnect_delay
        while not self._closing:
            try:
                async with websockets.connect(self.uri) as connection:
                    self._connection = connection
                    delay = self.reconnect_delay
                    logger.info(f"Connected to {self.url}")
                    await self._serve(connection)
            except (websockets.ConnectionClosed, OSError) as e:
                logger.warning(f"Realtime connection lost: {e}")
            finally:
                if self._connection is not None:
                    self._connection = None
                    for listener in self._listeners:
                        listener.handle_disconnected()

            if self._closing:
                break
            logger.info(f"Reconnecting in {delay:.1f}s")
            await asyncio.sleep(delay)
            delay = min(delay * 2, self.max_reconnect_delay)

    async def _serve(self, connection) -> None:
        heartbeat = asyncio.create_task(self._heartbeat())
        try:
            async for raw in connection:
                try:
                    message = json.loads(raw)
                    event_type, data = message["type"], message.get("data") or {}
                except (ValueError, KeyError, TypeError) as e:
                    logger.warning(f"Ignoring malformed server message: {e}")
                    continue
                if event_type == "connected":
                    self.session_id = data.get("sessionId")
                    self.user = data.get("user")
                    for listener in self._listeners:
                        try:
                            await listener.handle_connected()
                        except Exception as e:
                            logger.error(f"Listener failed on connect: {e}")
                    continue
                for listener in self._listeners:
                    try:
                        listener.handle_event(event_type, data)
                    except Exception as e:
                        logger.error(f"Listener failed on {event_type}: {e}")
        finally:
            heartbeat.cancel()

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await self.send("ping", {})
            except TransportLoss:
                return

    async def close(self) -> None:
        self._closing = True
        if self._connection is not None:
            await self._connection.close()
