import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from pageflow.domains.identity.entities import UserIdentity

logger = logging.getLogger(__name__)

PAGE_ROOM_PREFIX = "page:"
WORKSPACE_ROOM_PREFIX = "workspace:"
USER_ROOM_PREFIX = "user:"


def page_room(page_id: Any) -> str:
    return f"{PAGE_ROOM_PREFIX}{page_id}"


def workspace_room(workspace_id: Any) -> str:
    return f"{WORKSPACE_ROOM_PREFIX}{workspace_id}"


def user_room(user_id: Any) -> str:
    return f"{USER_ROOM_PREFIX}{user_id}"


def room_target(room_key: str) -> str:
    """Id part of a room key (``page:42`` -> ``42``)"""
    return room_key.split(":", 1)[1] if ":" in room_key else room_key


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionHandle:
    """One live connection.

    Fan-out never writes to the socket directly: messages are queued and a
    writer task drains the queue, so delivery to a whole room happens inside
    a single synchronous step.
    """

    def __init__(self, identity: UserIdentity, queue_size: int = 1000, session_id: Optional[str] = None):
        self.id = session_id or uuid.uuid4().hex
        self.identity = identity
        self.outbound: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.alive = True
        self.last_seen = time.monotonic()

    @property
    def user_id(self) -> str:
        return self.identity.id

    def touch(self) -> None:
        self.last_seen = time.monotonic()

    def deliver(self, message: Dict[str, Any]) -> bool:
        """Queue a message; False when the session is closed or backed up"""
        if not self.alive:
            return False
        try:
            self.outbound.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for session {self.id}, dropping {message.get('type')}")
            return False
        return True

    def close(self) -> None:
        if not self.alive:
            return
        self.alive = False
        if self.outbound.full():
            self.outbound.get_nowait()
        self.outbound.put_nowait(None)

    async def run_writer(self, send: Callable[[Dict[str, Any]], Awaitable[None]]) -> None:
        """Drain the queue into ``send`` until the session is closed"""
        while True:
            message = await self.outbound.get()
            if message is None:
                break
            try:
                await send(message)
            except Exception as e:
                logger.info(f"Send failed for session {self.id}: {e}")
                self.alive = False
                break

    def __repr__(self) -> str:
        return f"SessionHandle(id={self.id}, user={self.identity.username})"


class SessionDirectory:
    """Session id -> identity resolved once at handshake"""

    def __init__(self):
        self._sessions: Dict[str, SessionHandle] = {}

    def register(self, session: SessionHandle) -> None:
        if session.id in self._sessions:
            raise ValueError(f"Session {session.id} is already registered")
        self._sessions[session.id] = session

    def unregister(self, session: SessionHandle) -> None:
        self._sessions.pop(session.id, None)

    def identity_of(self, session: SessionHandle) -> Optional[UserIdentity]:
        registered = self._sessions.get(session.id)
        return registered.identity if registered is session else None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session: SessionHandle) -> bool:
        return self._sessions.get(session.id) is session


@dataclass
class PresenceState:
    """Latest typing/cursor signal of one session in one room"""
    user: UserIdentity
    is_typing: bool = False
    block_id: Optional[str] = None
    cursor: Any = None
    updated_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user.to_dict(),
            "isTyping": self.is_typing,
            "blockId": self.block_id,
            "cursor": self.cursor,
            "updatedAt": self.updated_at
        }
