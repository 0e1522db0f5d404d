from typing import Any, Callable, Dict, List, Optional
import logging

from pageflow.core.errors import MalformedEvent
from pageflow.domains.collaboration.entities import (
    PAGE_ROOM_PREFIX, WORKSPACE_ROOM_PREFIX, PresenceState, SessionDirectory, SessionHandle,
    page_room, room_target, user_room, utc_timestamp, workspace_room
)
from pageflow.domains.collaboration.schemas import (
    BlockCreatePayload, BlockDeletePayload, BlockReorderPayload, BlockUpdatePayload,
    ClientEvent, CommentAddPayload, CommentDeletePayload, CommentResolvePayload,
    CommentUpdatePayload, CursorMovePayload, PageTarget, ServerEvent, TypingPayload,
    WorkspaceTarget, build_event, parse_payload
)

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Room key -> connected sessions. In-memory and never consulted for authorization."""

    def __init__(self):
        self._rooms: Dict[str, Dict[str, SessionHandle]] = {}
        self._memberships: Dict[str, List[str]] = {}

    def join(self, session: SessionHandle, room_key: str) -> bool:
        """Add the session to a room; False when it was already there"""
        members = self._rooms.setdefault(room_key, {})
        if session.id in members:
            return False
        members[session.id] = session
        self._memberships.setdefault(session.id, []).append(room_key)
        return True

    def leave(self, session: SessionHandle, room_key: str) -> bool:
        members = self._rooms.get(room_key)
        if not members or session.id not in members:
            return False
        del members[session.id]
        if not members:
            del self._rooms[room_key]
        rooms = self._memberships.get(session.id, [])
        rooms.remove(room_key)
        if not rooms:
            self._memberships.pop(session.id, None)
        return True

    def members_of(self, room_key: str, exclude: Optional[SessionHandle] = None) -> List[SessionHandle]:
        members = self._rooms.get(room_key, {})
        return [session for session in members.values() if exclude is None or session.id != exclude.id]

    def is_member(self, session: SessionHandle, room_key: str) -> bool:
        return session.id in self._rooms.get(room_key, {})

    def rooms_of(self, session: SessionHandle) -> List[str]:
        return list(self._memberships.get(session.id, []))

    def page_room_of(self, session: SessionHandle) -> Optional[str]:
        return self._first_room(session, PAGE_ROOM_PREFIX)

    def workspace_room_of(self, session: SessionHandle) -> Optional[str]:
        return self._first_room(session, WORKSPACE_ROOM_PREFIX)

    def _first_room(self, session: SessionHandle, prefix: str) -> Optional[str]:
        for room_key in self._memberships.get(session.id, []):
            if room_key.startswith(prefix):
                return room_key
        return None

    def drop_session(self, session: SessionHandle) -> List[str]:
        """Remove the session from every room; returns the rooms it left"""
        rooms = self.rooms_of(session)
        for room_key in rooms:
            self.leave(session, room_key)
        return rooms

    def room_count(self) -> int:
        return len(self._rooms)

    def deliver(self, room_key: str, message: Dict[str, Any], exclude: Optional[SessionHandle] = None) -> int:
        """Queue a message for every member but ``exclude``; returns how many got it"""
        delivered = 0
        for session in self.members_of(room_key, exclude=exclude):
            if session.deliver(message):
                delivered += 1
        return delivered


class PresenceTracker:
    """Typing and cursor signals per page room"""

    def __init__(self, registry: RoomRegistry):
        self.registry = registry
        self._presence: Dict[str, Dict[str, PresenceState]] = {}

    def _state(self, room_key: str, session: SessionHandle) -> PresenceState:
        room = self._presence.setdefault(room_key, {})
        state = room.get(session.id)
        if state is None:
            state = room[session.id] = PresenceState(user=session.identity)
        return state

    def set_typing(self, room_key: str, session: SessionHandle, is_typing: bool, block_id: Optional[str] = None) -> int:
        state = self._state(room_key, session)
        state.is_typing = is_typing
        state.block_id = block_id if is_typing else None
        state.updated_at = utc_timestamp()
        return self.registry.deliver(room_key, build_event(
            ServerEvent.USER_TYPING,
            pageId=room_target(room_key),
            user=session.identity.to_dict(),
            isTyping=is_typing,
            blockId=block_id,
            timestamp=state.updated_at
        ), exclude=session)

    def set_cursor(self, room_key: str, session: SessionHandle, cursor: Any) -> int:
        state = self._state(room_key, session)
        state.cursor = cursor
        state.updated_at = utc_timestamp()
        return self.registry.deliver(room_key, build_event(
            ServerEvent.CURSOR_MOVED,
            pageId=room_target(room_key),
            user=session.identity.to_dict(),
            cursor=cursor,
            timestamp=state.updated_at
        ), exclude=session)

    def snapshot(self, room_key: str) -> List[Dict[str, Any]]:
        return [state.to_dict() for state in self._presence.get(room_key, {}).values()]

    def clear(self, room_key: str, session: SessionHandle) -> None:
        room = self._presence.get(room_key)
        if room is None:
            return
        room.pop(session.id, None)
        if not room:
            del self._presence[room_key]

    def drop_session(self, session: SessionHandle) -> None:
        for room_key in list(self._presence):
            self.clear(room_key, session)


class CollaborationBroadcaster:
    """Realtime protocol engine.

    Relays edits that clients already persisted over REST to the other
    members of the page room. Handlers never await, so each inbound event is
    applied to the registry, the presence table and every recipient queue in
    one step.
    """

    def __init__(self, registry: RoomRegistry, presence: PresenceTracker, directory: SessionDirectory):
        self.registry = registry
        self.presence = presence
        self.directory = directory
        self._handlers: Dict[str, Callable[[SessionHandle, Any], None]] = {
            ClientEvent.JOIN_PAGE.value: self.join_page,
            ClientEvent.LEAVE_PAGE.value: self.leave_page,
            ClientEvent.JOIN_WORKSPACE.value: self.join_workspace,
            ClientEvent.LEAVE_WORKSPACE.value: self.leave_workspace,
            ClientEvent.BLOCK_UPDATE.value: self.block_update,
            ClientEvent.BLOCK_CREATE.value: self.block_create,
            ClientEvent.BLOCK_DELETE.value: self.block_delete,
            ClientEvent.BLOCK_REORDER.value: self.block_reorder,
            ClientEvent.COMMENT_ADD.value: self.comment_add,
            ClientEvent.COMMENT_UPDATE.value: self.comment_update,
            ClientEvent.COMMENT_DELETE.value: self.comment_delete,
            ClientEvent.COMMENT_RESOLVE.value: self.comment_resolve,
            ClientEvent.CURSOR_MOVE.value: self.cursor_move,
            ClientEvent.TYPING_START.value: self.typing_start,
            ClientEvent.TYPING_STOP.value: self.typing_stop,
            ClientEvent.PING.value: self.ping,
        }

    # ---------- sessions ----------

    def connect(self, session: SessionHandle) -> None:
        """Register a freshly authenticated session and greet it"""
        self.directory.register(session)
        self.registry.join(session, user_room(session.user_id))
        session.deliver(build_event(
            ServerEvent.CONNECTED,
            sessionId=session.id,
            user=session.identity.to_dict()
        ))
        logger.info(f"Session {session.id} connected for user {session.user_id}")

    def disconnect(self, session: SessionHandle) -> None:
        """Forget the session everywhere; page peers see it leave"""
        room_key = self.registry.page_room_of(session)
        if room_key is not None:
            self._leave_page(session, room_key)
        self.presence.drop_session(session)
        self.registry.drop_session(session)
        self.directory.unregister(session)
        session.close()
        logger.info(f"Session {session.id} disconnected")

    def dispatch(self, session: SessionHandle, event_type: str, data: Any) -> None:
        """Route one inbound event. Raises MalformedEvent for unknown types or bad payloads."""
        session.touch()
        if session not in self.directory:
            logger.warning(f"Dropping {event_type} from unregistered session {session.id}")
            return
        handler = self._handlers.get(event_type)
        if handler is None:
            raise MalformedEvent(f"Unknown event type: {event_type}")
        handler(session, data)

    def _identity(self, session: SessionHandle) -> Dict[str, Any]:
        return self.directory.identity_of(session).to_dict()

    def _member_room(self, session: SessionHandle, payload: PageTarget, event_type: ClientEvent) -> Optional[str]:
        room_key = page_room(payload.page_id)
        if not self.registry.is_member(session, room_key):
            logger.info(f"Dropping {event_type.value} from {session.id}: not a member of {room_key}")
            return None
        return room_key

    def _relay(self, session: SessionHandle, payload: PageTarget, event_type: ClientEvent, out_type: ServerEvent, **data: Any) -> int:
        room_key = self._member_room(session, payload, event_type)
        if room_key is None:
            return 0
        message = build_event(
            out_type,
            pageId=payload.page_id,
            **data,
            user=self._identity(session),
            timestamp=utc_timestamp()
        )
        return self.registry.deliver(room_key, message, exclude=session)

    # ---------- rooms ----------

    def join_page(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(PageTarget, data, bare_field="pageId")
        room_key = page_room(payload.page_id)
        previous = self.registry.page_room_of(session)
        if previous is not None and previous != room_key:
            self._leave_page(session, previous)

        if self.registry.join(session, room_key):
            self.registry.deliver(room_key, build_event(
                ServerEvent.USER_JOINED_PAGE,
                pageId=payload.page_id,
                user=self._identity(session),
                timestamp=utc_timestamp()
            ), exclude=session)
            logger.info(f"Session {session.id} joined {room_key}")

        participants = {}
        for member in self.registry.members_of(room_key):
            participants.setdefault(member.user_id, member.identity.to_dict())
        session.deliver(build_event(
            ServerEvent.JOINED_PAGE,
            pageId=payload.page_id,
            participants=list(participants.values()),
            presence=self.presence.snapshot(room_key)
        ))

    def leave_page(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(PageTarget, data, bare_field="pageId")
        room_key = page_room(payload.page_id)
        if not self.registry.is_member(session, room_key):
            logger.info(f"Session {session.id} left {room_key} without being a member")
            return
        self._leave_page(session, room_key)

    def _leave_page(self, session: SessionHandle, room_key: str) -> None:
        self.registry.leave(session, room_key)
        self.presence.clear(room_key, session)
        self.registry.deliver(room_key, build_event(
            ServerEvent.USER_LEFT_PAGE,
            pageId=room_target(room_key),
            user=self._identity(session),
            timestamp=utc_timestamp()
        ))
        logger.info(f"Session {session.id} left {room_key}")

    def join_workspace(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(WorkspaceTarget, data, bare_field="workspaceId")
        room_key = workspace_room(payload.workspace_id)
        previous = self.registry.workspace_room_of(session)
        if previous is not None and previous != room_key:
            self.registry.leave(session, previous)
        self.registry.join(session, room_key)

    def leave_workspace(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(WorkspaceTarget, data, bare_field="workspaceId")
        self.registry.leave(session, workspace_room(payload.workspace_id))

    # ---------- blocks ----------

    def block_update(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(BlockUpdatePayload, data)
        self._relay(
            session, payload, ClientEvent.BLOCK_UPDATE, ServerEvent.BLOCK_UPDATED,
            blockId=payload.block_id,
            content=payload.content,
            type=payload.type,
            cursor=payload.cursor
        )

    def block_create(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(BlockCreatePayload, data)
        self._relay(
            session, payload, ClientEvent.BLOCK_CREATE, ServerEvent.BLOCK_CREATED,
            blockData=payload.block_data
        )

    def block_delete(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(BlockDeletePayload, data)
        self._relay(
            session, payload, ClientEvent.BLOCK_DELETE, ServerEvent.BLOCK_DELETED,
            blockId=payload.block_id
        )

    def block_reorder(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(BlockReorderPayload, data)
        self._relay(
            session, payload, ClientEvent.BLOCK_REORDER, ServerEvent.BLOCKS_REORDERED,
            blocks=payload.blocks
        )

    # ---------- comments ----------

    def comment_add(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(CommentAddPayload, data)
        self._relay(
            session, payload, ClientEvent.COMMENT_ADD, ServerEvent.COMMENT_ADDED,
            commentData=payload.comment_data
        )

    def comment_update(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(CommentUpdatePayload, data)
        self._relay(
            session, payload, ClientEvent.COMMENT_UPDATE, ServerEvent.COMMENT_UPDATED,
            commentId=payload.comment_id,
            content=payload.content
        )

    def comment_delete(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(CommentDeletePayload, data)
        self._relay(
            session, payload, ClientEvent.COMMENT_DELETE, ServerEvent.COMMENT_DELETED,
            commentId=payload.comment_id
        )

    def comment_resolve(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(CommentResolvePayload, data)
        self._relay(
            session, payload, ClientEvent.COMMENT_RESOLVE, ServerEvent.COMMENT_RESOLVED,
            commentId=payload.comment_id,
            isResolved=payload.is_resolved
        )

    # ---------- presence ----------

    def cursor_move(self, session: SessionHandle, data: Any) -> None:
        payload = parse_payload(CursorMovePayload, data)
        room_key = self._member_room(session, payload, ClientEvent.CURSOR_MOVE)
        if room_key is not None:
            self.presence.set_cursor(room_key, session, payload.cursor)

    def typing_start(self, session: SessionHandle, data: Any) -> None:
        self._typing(session, data, ClientEvent.TYPING_START, True)

    def typing_stop(self, session: SessionHandle, data: Any) -> None:
        self._typing(session, data, ClientEvent.TYPING_STOP, False)

    def _typing(self, session: SessionHandle, data: Any, event_type: ClientEvent, is_typing: bool) -> None:
        payload = parse_payload(TypingPayload, data, bare_field="pageId")
        room_key = self._member_room(session, payload, event_type)
        if room_key is not None:
            self.presence.set_typing(room_key, session, is_typing, block_id=payload.block_id)

    def ping(self, session: SessionHandle, data: Any) -> None:
        session.deliver(build_event(ServerEvent.PONG, timestamp=utc_timestamp()))

    # ---------- server notifications ----------

    def send_user_notification(self, user_id: Any, notification: Dict[str, Any]) -> int:
        """Deliver to every live session of one user"""
        return self.registry.deliver(user_room(user_id), build_event(
            ServerEvent.NOTIFICATION, **notification, timestamp=utc_timestamp()
        ))

    def send_workspace_notification(self, workspace_id: Any, notification: Dict[str, Any]) -> int:
        return self.registry.deliver(workspace_room(workspace_id), build_event(
            ServerEvent.WORKSPACE_NOTIFICATION, **notification, timestamp=utc_timestamp()
        ))

    def send_page_notification(self, page_id: Any, notification: Dict[str, Any]) -> int:
        return self.registry.deliver(page_room(page_id), build_event(
            ServerEvent.PAGE_NOTIFICATION, **notification, timestamp=utc_timestamp()
        ))
