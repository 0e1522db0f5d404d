"""Wire format of the realtime channel.

Every frame is a JSON object ``{"type": <event>, "data": {...}}`` in both
directions. Keys inside ``data`` are camelCase.
"""
import json
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from pageflow.core.errors import MalformedEvent

MAX_MESSAGE_BYTES = 1_000_000


class ClientEvent(str, Enum):
    JOIN_PAGE = "join-page"
    LEAVE_PAGE = "leave-page"
    JOIN_WORKSPACE = "join-workspace"
    LEAVE_WORKSPACE = "leave-workspace"
    BLOCK_UPDATE = "block-update"
    BLOCK_CREATE = "block-create"
    BLOCK_DELETE = "block-delete"
    BLOCK_REORDER = "block-reorder"
    COMMENT_ADD = "comment-add"
    COMMENT_UPDATE = "comment-update"
    COMMENT_DELETE = "comment-delete"
    COMMENT_RESOLVE = "comment-resolve"
    CURSOR_MOVE = "cursor-move"
    TYPING_START = "typing-start"
    TYPING_STOP = "typing-stop"
    PING = "ping"


class ServerEvent(str, Enum):
    CONNECTED = "connected"
    JOINED_PAGE = "joined-page"
    USER_JOINED_PAGE = "user-joined-page"
    USER_LEFT_PAGE = "user-left-page"
    BLOCK_UPDATED = "block-updated"
    BLOCK_CREATED = "block-created"
    BLOCK_DELETED = "block-deleted"
    BLOCKS_REORDERED = "blocks-reordered"
    COMMENT_ADDED = "comment-added"
    COMMENT_UPDATED = "comment-updated"
    COMMENT_DELETED = "comment-deleted"
    COMMENT_RESOLVED = "comment-resolved"
    USER_TYPING = "user-typing"
    CURSOR_MOVED = "cursor-moved"
    NOTIFICATION = "notification"
    WORKSPACE_NOTIFICATION = "workspace-notification"
    PAGE_NOTIFICATION = "page-notification"
    PONG = "pong"


class EventPayload(BaseModel):
    """Inbound payloads accept camelCase keys (snake_case too)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PageTarget(EventPayload):
    page_id: str = Field(..., min_length=1)


class WorkspaceTarget(EventPayload):
    workspace_id: str = Field(..., min_length=1)


class BlockUpdatePayload(PageTarget):
    block_id: str = Field(..., min_length=1)
    content: Optional[Dict[str, Any]] = None
    type: Optional[str] = None
    cursor: Any = None


class BlockCreatePayload(PageTarget):
    block_data: Dict[str, Any]


class BlockDeletePayload(PageTarget):
    block_id: str = Field(..., min_length=1)


class BlockReorderPayload(PageTarget):
    blocks: List[Dict[str, Any]]


class CommentAddPayload(PageTarget):
    comment_data: Dict[str, Any]


class CommentUpdatePayload(PageTarget):
    comment_id: str = Field(..., min_length=1)
    content: str


class CommentDeletePayload(PageTarget):
    comment_id: str = Field(..., min_length=1)


class CommentResolvePayload(PageTarget):
    comment_id: str = Field(..., min_length=1)
    is_resolved: bool


class CursorMovePayload(PageTarget):
    cursor: Any = None


class TypingPayload(PageTarget):
    block_id: Optional[str] = None


def parse_payload(model, data: Any, bare_field: Optional[str] = None):
    """Validate ``data`` against ``model``; a bare string fills ``bare_field``"""
    if isinstance(data, str) and bare_field:
        data = {bare_field: data}
    if not isinstance(data, dict):
        raise MalformedEvent(f"Expected an object payload, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedEvent(f"Invalid {model.__name__}: {e.errors()}") from e


def build_event(event_type: ServerEvent, **data: Any) -> Dict[str, Any]:
    return {"type": event_type.value, "data": data}


def encode_message(message: Dict[str, Any]) -> str:
    try:
        return json.dumps(message, separators=(",", ":"), ensure_ascii=False, default=str)
    except (TypeError, ValueError) as e:
        raise MalformedEvent(f"Cannot encode message: {e}") from e


def decode_message(raw: str) -> Tuple[str, Any]:
    """Parse one inbound frame into ``(type, data)``"""
    if len(raw) > MAX_MESSAGE_BYTES:
        raise MalformedEvent("Message exceeds max size")
    try:
        message = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedEvent(f"Bad json: {e}") from e
    if not isinstance(message, dict):
        raise MalformedEvent("Message must be a JSON object")
    event_type = message.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedEvent("Message type is required")
    data = message.get("data")
    return event_type, {} if data is None else data
