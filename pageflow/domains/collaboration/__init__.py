from pageflow.domains.collaboration.entities import (
    PresenceState, SessionDirectory, SessionHandle, page_room, user_room, workspace_room
)
from pageflow.domains.collaboration.schemas import (
    ClientEvent, ServerEvent, build_event, decode_message, encode_message
)
from pageflow.domains.collaboration.services import (
    CollaborationBroadcaster, PresenceTracker, RoomRegistry
)

__all__ = [
    "PresenceState", "SessionDirectory", "SessionHandle", "page_room", "user_room", "workspace_room",
    "ClientEvent", "ServerEvent", "build_event", "decode_message", "encode_message",
    "CollaborationBroadcaster", "PresenceTracker", "RoomRegistry"
]
