from fastapi import Request

from pageflow.domains.collaboration.services import CollaborationBroadcaster


def get_broadcaster(request: Request) -> CollaborationBroadcaster:
    return request.app.state.broadcaster
