"""Client-side sync agent for PageFlow pages."""
from pageflow.client.agent import PageSyncAgent, SubscriptionState
from pageflow.client.api import PagesApiClient
from pageflow.client.state import LocalPageState
from pageflow.client.transport import WebSocketTransport

__all__ = ["PageSyncAgent", "SubscriptionState", "PagesApiClient", "LocalPageState", "WebSocketTransport"]
