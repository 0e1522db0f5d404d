"""Error taxonomy shared by the REST layer and the realtime relay.

REST handlers translate these into HTTP status codes; the WebSocket
endpoint uses them to decide whether to close, drop or ignore.
"""


class AuthenticationFailure(Exception):
    """Missing, invalid or expired credential"""


class AuthorizationFailure(PermissionError):
    """Authenticated user lacks rights on the target resource"""


class TransportLoss(ConnectionError):
    """A live session's connection went away"""


class MalformedEvent(ValueError):
    """Inbound realtime event with a bad envelope or payload"""


class VersionConflict(ValueError):
    """Optimistic concurrency check failed"""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Version conflict: expected {expected}, current is {actual}")
        self.expected = expected
        self.actual = actual
