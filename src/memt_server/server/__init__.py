"""TCP front end.

supervisor.py  DecodeServer, handle_connection and serve — the accept loop.
client.py      send_request — the client side of the same protocol.
"""

from memt_server.server.client import send_request
from memt_server.server.supervisor import (
    SUCCESS_MARKER,
    ConnectionResult,
    ConnectionStatus,
    DecodeServer,
    handle_connection,
    serve,
)

__all__ = [
    "SUCCESS_MARKER",
    "ConnectionResult",
    "ConnectionStatus",
    "DecodeServer",
    "handle_connection",
    "send_request",
    "serve",
]
