"""Minimal client for the request protocol.

A request is the config block, followed by a half-close of the write
side; the server answers with a single line once it is finished.
"""

from __future__ import annotations

import socket


def send_request(
    host: str, port: int, body: str | bytes, *, timeout: float | None = None
) -> str:
    """Send one request and return the server's reply without the newline.

    An empty string means the server closed the connection without
    answering (an unexpected server-side failure).

    Raises:
        OSError: Connection refused, reset or timed out.
    """
    data = body.encode("utf-8") if isinstance(body, str) else body
    with socket.create_connection((host, port), timeout=timeout) as sock:
        sock.sendall(data)
        sock.shutdown(socket.SHUT_WR)
        chunks = []
        while chunk := sock.recv(4096):
            chunks.append(chunk)
    return b"".join(chunks).decode("utf-8", errors="replace").strip()
