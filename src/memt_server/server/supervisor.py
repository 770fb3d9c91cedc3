"""
Connection supervisor: the accept loop and the per-connection error boundary.

The server is a plain blocking ``socketserver.TCPServer``: one connection
is accepted, read to EOF, decoded and answered before the next ``accept``.
A slow client therefore holds the service until it finishes or the
optional read timeout fires.

Per-connection flow
-------------------
    Listening -> Accepting -> HandlingRequest -> WritingResponse -> Listening

``handle_connection`` is the isolation boundary and always returns a
``ConnectionResult`` instead of raising:

    DONE      request valid, decode finished       -> client receives "Done"
    REJECTED  ArgumentParseError family            -> client receives the diagnostic
    FAILED    anything else (I/O, timeout, decode) -> logged, nothing written

Anything that still escapes the handler (typically a write to a client
that already hung up) reaches ``DecodeServer.handle_error``, which logs it
and lets ``serve_forever`` carry on.  The loop only ends on an external
signal.
"""

from __future__ import annotations

import enum
import logging
import socketserver
from collections import Counter
from dataclasses import dataclass
from typing import BinaryIO

from memt_server.config import ServiceSettings
from memt_server.decode.dispatch import run_once
from memt_server.decode.pipeline import DecodePipeline
from memt_server.errors import ArgumentParseError
from memt_server.lm.base import LanguageModel
from memt_server.protocol.request import parse_request

logger = logging.getLogger(__name__)

SUCCESS_MARKER = "Done"


class ConnectionStatus(enum.StrEnum):
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class ConnectionResult:
    """Outcome of one connection, inspected by the supervisor.

    Attributes:
        status: What happened.
        message: Diagnostic for REJECTED/FAILED, empty for DONE.
        units: Units decoded (DONE only).
    """

    status: ConnectionStatus
    message: str = ""
    units: int = 0

    @property
    def response(self) -> str | None:
        """Line to send back to the client, or ``None`` to send nothing."""
        if self.status is ConnectionStatus.DONE:
            return SUCCESS_MARKER
        if self.status is ConnectionStatus.REJECTED:
            return self.message
        return None


def handle_connection(
    rfile: BinaryIO,
    model: LanguageModel,
    pipeline: DecodePipeline,
    settings: ServiceSettings,
) -> ConnectionResult:
    """Parse one request and run it through the decode pipeline.

    Never raises: validation errors become REJECTED, everything else FAILED.
    """
    try:
        request = parse_request(rfile, max_bytes=settings.request.max_bytes)
        units = run_once(model, request, pipeline)
    except ArgumentParseError as exc:
        logger.warning("Rejected request: %s", exc)
        return ConnectionResult(ConnectionStatus.REJECTED, str(exc))
    except Exception as exc:
        logger.exception("Request failed")
        return ConnectionResult(ConnectionStatus.FAILED, f"{type(exc).__name__}: {exc}")
    return ConnectionResult(ConnectionStatus.DONE, units=units)


class ConnectionHandler(socketserver.StreamRequestHandler):
    """Serve exactly one request on an accepted connection."""

    server: DecodeServer

    def setup(self) -> None:
        self.timeout = self.server.settings.request.read_timeout_seconds or None
        super().setup()

    def handle(self) -> None:
        host, port = self.client_address[:2]
        logger.info("Got connection from %s:%s", host, port)
        result = self.server.handle_connection(self.rfile)
        self.server.record(result)
        if result.response is not None:
            self.wfile.write(f"{result.response}\n".encode())


class DecodeServer(socketserver.TCPServer):
    """Single-threaded TCP server holding the process-wide model and pipeline."""

    allow_reuse_address = True

    def __init__(
        self,
        server_address: tuple[str, int],
        model: LanguageModel,
        pipeline: DecodePipeline,
        settings: ServiceSettings,
    ) -> None:
        self.model = model
        self.pipeline = pipeline
        self.settings = settings
        self.stats: Counter[str] = Counter()
        super().__init__(server_address, ConnectionHandler)

    @property
    def port(self) -> int:
        return self.server_address[1]

    def handle_connection(self, rfile: BinaryIO) -> ConnectionResult:
        return handle_connection(rfile, self.model, self.pipeline, self.settings)

    def record(self, result: ConnectionResult) -> None:
        self.stats[result.status] += 1
        if result.status is ConnectionStatus.DONE:
            logger.info("Request done: %d unit(s) decoded", result.units)
        else:
            logger.info("Request %s: %s", result.status, result.message)

    def handle_error(self, request, client_address) -> None:
        self.stats["errors"] += 1
        logger.exception("Unhandled error on connection from %s", client_address)


def serve(
    model: LanguageModel,
    pipeline: DecodePipeline,
    port: int,
    settings: ServiceSettings,
) -> None:
    """Bind, then accept connections until interrupted.

    ``KeyboardInterrupt`` (also raised for SIGTERM by the CLI) propagates to
    the caller after the listening socket is closed.
    """
    with DecodeServer((settings.server.host, port), model, pipeline, settings) as server:
        if not settings.request_is_bounded:
            logger.info("No request size or read timeout configured")
        logger.info("Accepting connections on %s:%d", settings.server.host, server.port)
        server.serve_forever()
