"""Logging setup for the server process.

Modules log through ``logging.getLogger(__name__)``; this module only
decides where records go and what they look like.  ``configure_logging`` is
called once by ``memt-server run`` before the model is loaded, so load
progress and every per-connection event share one stderr stream.
"""

from __future__ import annotations

import json
import logging
import sys

from memt_server.config import LoggingSettings

_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
}


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def build_formatter(fmt: str) -> logging.Formatter:
    """Return the formatter for a ``[logging] format`` value."""
    if fmt == "json":
        return JsonFormatter()
    return logging.Formatter(_FORMATS.get(fmt, _FORMATS["detailed"]))


def configure_logging(settings: LoggingSettings, *, stream=None) -> logging.Handler:
    """Install a single stream handler on the root logger.

    Handlers installed by a previous call are replaced, so calling this
    twice (tests, ``reload_config``) does not duplicate output.

    Args:
        settings: Level and format to apply.
        stream: Destination stream; defaults to ``sys.stderr``.

    Returns:
        The installed handler.
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_memt_handler", False):
            root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(build_formatter(settings.format))
    handler._memt_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(settings.level.upper())
    return handler
