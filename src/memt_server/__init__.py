"""memt-server: a socket front end for multi-engine translation combination.

The service loads one language model at startup, then accepts one
configuration request per TCP connection, validates it, runs the decode
pipeline against the files the request names, and answers ``Done`` (or a
one-line diagnostic) on the same connection.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

# ---------------------------------------------------------------------------
# Package version — read from pyproject.toml via importlib.metadata.
#
# If the package is imported without being installed (running straight from
# a checkout), fall back to a dev marker so the server can still start.
# ---------------------------------------------------------------------------
try:
    __version__: str = version("memt-server")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
