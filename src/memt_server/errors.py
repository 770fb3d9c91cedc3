"""Typed exceptions for the memt server.

Two families matter to the connection supervisor:

    - ``ArgumentParseError`` covers every way a client request can be
      malformed.  The supervisor catches this family only, writes
      ``str(exc)`` back to the client as the entire response, and keeps
      serving.
    - ``StartupError``, ``ModelLoadError`` and ``PipelineLoadError`` are
      fatal.  They are raised before the listening socket exists and are
      never caught by a per-connection boundary.

Anything else raised while a connection is being handled is treated as an
unexpected failure: logged, connection dropped, loop continues.
"""

from __future__ import annotations


class MemtServerError(Exception):
    """Base exception for all errors raised by this package."""


# ---------------------------------------------------------------------------
# Request validation (recoverable per connection)
# ---------------------------------------------------------------------------


class ArgumentParseError(MemtServerError):
    """Base exception for a request that failed parsing or validation."""


class KeyCountError(ArgumentParseError):
    """A request key appeared the wrong number of times.

    Args:
        key: Wire key, e.g. ``"beam_size"``.
        expected: Number of occurrences allowed.
        actual: Number of occurrences seen.
        exact: ``True`` when exactly ``expected`` occurrences are required,
            ``False`` when ``expected`` is only an upper bound.
    """

    def __init__(self, key: str, expected: int, actual: int, *, exact: bool = False) -> None:
        bound = "" if exact else "at most "
        super().__init__(f"Expected {key} {bound}{expected} time(s), got it {actual}.")
        self.key = key
        self.expected = expected
        self.actual = actual


class MandatoryKeyCountError(KeyCountError):
    """A mandatory request key was missing or duplicated."""

    def __init__(self, key: str, expected: int = 1, actual: int = 0) -> None:
        super().__init__(key, expected, actual, exact=True)


class UnknownKeyError(ArgumentParseError):
    """The request named a key that is not part of the request grammar."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Unrecognised option '{key}'.")
        self.key = key


class MalformedRequestError(ArgumentParseError):
    """A request line could not be read as a ``key = value`` assignment."""

    def __init__(self, line_number: int, line: str, reason: str = "expected key=value") -> None:
        super().__init__(f"Malformed request line {line_number}: {line!r} ({reason}).")
        self.line_number = line_number
        self.line = line
        self.reason = reason


class RequestValueError(ArgumentParseError):
    """A request value could not be converted to the field's type."""

    def __init__(self, key: str, value: object, reason: str) -> None:
        super().__init__(f"Invalid value {value!r} for {key}: {reason}")
        self.key = key
        self.value = value
        self.reason = reason


class BadConfidenceFormat(ArgumentParseError):
    """``input.confidence`` did not parse completely as numbers."""

    def __init__(self, provided: str) -> None:
        super().__init__(f'Bad confidence string: "{provided}"')
        self.provided = provided


class RequestTooLargeError(ArgumentParseError):
    """The request body exceeded the configured size bound."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Request exceeds {limit} bytes.")
        self.limit = limit


# ---------------------------------------------------------------------------
# Startup (fatal)
# ---------------------------------------------------------------------------


class StartupError(MemtServerError):
    """Base exception for invalid process-level startup options."""


class MissingOrDuplicateOption(StartupError):
    """A startup option was not supplied the required number of times."""

    def __init__(self, key: str, expected: int, actual: int) -> None:
        super().__init__(f"Expected --{key} {expected} time(s), got it {actual}.")
        self.key = key
        self.expected = expected
        self.actual = actual


class InvalidOptionValue(StartupError):
    """A startup option value could not be converted or is out of range."""

    def __init__(self, key: str, value: str, reason: str) -> None:
        super().__init__(f"Invalid value {value!r} for --{key}: {reason}")
        self.key = key
        self.value = value
        self.reason = reason


class UnknownBackend(StartupError):
    """``lm.type`` named a language-model backend that does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f'lm.type "{name}" is not sri or salm.')
        self.name = name


class ModelLoadError(MemtServerError):
    """The language model could not be loaded.

    Args:
        backend: Backend name (``"sri"`` or ``"salm"``).
        path: Model file that was being read.
        reason: Human-readable cause.
    """

    def __init__(self, backend: str, path: str, reason: str) -> None:
        super().__init__(f"Failed to load {backend} model from {path}: {reason}")
        self.backend = backend
        self.path = path
        self.reason = reason


class PipelineLoadError(MemtServerError):
    """The configured decode pipeline factory could not be imported."""

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"Cannot load decode pipeline {target!r}: {reason}")
        self.target = target
        self.reason = reason
