"""Reader for the ``key = value`` configuration block a client sends.

Grammar (one logical entry per line)::

    # comment                 ignored, as are blank lines
    lm = 1.0  # weight        text from the first "#" on is dropped
    [score]                   following keys are prefixed with "score."
    lm = 1.0                  -> ("score.lm", "1.0")
    []                        clears the prefix
    input.confidence = 0.9 0.8

Keys and values are stripped.  The value is everything after the first
``=``, so it may itself contain spaces or ``=`` but never ``#``.  The
result keeps every occurrence of every key in arrival order; deciding which
counts are legal is the caller's job.
"""

from __future__ import annotations

from collections.abc import Iterable

from memt_server.errors import MalformedRequestError

ConfigBlock = dict[str, list[str]]


def parse_config_block(lines: Iterable[str]) -> ConfigBlock:
    """Parse config-block lines into an ordered ``key -> [values]`` multimap.

    Raises:
        MalformedRequestError: For a non-blank line that is not a comment,
            a section header, or a ``key = value`` assignment.
    """
    block: ConfigBlock = {}
    prefix = ""
    for number, raw in enumerate(lines, start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue

        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip()
            prefix = f"{section}." if section else ""
            continue

        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep:
            raise MalformedRequestError(number, line)
        if not key:
            raise MalformedRequestError(number, line, "empty key")
        block.setdefault(prefix + key, []).append(value.strip())
    return block


def parse_config_text(text: str) -> ConfigBlock:
    """Convenience wrapper over ``parse_config_block`` for a whole string."""
    return parse_config_block(text.splitlines())
