"""
Process-level startup options for ``memt-server run``.

The four options are collected with argparse's ``append`` action so that a
repeated flag is counted rather than silently overwritten.  Validation then
runs in a fixed order, and the first problem aborts startup:

    1. cardinality  - lm.file, lm.order, port exactly once; lm.type at most once
    2. conversion   - lm.order a positive integer, port within 0-65535
    3. backend      - lm.type is ``sri`` or ``salm``

All three raise a ``StartupError`` subclass.  The CLI reports it and exits
before the model is loaded or any socket is opened.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from dataclasses import dataclass

from memt_server.errors import InvalidOptionValue, MissingOrDuplicateOption, UnknownBackend
from memt_server.lm.base import Backend

DEFAULT_BACKEND = Backend.SALM

# (option key, argparse dest, mandatory)
_OPTIONS: tuple[tuple[str, str, bool], ...] = (
    ("lm.type", "lm_type", False),
    ("lm.file", "lm_file", True),
    ("lm.order", "lm_order", True),
    ("port", "port", True),
)


@dataclass(frozen=True)
class LMConfig:
    """Language-model selection."""

    type: Backend
    file: str
    order: int


@dataclass(frozen=True)
class ServiceStartupConfig:
    """Validated startup options. Consumed once by the model loader."""

    lm: LMConfig
    port: int


def add_startup_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Register the startup options on *parser* (a ``run`` subparser)."""
    group = parser.add_argument_group("server options")
    group.add_argument(
        "--lm.type",
        dest="lm_type",
        action="append",
        metavar="{sri,salm}",
        help=f"Language model type: sri or salm (default: {DEFAULT_BACKEND})",
    )
    group.add_argument(
        "--lm.file", dest="lm_file", action="append", metavar="PATH", help="File for language model"
    )
    group.add_argument(
        "--lm.order", dest="lm_order", action="append", metavar="N", help="Order of language model"
    )
    group.add_argument("--port", dest="port", action="append", metavar="PORT", help="Listen port")
    return parser


def startup_from_namespace(args: argparse.Namespace) -> ServiceStartupConfig:
    """Validate parsed startup options.

    Raises:
        MissingOrDuplicateOption: Mandatory option absent or any option repeated.
        InvalidOptionValue: ``lm.order`` or ``port`` is not a valid number.
        UnknownBackend: ``lm.type`` is neither ``sri`` nor ``salm``.
    """
    values: dict[str, str] = {}
    for key, dest, mandatory in _OPTIONS:
        given = getattr(args, dest, None) or []
        if len(given) > 1 or (mandatory and not given):
            raise MissingOrDuplicateOption(key, 1, len(given))
        if given:
            values[key] = given[0]

    order = _parse_int("lm.order", values["lm.order"], low=1)
    port = _parse_int("port", values["port"], low=0, high=65535)

    lm_type = values.get("lm.type", DEFAULT_BACKEND.value)
    try:
        backend = Backend(lm_type)
    except ValueError:
        raise UnknownBackend(lm_type) from None

    lm = LMConfig(type=backend, file=values["lm.file"], order=order)
    return ServiceStartupConfig(lm=lm, port=port)


def parse_startup(argv: Sequence[str]) -> ServiceStartupConfig:
    """Parse and validate startup options from an argument vector.

    Args:
        argv: Arguments such as ``["--lm.file=model.arpa", "--lm.order=3", "--port=9000"]``.

    Returns:
        The validated ServiceStartupConfig.
    """
    parser = add_startup_arguments(argparse.ArgumentParser(prog="memt-server run"))
    return startup_from_namespace(parser.parse_args(list(argv)))


def _parse_int(key: str, raw: str, *, low: int, high: int | None = None) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        raise InvalidOptionValue(key, raw, "not an integer") from None
    if value < low or (high is not None and value > high):
        bound = f">= {low}" if high is None else f"between {low} and {high}"
        raise InvalidOptionValue(key, raw, f"must be {bound}")
    return value
