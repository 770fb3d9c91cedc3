"""Decode pipeline bundle and its import-path loader.

A pipeline is selected once at startup through ``[decode] pipeline`` (or
``MEMT_PIPELINE``), written as ``"package.module:attribute"``.  The
attribute is either a ``DecodePipeline`` or a zero-argument callable that
returns one.  Import or shape problems raise ``PipelineLoadError``, which
``memt-server run`` treats as fatal, like a model load failure.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from dataclasses import dataclass

from memt_server.decode.interfaces import (
    Decoder,
    InputFactory,
    OneBestWriterFactory,
    OracleWriterFactory,
)
from memt_server.errors import PipelineLoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodePipeline:
    """Factories for the per-request pipeline objects.

    Input factory and decoder are built fresh for every request so that
    no decoding state survives from one connection to the next.
    """

    name: str
    input_factory: Callable[[], InputFactory]
    decoder: Callable[[], Decoder]
    one_best_writer: OneBestWriterFactory
    oracle_writer: OracleWriterFactory


def load_pipeline(target: str) -> DecodePipeline:
    """Import the pipeline named by *target* (``"module:attribute"``).

    Raises:
        PipelineLoadError: Bad target syntax, failed import, missing
            attribute, or an attribute that does not yield a DecodePipeline.
    """
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise PipelineLoadError(target, "expected 'module:attribute'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise PipelineLoadError(target, str(exc)) from exc

    try:
        obj = getattr(module, attribute)
    except AttributeError:
        raise PipelineLoadError(target, f"module has no attribute {attribute!r}") from None

    pipeline = obj() if callable(obj) and not isinstance(obj, DecodePipeline) else obj
    if not isinstance(pipeline, DecodePipeline):
        raise PipelineLoadError(target, f"expected DecodePipeline, got {type(pipeline).__name__}")

    logger.info("Using decode pipeline %r from %s", pipeline.name, target)
    return pipeline
