"""Decode dispatch: drive the pipeline once over a request's input.

For each unit the input factory produces from ``input.matched_file``:

    decoder.run -> one-best writer -> oracle writer (only if a prefix was given)

until the factory reports exhaustion.  Failures inside the pipeline are
not caught here; they propagate to the connection boundary, which logs
them and drops the connection without a ``Done`` marker.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack

from memt_server.decode.pipeline import DecodePipeline
from memt_server.lm.base import LanguageModel
from memt_server.protocol.request import RequestConfig

logger = logging.getLogger(__name__)


def run_once(model: LanguageModel, request: RequestConfig, pipeline: DecodePipeline) -> int:
    """Decode every unit of the request's matched input.

    Args:
        model: Process-wide language model (read-only).
        request: Validated request.
        pipeline: Pipeline factories selected at startup.

    Returns:
        Number of units decoded.
    """
    factory = pipeline.input_factory()
    decoder = pipeline.decoder()
    decoded = 0

    with ExitStack() as stack:
        matched = stack.enter_context(open(request.input_matched, encoding="utf-8"))
        one_best_stream = stack.enter_context(
            open(request.output_one_best, "w", encoding="utf-8")
        )
        one_best = pipeline.one_best_writer(one_best_stream)
        stack.callback(one_best.close)

        oracle = None
        if request.oracle_enabled:
            oracle = pipeline.oracle_writer(request.output_oracle_prefix)
            stack.callback(oracle.close)

        while (unit := factory.make(request.text, matched, model.vocabulary)) is not None:
            nbest = decoder.run(request.decoder, model, unit)
            one_best.write(nbest, unit)
            if oracle is not None:
                oracle.write(nbest, unit)
            decoded += 1

    logger.info("Decoded %d unit(s) into %s", decoded, request.output_one_best)
    return decoded
