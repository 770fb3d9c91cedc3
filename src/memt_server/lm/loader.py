"""Load-once model selection.

``load_model`` is called exactly once, by ``memt-server run``, before the
listening socket is opened.  The returned handle is passed explicitly into
the server and shared read-only by every connection; nothing else holds
or replaces it.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from memt_server.errors import UnknownBackend
from memt_server.lm.base import Backend, LanguageModel
from memt_server.lm.salm import SuffixArrayModel
from memt_server.lm.sri import SRIModel

logger = logging.getLogger(__name__)

_BACKENDS: dict[Backend, type] = {
    Backend.SRI: SRIModel,
    Backend.SALM: SuffixArrayModel,
}


def load_model(backend: Backend | str, file: str | Path, order: int) -> LanguageModel:
    """Load the language model for the process lifetime.

    Args:
        backend: ``Backend`` member or its string value.
        file: Model file (ARPA for ``sri``, corpus text for ``salm``).
        order: n-gram order.

    Returns:
        The loaded, immutable model.

    Raises:
        UnknownBackend: If *backend* is not ``sri`` or ``salm``.
        ModelLoadError: If the file cannot be loaded.
    """
    try:
        backend = Backend(backend)
    except ValueError:
        raise UnknownBackend(str(backend)) from None

    started = time.monotonic()
    logger.info("Loading %s model from %s (order %d)", backend, file, order)
    model = _BACKENDS[backend].load(file, order)
    logger.info("Model ready in %.2fs", time.monotonic() - started)
    return model
