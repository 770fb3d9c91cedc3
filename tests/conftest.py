"""
Shared pytest fixtures for the memt-server test suite.

This module provides fixtures that are automatically available to all test files:
- Small on-disk language models (ARPA text and a SALM corpus)
- Request bodies built from the mandatory keys plus per-test overrides
- Matched input files in the baseline pipeline's segment format
- A live DecodeServer bound to an ephemeral localhost port

Everything that touches the filesystem lives under ``tmp_path`` so tests
never share output files.
"""

import threading
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from memt_server.config import ServerSettings, ServiceSettings
from memt_server.decode.baseline import build_pipeline
from memt_server.lm.salm import SuffixArrayModel
from memt_server.server.supervisor import DecodeServer

# ============================================================================
# LANGUAGE MODEL FIXTURES
# ============================================================================

ARPA_TEXT = """\
\\data\\
ngram 1=5
ngram 2=4

\\1-grams:
-99\t<s>\t-0.5
-0.5\t</s>
-0.6\tthe\t-0.3
-0.7\tcat\t-0.2
-1.5\t<unk>

\\2-grams:
-0.2\t<s> the
-0.1\tthe cat
-0.3\tcat </s>
-0.9\tthe </s>

\\end\\
"""

CORPUS_TEXT = """\
the cat sat
the dog sat
"""


@pytest.fixture
def arpa_file(tmp_path: Path) -> Path:
    """A bigram ARPA model over {the, cat} with an <unk> entry."""
    path = tmp_path / "model.arpa"
    path.write_text(ARPA_TEXT, encoding="utf-8")
    return path


@pytest.fixture
def corpus_file(tmp_path: Path) -> Path:
    """A two-sentence corpus for the suffix-array backend."""
    path = tmp_path / "model.salm"
    path.write_text(CORPUS_TEXT, encoding="utf-8")
    return path


@pytest.fixture
def salm_model() -> SuffixArrayModel:
    """In-memory trigram model over CORPUS_TEXT."""
    return SuffixArrayModel([line.split() for line in CORPUS_TEXT.splitlines()], order=3)


# ============================================================================
# REQUEST FIXTURES
# ============================================================================

MATCHED_TEXT = """\
the cat sat
the dog sat
a cat sat

the cat
cat the
the cat
"""


@pytest.fixture
def matched_file(tmp_path: Path) -> Path:
    """Two segments, three upstream systems each."""
    path = tmp_path / "in.txt"
    path.write_text(MATCHED_TEXT, encoding="utf-8")
    return path


@pytest.fixture
def make_request(tmp_path: Path, matched_file: Path) -> Callable[..., str]:
    """
    Build a request body.

    Starts from a complete, valid request (the mandatory keys only) and
    applies keyword overrides.  Dots in wire keys are spelled with double
    underscores (``output__nbest=3``); an override of ``None`` drops the key.

    Returns:
        Function returning the request text.
    """

    def _make(**overrides: object) -> str:
        fields: dict[str, object] = {
            "score.lm": "1.0",
            "score.alignment": "1.0",
            "score.ngram": "1.0",
            "score.overlap": "1.0",
            "output.one_best": str(tmp_path / "out.txt"),
            "input.matched_file": str(matched_file),
            "input.confidence": "0.9 0.8 0.95",
        }
        for name, value in overrides.items():
            key = name.replace("__", ".")
            if value is None:
                fields.pop(key, None)
            else:
                fields[key] = value
        return "".join(f"{key}={value}\n" for key, value in fields.items())

    return _make


# ============================================================================
# SERVER FIXTURES
# ============================================================================


@pytest.fixture
def settings() -> ServiceSettings:
    """Default settings bound to localhost."""
    return ServiceSettings(server=ServerSettings(host="127.0.0.1"))


@pytest.fixture
def running_server(
    salm_model: SuffixArrayModel, settings: ServiceSettings
) -> Generator[DecodeServer, None, None]:
    """
    Start a DecodeServer with the baseline pipeline on an ephemeral port.

    The accept loop runs in a daemon thread; the fixture shuts it down and
    closes the socket after the test.

    Yields:
        The running server (``server.port`` is the bound port).
    """
    server = DecodeServer(("127.0.0.1", 0), salm_model, build_pipeline(), settings)
    thread = threading.Thread(target=server.serve_forever, kwargs={"poll_interval": 0.05})
    thread.daemon = True
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)
