"""Language-model backends.

Package structure
-----------------
base.py     Backend enum, Vocabulary, and the LanguageModel interface.
sri.py      SRIModel         — ARPA back-off model (``--lm.type=sri``).
salm.py     SuffixArrayModel — suffix-array corpus model (``--lm.type=salm``).
loader.py   load_model       — picks the backend once at startup.
"""

from memt_server.lm.base import Backend, LanguageModel, Vocabulary
from memt_server.lm.loader import load_model

__all__ = ["Backend", "LanguageModel", "Vocabulary", "load_model"]
