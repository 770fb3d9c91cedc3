"""Decode dispatch and the boundary to the external decode pipeline.

interfaces.py  Protocols the pipeline objects satisfy.
pipeline.py    DecodePipeline bundle and load_pipeline ("module:attr").
dispatch.py    run_once — drives one request through the pipeline.
baseline.py    Default system-selection pipeline.
"""

from memt_server.decode.dispatch import run_once
from memt_server.decode.pipeline import DecodePipeline, load_pipeline

__all__ = ["DecodePipeline", "load_pipeline", "run_once"]
