"""Request protocol: what a client sends on a connection and how it is validated.

config_block.py  parse_config_block — ``key = value`` lines into a multimap.
confidence.py    parse_confidences  — strict numeric vector parser.
request.py       RequestFields (field table), RequestConfig (resolved
                 structure) and parse_request, the per-connection entry point.
"""

from memt_server.protocol.confidence import parse_confidences
from memt_server.protocol.config_block import parse_config_block
from memt_server.protocol.request import (
    RequestConfig,
    RequestFields,
    parse_request,
    parse_request_text,
)

__all__ = [
    "RequestConfig",
    "RequestFields",
    "parse_config_block",
    "parse_confidences",
    "parse_request",
    "parse_request_text",
]
