"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything that knows about HTTP, and nothing that knows about sockets:

    request.py       bytes → HTTPRequest
    response.py      status/type/body → bytes on a sink
    status_codes.py  HTTPStatus enum
    router.py        (method, path) → Handler
    mime_types.py    file extension → Content-Type

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, ByteStream, parse_request
from .response import HTTPResponse, send_response, send_text, send_not_found, format_status
from .status_codes import HTTPStatus
from .router import Handler, FunctionHandler, RouteTable
from .mime_types import get_mime_type

__all__ = [
    # Request
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "ByteStream",
    "parse_request",
    # Response
    "HTTPResponse",
    "send_response",
    "send_text",
    "send_not_found",
    "format_status",
    "HTTPStatus",
    # Routing
    "Handler",
    "FunctionHandler",
    "RouteTable",
    # Content types
    "get_mime_type",
]
