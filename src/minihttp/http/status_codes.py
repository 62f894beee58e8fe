"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

The subset of HTTP status codes this server speaks, with reason phrases.

=============================================================================
STATUS CODE CATEGORIES
=============================================================================

    ┌───────────┬──────────────────────────────────────────────────────────┐
    │   Range   │  Meaning                                                 │
    ├───────────┼──────────────────────────────────────────────────────────┤
    │  2xx      │  Success - Request accepted and processed               │
    │  4xx      │  Client Error - Bad request or unknown resource         │
    │  5xx      │  Server Error - Server failed to process                │
    └───────────┴──────────────────────────────────────────────────────────┘

The static resolver only ever answers 200 or 404. Handlers are free to
write any status they like through the response writer; the extra codes
below exist so they don't have to spell reason phrases by hand.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    This enum extends IntEnum, so status codes can be used as integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.OK.phrase
        'OK'
        >>> str(HTTPStatus.NOT_FOUND)
        '404 Not Found'

    str() gives the "<code> <phrase>" form that follows the HTTP version
    on a status line.
    """

    # 2xx SUCCESS
    OK = 200
    CREATED = 201
    ACCEPTED = 202
    NO_CONTENT = 204

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    FOUND = 302
    NOT_MODIFIED = 304

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    PAYLOAD_TOO_LARGE = 413
    REQUEST_HEADER_FIELDS_TOO_LARGE = 431

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    NOT_IMPLEMENTED = 501
    SERVICE_UNAVAILABLE = 503

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

        The reason phrase is the text that appears after the status code
        in an HTTP response line:

            HTTP/1.1 200 OK
                         ^^
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    def __str__(self) -> str:
        return f"{self.value} {self.phrase}"


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.ACCEPTED: "Accepted",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.REQUEST_HEADER_FIELDS_TOO_LARGE: "Request Header Fields Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.NOT_IMPLEMENTED: "Not Implemented",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
