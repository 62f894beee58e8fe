"""
=============================================================================
HTTP RESPONSE WRITER
=============================================================================

Frames HTTP/1.1 responses and writes them to a connection.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

Every response this server produces has exactly this shape:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                   ← status line              │
    │    Content-Type: text/plain\r\n          ← as given, even if empty  │
    │    Content-Length: 39\r\n                ← as given by the caller   │
    │    Connection: close\r\n                 ← always: one request per  │
    │    \r\n                                     connection              │
    │    Messages handler called with GET method                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

No Date, no Server, no keep-alive. Content-Length is whatever the caller
says; handlers that stream a body of known length can pass the length and
write the bytes themselves.

=============================================================================
THE SINK
=============================================================================

send_response() writes to a "sink": any binary file-like object with
write() and flush(). In the server that's Connection.output, a buffered
writer over the client socket. In tests it's usually io.BytesIO.

It ALWAYS flushes before returning. A handler that returns after calling
send_response() has put every byte on the wire (or in the kernel's send
buffer), which is what lets the connection be closed right after.

=============================================================================
"""

from dataclasses import dataclass
from typing import BinaryIO, Optional, Union

from .status_codes import HTTPStatus

HTTP_VERSION = "HTTP/1.1"

Status = Union[str, HTTPStatus]


def format_status(status: Status) -> str:
    """
    Render a status for the status line.

        >>> format_status("200 OK")
        '200 OK'
        >>> format_status(HTTPStatus.NOT_FOUND)
        '404 Not Found'
    """
    if isinstance(status, HTTPStatus):
        return str(status)
    return status


@dataclass
class HTTPResponse:
    """
    A response to be sent to the client.

    Attributes:
        status:         "200 OK" or an HTTPStatus
        content_type:   Content-Type header value, emitted verbatim
        body:           Body bytes, or None for a header-only response
        content_length: Content-Length header value. Defaults to len(body)
                        (0 when there is no body).
    """

    status: Status = HTTPStatus.OK
    content_type: str = "text/plain"
    body: Optional[bytes] = None
    content_length: Optional[int] = None

    def __post_init__(self):
        if self.content_length is None:
            self.content_length = len(self.body) if self.body is not None else 0

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 200 OK" """
        return f"{HTTP_VERSION} {format_status(self.status)}"

    def header_bytes(self) -> bytes:
        """Status line, the three headers and the blank line."""
        lines = [
            self.status_line,
            f"Content-Type: {self.content_type}",
            f"Content-Length: {self.content_length}",
            "Connection: close",
            "",
            "",
        ]
        return "\r\n".join(lines).encode("iso-8859-1")

    def to_bytes(self) -> bytes:
        """
        Serialize the whole response.

            HTTP/1.1 404 Not Found\r\n
            Content-Type: text/plain\r\n
            Content-Length: 0\r\n
            Connection: close\r\n
            \r\n
        """
        if self.body is None:
            return self.header_bytes()
        return self.header_bytes() + self.body

    def write_to(self, out: BinaryIO) -> None:
        """Write to a sink and flush."""
        out.write(self.header_bytes())
        if self.body is not None:
            out.write(self.body)
        out.flush()


def send_response(
    out: BinaryIO,
    status: Status,
    content_length: int,
    mime_type: str,
    body: Optional[bytes] = None,
) -> None:
    """
    Write a complete response to `out` and flush it.

    This is the contract handlers use to answer a request:

        def messages(request, out):
            content = b"Messages handler called with GET method"
            send_response(out, "200 OK", len(content), "text/plain", content)

    Args:
        out: Binary sink with write() and flush().
        status: "200 OK" style string or HTTPStatus.
        content_length: Value for the Content-Length header.
        mime_type: Value for the Content-Type header. Emitted as given,
                   even when empty.
        body: Body bytes, or None to send headers only.

    Raises:
        OSError: If the peer has gone away. The connection handler logs it
                 and aborts the connection.
    """
    HTTPResponse(
        status=status,
        content_type=mime_type,
        body=body,
        content_length=content_length,
    ).write_to(out)


def send_text(out: BinaryIO, status: Status, text: str, mime_type: str = "text/plain") -> None:
    """Encode `text` as UTF-8 and send it with a matching Content-Length."""
    body = text.encode("utf-8")
    send_response(out, status, len(body), mime_type, body)


def send_not_found(out: BinaryIO) -> None:
    """404 with an empty text/plain body."""
    send_response(out, HTTPStatus.NOT_FOUND, 0, "text/plain")
