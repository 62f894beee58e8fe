"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the bytes arriving on one connection into a structured HTTPRequest.
Implements the subset of RFC 7230 this server needs.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  ┌─ REQUEST LINE ─────────────────────────────────────────────────┐ │
    │  │                                                                 │ │
    │  │    GET /messages?last=10&tag=a&tag=b HTTP/1.1\r\n              │ │
    │  │    ─┬─ ─────────────┬─────────────── ────┬───                  │ │
    │  │   Method          Target               Version                 │ │
    │  │                     │                                          │ │
    │  │          ┌──────────┴──────────┐                               │ │
    │  │        Path             Query String                           │ │
    │  │     /messages       last=10&tag=a&tag=b                        │ │
    │  │                                                                 │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ HEADERS ──────────────────────────────────────────────────────┐ │
    │  │    Host: localhost:9999\r\n                                     │ │
    │  │    Content-Length: 5\r\n                                        │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ EMPTY LINE ───────────────────────────────────────────────────┐ │
    │  │    \r\n                                                         │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    │  ┌─ BODY (optional) ──────────────────────────────────────────────┐ │
    │  │    hello                                                        │ │
    │  └─────────────────────────────────────────────────────────────────┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
READING THE BODY WITHOUT HANGING
=============================================================================

A server that reads "until the client is done" will wait forever on a
client that sends headers and then waits for the answer. Two rules keep
the parser from blocking on a body that will never come:

    Content-Length: N present  →  read exactly N bytes (they were promised)
    Content-Length absent      →  take only what has ALREADY arrived,
                                  never ask the peer for more

The second rule can truncate a body that was sent late and unannounced.
Clients that send bodies should send Content-Length.

=============================================================================
STREAMS
=============================================================================

The parser doesn't touch sockets. It reads from a "stream": any object
with these three methods:

    read_line(limit)   → one line without its CRLF, or None at EOF
    read_exact(n)      → up to n bytes (fewer only if the peer closed)
    read_available(n)  → up to n bytes that can be had right now, no blocking

Connection (core/connection.py) implements them over a socket; ByteStream
below implements them over an in-memory bytes object, which is what
parse_request() and the unit tests use.

=============================================================================
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple
from urllib.parse import parse_qs


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    The connection handler answers parse failures by dropping the
    connection without a response, so status_code is informational:
    it records what a more talkative server would have replied.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request. Immutable once built.

    Attributes:
        method:        Request method exactly as sent ("GET", "POST", ...)
        path:          Target path without query string. NOT percent-decoded,
                       so route lookup compares exactly what the client sent.
        version:       HTTP version string ("HTTP/1.1")
        headers:       Read-only mapping, lowercase names. A repeated header
                       keeps its last value.
        query_params:  Read-only mapping of name → tuple of values.
                       "?a=1&a=2&b=" → {"a": ("1", "2"), "b": ("",)}
        body:          Raw body bytes (b"" when there is none)
        client_address: (ip, port) of the peer, for logging
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Mapping[str, str] = field(default_factory=dict)
    query_params: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    body: bytes = b""
    client_address: Tuple[str, int] = ("", 0)

    def __post_init__(self):
        # Freeze the containers too, not just the attribute bindings.
        headers = {name.lower(): value for name, value in self.headers.items()}
        query = {name: tuple(values) for name, values in self.query_params.items()}
        object.__setattr__(self, "headers", MappingProxyType(headers))
        object.__setattr__(self, "query_params", MappingProxyType(query))

    @property
    def content_length(self) -> Optional[int]:
        """Declared Content-Length, or None if absent or not a number."""
        try:
            return int(self.headers["content-length"])
        except (KeyError, ValueError):
            return None

    @property
    def text(self) -> str:
        """The body decoded as UTF-8 (undecodable bytes replaced)."""
        return self.body.decode("utf-8", errors="replace")

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get the first value of a query parameter.

        Example:
            # URL: /messages?page=1&page=2
            request.get_query("page")  # Returns "1"
        """
        values = self.query_params.get(name, ())
        return values[0] if values else default

    def get_query_list(self, name: str) -> list[str]:
        """Get every value of a query parameter, in order."""
        return list(self.query_params.get(name, ()))


class ByteStream:
    """
    In-memory stream over a bytes object.

    Implements the same read_line / read_exact / read_available trio as
    Connection, so the parser can be driven without a socket.
    """

    def __init__(self, data: bytes):
        self._data = data
        self._pos = 0

    def read_line(self, limit: int = 65536) -> Optional[bytes]:
        if self._pos >= len(self._data):
            return None

        end = self._data.find(b"\n", self._pos)
        if end == -1:
            end = len(self._data)
            line = self._data[self._pos:end]
            self._pos = end
        else:
            line = self._data[self._pos:end]
            self._pos = end + 1

        if len(line) > limit:
            raise ValueError(f"Line too long: {len(line)} bytes")

        return line[:-1] if line.endswith(b"\r") else line

    def read_exact(self, n: int) -> bytes:
        chunk = self._data[self._pos:self._pos + n]
        self._pos += len(chunk)
        return chunk

    def read_available(self, limit: Optional[int] = None) -> bytes:
        remaining = len(self._data) - self._pos
        return self.read_exact(remaining if limit is None else min(limit, remaining))


class RequestParser:
    """
    Parses one HTTP request from a stream.

    ==========================================================================
    PARSER ARCHITECTURE
    ==========================================================================

        stream
          │
          ├──► _parse_request_line()   "GET /x?y=1 HTTP/1.1"
          │        └── method, path, query_params, version
          │
          ├──► _parse_headers()        "Name: value" until blank line
          │        └── headers
          │
          └──► _read_body()            Content-Length or already-buffered
                   └── body
                          │
                          ▼
                     HTTPRequest

    Every failure raises HTTPParseError. There is no partial result.

    ==========================================================================
    SECURITY CONSIDERATIONS
    ==========================================================================

    Three limits bound the memory one connection can make us hold:

    - max_line_size:    request line and each header line
    - max_header_count: number of header lines
    - max_body_size:    declared Content-Length

    Path traversal is NOT checked here: the path is data. The static
    resolver is what touches the filesystem, so that's where confinement
    to the root directory is enforced.
    ==========================================================================
    """

    HEADER_SEPARATOR = ": "

    def __init__(
        self,
        max_line_size: int = 8192,
        max_header_count: int = 100,
        max_body_size: int = 10 * 1024 * 1024,
    ):
        self.max_line_size = max_line_size
        self.max_header_count = max_header_count
        self.max_body_size = max_body_size

    def parse(self, stream, client_address: Tuple[str, int] = ("", 0)) -> HTTPRequest:
        """
        Read one request from `stream`.

        Args:
            stream: Object with read_line / read_exact / read_available.
            client_address: Peer (ip, port), carried into the request.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed or the peer went away
                            before sending a request line.
        """
        line = self._read_line(stream)
        if line is None:
            raise HTTPParseError("Connection closed before request line")

        method, path, query_params, version = self._parse_request_line(line)
        headers = self._parse_headers(stream)
        body = self._read_body(stream, headers)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
        )

    def _read_line(self, stream) -> Optional[str]:
        try:
            raw = stream.read_line(self.max_line_size)
        except ValueError as e:
            raise HTTPParseError(str(e), status_code=431) from e

        if raw is None:
            return None

        # ISO-8859-1 maps every byte, so decoding never fails.
        return raw.decode("iso-8859-1")

    def _parse_request_line(self, line: str) -> tuple[str, str, dict, str]:
        """
        Parse "METHOD SP TARGET SP VERSION".

        Anything other than exactly three space-separated tokens is
        rejected, including doubled spaces (which produce an empty token).
        """
        parts = line.split(" ")
        if len(parts) != 3 or not all(parts):
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = parts

        # Split target into path and query string. No percent-decoding of
        # the path: routes are matched on exactly what was sent.
        path, _, query = target.partition("?")
        query_params = parse_qs(query, keep_blank_values=True) if query else {}

        return method, path, query_params, version

    def _parse_headers(self, stream) -> dict[str, str]:
        """
        Parse header lines up to the blank line.

        Each line is split on the first ": ". End of stream also ends the
        header block; a request cut off there simply has no body.
        """
        headers: dict[str, str] = {}
        count = 0

        while True:
            line = self._read_line(stream)
            if not line:
                return headers

            count += 1
            if count > self.max_header_count:
                raise HTTPParseError("Too many headers", status_code=431)

            name, sep, value = line.partition(self.HEADER_SEPARATOR)
            if not sep or not name:
                raise HTTPParseError(f"Invalid header line: {line!r}")

            # Last write wins on duplicates.
            headers[name.lower()] = value

    def _read_body(self, stream, headers: dict[str, str]) -> bytes:
        raw_length = headers.get("content-length")

        if raw_length is None:
            return stream.read_available(self.max_body_size)

        try:
            length = int(raw_length.strip())
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw_length!r}")

        if length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {raw_length!r}")
        if length > self.max_body_size:
            raise HTTPParseError(f"Body too large: {length} bytes", status_code=413)

        body = stream.read_exact(length)
        if len(body) < length:
            raise HTTPParseError(
                f"Incomplete body: expected {length} bytes, got {len(body)}"
            )
        return body


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    parser: Optional[RequestParser] = None,
) -> HTTPRequest:
    """
    Convenience function to parse a request held in memory.

    Args:
        data: Raw HTTP request bytes.
        client_address: Client's (ip, port) tuple.
        parser: Parser to use; a default-configured one if omitted.

    Returns:
        Parsed HTTPRequest object.
    """
    parser = parser or RequestParser()
    return parser.parse(ByteStream(data), client_address)
