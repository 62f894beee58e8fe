"""
=============================================================================
STATIC FILE RESOLVER
=============================================================================

Serves files from a root directory when no route matches a request.

=============================================================================
RESOLUTION RULES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        resolve(path)                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   "/" or ""          → HTML listing of the root's entries   200      │
    │                        (root missing                        404)     │
    │                                                                      │
    │   not in allow-list  → (only when an allow-list is set)     404      │
    │                                                                      │
    │   anything else      → percent-decode, join with root, resolve       │
    │        │                                                             │
    │        ├── escapes root?            ──────────────────────► 404      │
    │        ├── not an existing file?    ──────────────────────► 404      │
    │        ├── templated page?          → substitute token ───► 200      │
    │        └── otherwise                → bytes verbatim ─────► 200      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every 404 looks the same: empty body, text/plain. A client can't tell
"outside the root" from "doesn't exist", which is the point.

=============================================================================
PATH TRAVERSAL
=============================================================================

The classic attack:

    GET /../../etc/passwd HTTP/1.1

Naively joining that with the root walks right out of it. We join, then
RESOLVE (collapsing ".." and following symlinks), then check the result
is still inside the resolved root with Path.relative_to(). Checking the
resolved path instead of scanning for ".." also catches symlinks inside
the root that point outside it, and percent-encoded tricks like
"/%2e%2e/secret" since decoding happens before the join.

=============================================================================
TEMPLATED PAGES
=============================================================================

Some pages are served with a placeholder replaced by the current
server-local time:

    <p>Rendered at {time}</p>   →   <p>Rendered at 2026-10-19T14:03:27.512904</p>

Substitution happens before the length is computed, so Content-Length is
always right. Every other file is served byte for byte.

=============================================================================
"""

import html
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Union
from urllib.parse import quote, unquote

from ..http.mime_types import get_mime_type
from ..http.status_codes import HTTPStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StaticResult:
    """What the resolver decided: status, Content-Type and body."""

    status: HTTPStatus
    mime_type: str
    body: bytes

    @property
    def content_length(self) -> int:
        return len(self.body)


NOT_FOUND = StaticResult(HTTPStatus.NOT_FOUND, "text/plain", b"")


class StaticFileResolver:
    """
    Maps URL paths to files under a sandboxed root directory.

    Usage:
        resolver = StaticFileResolver("./public")
        result = resolver.resolve("/index.html")
        send_response(out, result.status, result.content_length,
                      result.mime_type, result.body)
    """

    def __init__(
        self,
        root: Union[str, Path],
        template_paths: Iterable[str] = ("/classic.html",),
        template_token: str = "{time}",
        allowed_paths: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            root: Directory to serve. It's looked up on every request, so it
                  may be created (or removed) while the server runs.
            template_paths: URL paths whose body gets `template_token`
                            replaced by the current timestamp.
            template_token: Placeholder text to replace.
            allowed_paths: Optional allow-list of servable URL paths. None
                           means any existing file under root.
        """
        self.root = Path(root)
        self.template_paths = frozenset(template_paths)
        self.template_token = template_token
        self.allowed_paths = frozenset(allowed_paths) if allowed_paths is not None else None

    def resolve(self, path: str) -> StaticResult:
        """
        Resolve a request path to a result.

        Raises:
            OSError: If an existing file can't be read. The connection
                     handler treats this as fatal for the connection.
        """
        if path in ("", "/"):
            return self._listing()

        if self.allowed_paths is not None and path not in self.allowed_paths:
            return NOT_FOUND

        file_path = self._locate(path)
        if file_path is None:
            return NOT_FOUND

        mime_type = get_mime_type(file_path)

        if self._url_path(file_path) in self.template_paths:
            return StaticResult(HTTPStatus.OK, mime_type, self._render(file_path))

        return StaticResult(HTTPStatus.OK, mime_type, file_path.read_bytes())

    def _locate(self, path: str) -> Optional[Path]:
        """
        Find the regular file for `path`, strictly inside root.

        Returns None if it escapes root or isn't an existing regular file.
        """
        relative = unquote(path).lstrip("/")
        if "\x00" in relative:
            return None

        try:
            root = self.root.resolve()
            candidate = (root / relative).resolve()
        except (OSError, RuntimeError, ValueError) as e:
            # ENAMETOOLONG, or a symlink loop (RuntimeError before 3.13)
            logger.debug(f"Cannot resolve {path!r}: {e}")
            return None

        try:
            candidate.relative_to(root)
        except ValueError:
            logger.warning(f"Path traversal attempt: {path}")
            return None

        try:
            if not candidate.is_file():
                return None
        except OSError as e:
            logger.debug(f"Cannot stat {path!r}: {e}")
            return None

        return candidate

    def _url_path(self, file_path: Path) -> str:
        """Canonical URL path of a located file: "/" + its path under root."""
        return "/" + file_path.relative_to(self.root.resolve()).as_posix()

    def _render(self, file_path: Path) -> bytes:
        # Decode the bytes directly; read_text() would translate CRLF.
        template = file_path.read_bytes().decode("utf-8")
        timestamp = datetime.now().isoformat()
        return template.replace(self.template_token, timestamp).encode("utf-8")

    def _listing(self) -> StaticResult:
        """
        HTML page linking every immediate entry of the root.

        Directories get a trailing slash. Names are escaped for the text
        and percent-quoted for the href.
        """
        if not self.root.is_dir():
            return NOT_FOUND

        entries = []
        for entry in sorted(self.root.iterdir(), key=lambda p: p.name):
            name = entry.name + ("/" if entry.is_dir() else "")
            href = "/" + quote(name)
            entries.append(f'<li><a href="{href}">{html.escape(name)}</a></li>')

        page = (
            "<!DOCTYPE html>\n"
            "<html>\n"
            "<head><title>Index of /</title></head>\n"
            "<body>\n"
            "<h1>Index of /</h1>\n"
            "<ul>\n"
            + "\n".join(entries)
            + "\n</ul>\n"
            "</body>\n"
            "</html>\n"
        )
        return StaticResult(HTTPStatus.OK, "text/html", page.encode("utf-8"))
