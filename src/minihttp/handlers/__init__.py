"""
=============================================================================
HANDLERS MODULE
=============================================================================

Built-in request handling that isn't application code.

Right now that's one thing: the static file resolver, which answers every
request the route table doesn't claim.

    from minihttp.handlers import StaticFileResolver

    resolver = StaticFileResolver("./public")
    result = resolver.resolve("/index.html")

=============================================================================
"""

from .static import StaticFileResolver, StaticResult, NOT_FOUND

__all__ = [
    "StaticFileResolver",
    "StaticResult",
    "NOT_FOUND",
]
