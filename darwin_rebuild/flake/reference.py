"""Flake reference parsing.

A flake reference is URI-like: ``scheme://authority/path?query#attribute``.
Every part but the path is optional; the fragment names the configuration
to build inside the flake.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from darwin_rebuild.errors import FlakeReferenceError

# RFC 3986 appendix B, anchored at the start.
_URI_REFERENCE = re.compile(r"^(([^:/?#]+):)?(//([^/?#]*))?([^?#]*)(\?([^#]*))?(#(.*))?")


@dataclass(frozen=True)
class FlakeReference:
    """The structural parts of a flake reference.

    ``None`` means the delimiter itself was absent, which keeps
    ``file:///x`` (empty authority) distinct from ``file:/x``.
    """

    raw: str
    scheme: str | None = None
    authority: str | None = None
    path: str = ""
    query: str | None = None
    fragment: str | None = None

    @property
    def url(self) -> str:
        """The reference without its fragment."""
        parts = []
        if self.scheme is not None:
            parts.append(f"{self.scheme}:")
        if self.authority is not None:
            parts.append(f"//{self.authority}")
        parts.append(self.path)
        if self.query is not None:
            parts.append(f"?{self.query}")
        return "".join(parts)

    @property
    def attribute(self) -> str | None:
        """The configuration name selected by the fragment, if any."""
        return self.fragment or None


def parse_flake_reference(value: str) -> FlakeReference:
    """Split ``value`` into scheme, authority, path, query and fragment.

    Raises:
        FlakeReferenceError: If ``value`` is empty.
    """
    if not value:
        raise FlakeReferenceError("Flake reference is empty")

    match = _URI_REFERENCE.match(value)
    # The pattern matches any string; the guard only satisfies the type.
    if match is None:
        raise FlakeReferenceError(f"Malformed flake reference: {value}")

    return FlakeReference(
        raw=value,
        scheme=match.group(2),
        authority=match.group(4),
        path=match.group(5) or "",
        query=match.group(7),
        fragment=match.group(9),
    )
