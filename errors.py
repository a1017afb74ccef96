"""Error taxonomy for request handling and startup."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType


class ServeError(Exception):
    """Per-request failure that maps onto a single HTTP status."""

    status_code = 500
    public_message = "Internal Server Error"
    headers: Mapping[str, str] = MappingProxyType({})


class NotFound(ServeError):
    status_code = 404
    public_message = "Not Found"


class OutOfScope(NotFound):
    """The request path canonicalizes to somewhere outside the served root."""


class Unauthorized(ServeError):
    status_code = 401
    public_message = "Unauthorized"


class MethodNotAllowed(ServeError):
    status_code = 405
    public_message = "Method Not Allowed"
    headers = MappingProxyType({"Allow": "GET, HEAD"})


class TransferError(ServeError):
    """A resolved file could not be opened or read."""


class BindFailure(OSError):
    """No listening socket could be bound; fatal at startup."""
