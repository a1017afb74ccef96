"""Per-request pipeline: method check, auth gate, path resolution, dispatch."""

from __future__ import annotations

import logging

from auth_gate import require_authorized
from config import ServeConfig
from errors import MethodNotAllowed, NotFound, ServeError, TransferError
from file_transfer import open_file_response
from listing import list_entries, render_listing
from path_resolver import ResolvedTarget, resolve_target
from request import READ_METHODS, HTTPRequest
from response import HTTPResponse

logger = logging.getLogger(__name__)


class RequestRouter:
    """Turns one parsed request into exactly one response.

    Holds nothing but the read-only ``ServeConfig``, so a single instance is
    shared by every worker thread.
    """

    def __init__(self, config: ServeConfig) -> None:
        self.config = config

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        try:
            response = self._route(request)
        except ServeError as exc:
            response = error_response(exc)
        except Exception:
            logger.exception("Unhandled error while routing %s %s", request.method, request.path)
            response = error_response(ServeError())

        if request.method == "HEAD":
            return as_head_response(response)
        return response

    def _route(self, request: HTTPRequest) -> HTTPResponse:
        if request.method not in READ_METHODS:
            raise MethodNotAllowed(request.method)

        require_authorized(request.query_params, self.config.auth)
        target = resolve_target(request.path, self.config.root)

        if target.is_directory:
            return self._serve_directory(request, target)
        return open_file_response(target.path, as_download_name=self.config.root_is_file)

    def _serve_directory(self, request: HTTPRequest, target: ResolvedTarget) -> HTTPResponse:
        if not self.config.listing:
            raise NotFound("Directory listing disabled")
        try:
            entries = list_entries(target.path, self.config.root)
        except OSError as exc:
            logger.error("Could not list %s: %s", target.path, exc)
            raise TransferError("Directory became unreadable") from exc
        return HTTPResponse(
            status_code=200,
            headers={"Content-Type": "text/html; charset=utf-8"},
            body=render_listing(request.path, entries, self.config.auth),
        )


def error_response(exc: ServeError) -> HTTPResponse:
    """Generic response for a failure; never echoes paths or exception text."""
    return HTTPResponse(
        status_code=exc.status_code,
        headers=dict(exc.headers),
        body=exc.public_message,
    )


def as_head_response(get_response: HTTPResponse) -> HTTPResponse:
    content_length = get_response.content_length
    get_response.close()
    return HTTPResponse(
        status_code=get_response.status_code,
        reason_phrase=get_response.reason_phrase,
        headers=dict(get_response.headers),
        body=b"",
        content_length_override=content_length,
    )
