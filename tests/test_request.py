"""Unit tests for HTTP request parsing."""

import pytest

from request import HTTPRequest, HTTPRequestParseError


def test_parse_get_with_query_params() -> None:
    raw = (
        b"GET /sub/b.txt?auth=xyz&auth=other&x= HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"User-Agent: pytest\r\n"
        b"\r\n"
    )

    request = HTTPRequest.from_bytes(raw)

    assert request.method == "GET"
    assert request.path == "/sub/b.txt"
    assert request.http_version == "HTTP/1.1"
    assert request.headers["host"] == "localhost"
    assert request.query_params == {"auth": ["xyz", "other"], "x": [""]}
    assert request.keep_alive is True


def test_path_keeps_percent_encoding() -> None:
    raw = b"GET /%2E%2E/etc/passwd HTTP/1.1\r\nHost: localhost\r\n\r\n"

    request = HTTPRequest.from_bytes(raw)

    assert request.path == "/%2E%2E/etc/passwd"


def test_query_values_are_decoded() -> None:
    raw = b"GET /?auth=a%20b%2Bc HTTP/1.1\r\nHost: localhost\r\n\r\n"

    request = HTTPRequest.from_bytes(raw)

    assert request.query_params == {"auth": ["a b+c"]}


def test_http10_defaults_to_close() -> None:
    request = HTTPRequest.from_bytes(b"GET / HTTP/1.0\r\n\r\n")

    assert request.keep_alive is False


def test_parse_invalid_request_line_raises_value_error() -> None:
    raw = b"BROKEN-LINE\r\nHost: localhost\r\n\r\n"

    with pytest.raises(ValueError, match="Invalid request line"):
        HTTPRequest.from_bytes(raw)


def test_extension_method_is_parsed() -> None:
    raw = b"PROPFIND /docs/ HTTP/1.1\r\nHost: localhost\r\nDepth: 1\r\n\r\n"

    request = HTTPRequest.from_bytes(raw)

    assert request.method == "PROPFIND"
    assert request.path == "/docs/"


def test_method_with_separator_characters_is_rejected() -> None:
    raw = b"GE(T) / HTTP/1.1\r\nHost: localhost\r\n\r\n"

    with pytest.raises(HTTPRequestParseError, match="Invalid method token") as exc_info:
        HTTPRequest.from_bytes(raw)

    assert exc_info.value.status_code == 400


def test_missing_host_on_http11_is_rejected() -> None:
    with pytest.raises(HTTPRequestParseError, match="Host header required"):
        HTTPRequest.from_bytes(b"GET / HTTP/1.1\r\n\r\n")


def test_chunked_request_body_is_not_supported() -> None:
    raw = (
        b"POST / HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Transfer-Encoding: chunked\r\n"
        b"\r\n"
        b"0\r\n\r\n"
    )

    with pytest.raises(HTTPRequestParseError) as exc_info:
        HTTPRequest.from_bytes(raw)

    assert exc_info.value.status_code == 501


def test_parse_invalid_content_length_raises_value_error() -> None:
    raw = (
        b"POST /upload HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"Content-Length: abc\r\n"
        b"\r\n"
        b"name=test"
    )

    with pytest.raises(ValueError, match="Invalid Content-Length"):
        HTTPRequest.from_bytes(raw)
