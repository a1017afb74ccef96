"""Unit tests for HTTP response serialization."""

from pathlib import Path

import pytest

from response import HTTPResponse


def test_response_serialization_sets_length_and_default_content_type() -> None:
    response = HTTPResponse(status_code=200, body="hello")

    raw = response.to_bytes()

    assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Type: text/plain; charset=utf-8\r\n" in raw
    assert b"Content-Length: 5\r\n" in raw
    assert b"Server: dirshare/1.0\r\n" in raw
    assert raw.endswith(b"\r\n\r\nhello")


def test_unauthorized_reason_phrase() -> None:
    raw = HTTPResponse(status_code=401, body="Unauthorized").to_bytes()

    assert raw.startswith(b"HTTP/1.1 401 Unauthorized\r\n")


def test_file_body_uses_file_size_and_closes(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"0123456789")
    file_obj = path.open("rb")
    response = HTTPResponse(status_code=200, file_obj=file_obj)

    raw = response.to_bytes()

    assert b"Content-Length: 10\r\n" in raw
    assert raw.endswith(b"\r\n\r\n0123456789")
    assert file_obj.closed
    assert response.file_obj is None


def test_head_style_override_keeps_length_without_body() -> None:
    response = HTTPResponse(status_code=200, body=b"", content_length_override=42)

    raw = response.to_bytes()

    assert b"Content-Length: 42\r\n" in raw
    assert raw.endswith(b"\r\n\r\n")


def test_body_and_file_are_mutually_exclusive(tmp_path: Path) -> None:
    path = tmp_path / "x"
    path.write_bytes(b"x")
    with path.open("rb") as file_obj, pytest.raises(ValueError):
        HTTPResponse(status_code=200, body="x", file_obj=file_obj)
