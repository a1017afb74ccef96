"""Low-level socket read/write utilities."""

from __future__ import annotations

import socket
from dataclasses import dataclass

from config import (
    BUFFER_SIZE,
    MAX_BODY_BYTES,
    MAX_HEADER_BYTES,
    MAX_REQUEST_BYTES,
    READ_CHUNK_SIZE,
)
from response import HTTPResponse, prepare_response


class HTTPReadError(Exception):
    """Raised when a client request cannot be safely read from the socket."""


class MalformedRequestError(HTTPReadError):
    """Raised when socket bytes do not form a complete HTTP request."""


class HeaderTooLargeError(HTTPReadError):
    """Raised when HTTP headers exceed configured maximum size."""


class PayloadTooLargeError(HTTPReadError):
    """Raised when request body exceeds configured maximum size."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out while sending request bytes."""


@dataclass(slots=True)
class RequestHeadInfo:
    header_end_index: int
    expected_body_length: int


def _extract_content_length(header_bytes: bytes) -> int:
    headers = header_bytes.decode("iso-8859-1").split("\r\n")
    for line in headers[1:]:
        if not line:
            continue
        if ":" not in line:
            raise MalformedRequestError("Malformed header while reading request")
        name, value = line.split(":", 1)
        if name.strip().lower() == "content-length":
            try:
                parsed_length = int(value.strip())
            except ValueError as exc:
                raise MalformedRequestError("Invalid Content-Length header") from exc
            if parsed_length < 0:
                raise MalformedRequestError("Negative Content-Length header")
            return parsed_length
    return 0


def inspect_http_request_head(buffer: bytes) -> RequestHeadInfo | None:
    """Inspect request headers from an in-memory buffer, if complete."""
    if len(buffer) > MAX_REQUEST_BYTES:
        raise PayloadTooLargeError("Request exceeded MAX_REQUEST_BYTES")

    header_end_index = buffer.find(b"\r\n\r\n")
    if header_end_index == -1:
        if len(buffer) > MAX_HEADER_BYTES:
            raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")
        return None

    if header_end_index + 4 > MAX_HEADER_BYTES:
        raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")

    expected_body_length = _extract_content_length(bytes(buffer[:header_end_index]))
    if expected_body_length > MAX_BODY_BYTES:
        raise PayloadTooLargeError("Body exceeded MAX_BODY_BYTES")

    return RequestHeadInfo(
        header_end_index=header_end_index,
        expected_body_length=expected_body_length,
    )


def extract_http_request_message(buffer: bytes) -> tuple[bytes, bytes] | None:
    """Extract one complete HTTP request from a bytes buffer."""
    head_info = inspect_http_request_head(buffer)
    if head_info is None:
        return None

    request_length = head_info.header_end_index + 4 + head_info.expected_body_length
    if len(buffer) < request_length:
        return None
    return buffer[:request_length], buffer[request_length:]


def read_http_request_message(
    client_socket: socket.socket,
    initial_buffer: bytes = b"",
) -> tuple[bytes, bytes]:
    """Read one HTTP/1.x request and return (request_bytes, leftover_bytes)."""
    buffer = bytearray(initial_buffer)

    while True:
        extracted = extract_http_request_message(bytes(buffer))
        if extracted is not None:
            return extracted

        try:
            chunk = client_socket.recv(max(BUFFER_SIZE, READ_CHUNK_SIZE))
        except socket.timeout as exc:
            raise SocketTimeoutError("Timed out waiting for request bytes") from exc

        if not chunk:
            if not buffer:
                return b"", b""
            raise MalformedRequestError("Connection closed before request completed")

        buffer.extend(chunk)


def write_http_response_message(
    client_socket: socket.socket,
    response: HTTPResponse,
) -> int:
    """Write an HTTPResponse, streaming a file body without loading it whole.

    The response's file object is always closed on return. An ``OSError``
    raised here after the head went out means the client received a
    truncated body; the caller must close the connection.
    """
    try:
        prepared = prepare_response(response)
        client_socket.sendall(prepared.head)
        bytes_sent = len(prepared.head)

        if prepared.body is not None:
            if prepared.body:
                client_socket.sendall(prepared.body)
                bytes_sent += len(prepared.body)
            return bytes_sent

        remaining = prepared.file_size
        if remaining > 0:
            sent = client_socket.sendfile(prepared.file_obj, 0, remaining)
            bytes_sent += sent
            remaining -= sent
        if remaining > 0:
            raise OSError(f"File ended {remaining} bytes short of its advertised length")
        return bytes_sent
    finally:
        response.close()
