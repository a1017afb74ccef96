"""Main HTTP server entry point and connection lifecycle orchestration."""

from __future__ import annotations

import argparse
import json
import logging
import selectors
import signal
import socket
import sys
import threading
import time
from collections.abc import Iterable

from config import (
    BUFFER_SIZE,
    KEEPALIVE_TIMEOUT_SECS,
    LOG_FORMATS,
    MAX_KEEPALIVE_REQUESTS,
    PORT_RANGE,
    SOCKET_TIMEOUT_SECS,
    ConfigError,
    ServeConfig,
    load_config,
)
from errors import BindFailure
from request import HTTPRequest, HTTPRequestParseError
from response import REASON_PHRASES, HTTPResponse
from router import RequestRouter
from shutdown import ShutdownController, ShutdownState, signal_handler, watch_stdin
from socket_handler import (
    HTTPReadError,
    HeaderTooLargeError,
    MalformedRequestError,
    PayloadTooLargeError,
    SocketTimeoutError,
    read_http_request_message,
    write_http_response_message,
)
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)

_READ_ERROR_STATUS: dict[type[Exception], int] = {
    PayloadTooLargeError: 413,
    HeaderTooLargeError: 431,
    SocketTimeoutError: 408,
    MalformedRequestError: 400,
}


def bind_listener(host: str, port: int | None, port_range: Iterable[int] = PORT_RANGE) -> socket.socket:
    """Bind ``host:port``; with no port, take the first free one in ``port_range``."""
    candidates = list(port_range) if port is None else [port]
    last_error: OSError | None = None
    for candidate in candidates:
        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((host, candidate))
            server_socket.listen(128)
        except OSError as exc:
            server_socket.close()
            last_error = exc
            continue
        return server_socket

    if port is None:
        raise BindFailure(f"No free port on {host} in range {candidates[0]}-{candidates[-1]}")
    raise BindFailure(f"Cannot bind {host}:{port}: {last_error}")


def _drain_before_close(client_socket: socket.socket, timeout: float = 1.0) -> None:
    """Half-close, then discard unread request bytes so close() does not reset the reply."""
    client_socket.shutdown(socket.SHUT_WR)
    client_socket.settimeout(timeout)
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            if not client_socket.recv(BUFFER_SIZE):
                return
        except socket.timeout:
            return


class HTTPServer:
    def __init__(
        self,
        config: ServeConfig,
        *,
        shutdown: ShutdownController | None = None,
        router: RequestRouter | None = None,
        keepalive_timeout_secs: int = KEEPALIVE_TIMEOUT_SECS,
    ) -> None:
        self.config = config
        self.host = config.host
        self.port = 0
        self.router = router or RequestRouter(config)
        self.shutdown = shutdown or ShutdownController(config.shutdown_after)
        self.keepalive_timeout_secs = keepalive_timeout_secs
        self.ready = threading.Event()
        self._pool: ThreadPool | None = None
        self._server_socket: socket.socket | None = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    def start(self) -> None:
        """Bind, then serve until the shutdown signal fires; blocks the caller."""
        self.bind()
        self.serve_forever()

    def bind(self) -> None:
        """Raises ``BindFailure`` before anything is served if no socket can be bound."""
        try:
            self._server_socket = bind_listener(self.host, self.config.port)
        except BindFailure:
            self.shutdown.mark_stopped()
            raise
        self._server_socket.setblocking(False)
        self.port = self._server_socket.getsockname()[1]

    def serve_forever(self) -> None:
        if self._server_socket is None:
            raise RuntimeError("bind() must be called before serve_forever()")
        server_socket = self._server_socket
        with server_socket, selectors.DefaultSelector() as selector:
            selector.register(server_socket, selectors.EVENT_READ, data="accept")
            selector.register(self.shutdown, selectors.EVENT_READ, data="shutdown")

            self._pool = ThreadPool(
                worker_count=self.config.worker_count,
                queue_size=self.config.request_queue_size,
                handler=self._handle_client,
            )
            self._pool.start()
            self.shutdown.start()
            self.ready.set()
            logger.info("Serving %s on %s", self.config.root, self.url)

            try:
                self._accept_loop(server_socket, selector)
            finally:
                selector.unregister(server_socket)
                selector.unregister(self.shutdown)
                self._server_socket = None

        # The listening socket is closed here; only accepted connections remain.
        drained = self._pool.shutdown(graceful=True, timeout=self.config.drain_timeout_secs)
        if not drained:
            logger.warning(
                "In-flight connections still open after %.1fs drain",
                self.config.drain_timeout_secs,
            )
        self._pool = None
        self.shutdown.mark_stopped()

    def stop(self) -> None:
        self.shutdown.trigger("stop")

    def _accept_loop(self, server_socket: socket.socket, selector: selectors.BaseSelector) -> None:
        while not self.shutdown.is_set():
            for key, _mask in selector.select():
                if key.data == "shutdown":
                    return
                try:
                    client_socket, address = server_socket.accept()
                except (BlockingIOError, InterruptedError):
                    continue
                except OSError:
                    logger.exception("accept() failed")
                    continue

                if self.shutdown.is_set():
                    client_socket.close()
                    return
                if self._pool is None or not self._pool.submit(client_socket, address):
                    self._reject_overflow(client_socket, address)

    def _reject_overflow(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        """Answer 503 on a short-lived thread so the accept loop keeps watching for shutdown."""
        threading.Thread(
            target=self._send_simple_response,
            args=(client_socket, address, 503),
            name="dirshare-reject",
            daemon=True,
        ).start()

    def _send_simple_response(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        status_code: int,
        *,
        started_at: float | None = None,
    ) -> None:
        started_at = time.perf_counter() if started_at is None else started_at
        response = HTTPResponse(
            status_code=status_code,
            headers={"Connection": "close"},
            body=REASON_PHRASES.get(status_code, "Bad Request"),
        )
        with client_socket:
            try:
                client_socket.settimeout(SOCKET_TIMEOUT_SECS)
                bytes_sent = write_http_response_message(client_socket, response)
                _drain_before_close(client_socket)
            except OSError:
                return
        self._log_access(address, "-", "-", status_code, bytes_sent, started_at)

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        with client_socket:
            client_socket.settimeout(min(SOCKET_TIMEOUT_SECS, self.keepalive_timeout_secs))
            request_count = 0
            carry = b""
            while request_count < MAX_KEEPALIVE_REQUESTS:
                if request_count and self.shutdown.is_set():
                    return
                started_at = time.perf_counter()
                try:
                    raw_request, carry = read_http_request_message(client_socket, carry)
                except HTTPReadError as exc:
                    if isinstance(exc, SocketTimeoutError) and request_count:
                        return
                    status_code = _READ_ERROR_STATUS.get(type(exc), 400)
                    self._send_simple_response(
                        client_socket, address, status_code, started_at=started_at
                    )
                    return
                except OSError:
                    return

                if not raw_request:
                    return

                try:
                    request = HTTPRequest.from_bytes(raw_request)
                except HTTPRequestParseError as exc:
                    self._send_simple_response(
                        client_socket, address, exc.status_code, started_at=started_at
                    )
                    return

                request_count += 1
                response = self.router.dispatch(request)
                should_close = (
                    not request.keep_alive
                    or request_count >= MAX_KEEPALIVE_REQUESTS
                    or self.shutdown.state is not ShutdownState.RUNNING
                    or response.status_code >= 500
                )
                if should_close:
                    response.headers.setdefault("Connection", "close")
                else:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive",
                        f"timeout={self.keepalive_timeout_secs}, "
                        f"max={MAX_KEEPALIVE_REQUESTS - request_count}",
                    )

                try:
                    bytes_sent = write_http_response_message(client_socket, response)
                except OSError:
                    logger.exception(
                        "Transfer to %s failed for %s %s", address[0], request.method, request.path
                    )
                    return

                self._log_access(
                    address, request.method, request.path, response.status_code, bytes_sent, started_at
                )
                if should_close:
                    return

    def _log_access(
        self,
        address: tuple[str, int],
        method: str,
        path: str,
        status_code: int,
        bytes_out: int,
        started_at: float,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        event = {
            "client": address[0],
            "method": method,
            "path": path,
            "status": status_code,
            "bytes_out": bytes_out,
            "duration_ms": round(duration_ms, 3),
        }
        if self.config.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s bytes_out=%s duration_ms=%.2f",
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["bytes_out"],
            duration_ms,
        )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dirshare",
        description="Share a directory or a single file over HTTP for a limited time",
    )
    parser.add_argument("path", nargs="?", help="directory or file to serve (default: .)")
    parser.add_argument("--host", help="address to listen on (default: 0.0.0.0)")
    parser.add_argument(
        "--port",
        help=f"port to listen on (default: first free in {PORT_RANGE.start}-{PORT_RANGE.stop - 1})",
    )
    parser.add_argument(
        "-t",
        "--shutdown-after",
        metavar="DURATION",
        help="stop serving after e.g. 30s, 10m, 1h30m",
    )
    parser.add_argument("--auth", metavar="KEY=VALUE", help="require ?KEY=VALUE on every request")
    parser.add_argument(
        "--listing",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="generate directory index pages (default: on)",
    )
    parser.add_argument("--log-format", choices=LOG_FORMATS)
    parser.add_argument("--config", help="dotenv-style settings file (default: ./dirshare.env)")
    return parser


def _overrides_from_args(args: argparse.Namespace) -> dict[str, str | None]:
    listing = None
    if args.listing is not None:
        listing = "true" if args.listing else "false"
    return {
        "ROOT": args.path,
        "HOST": args.host,
        "PORT": args.port,
        "SHUTDOWN_AFTER": args.shutdown_after,
        "AUTH": args.auth,
        "LISTING": listing,
        "LOG_FORMAT": args.log_format,
    }


def _print_banner(server: HTTPServer) -> None:
    config = server.config
    print(f"Serving {config.root}")
    print(f"Listening on {server.url}")
    if config.auth is not None:
        print(f"Auth query string: ?{config.auth.query_string}")
        print(f"Open: {server.url}?{config.auth.query_string}")
    if config.shutdown_after is not None:
        print(f"Shutting down after {config.shutdown_after:g}s")
    print("Type 'q' + Enter or press Ctrl+C to stop")
    sys.stdout.flush()


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        config = load_config(_overrides_from_args(args), config_file=args.config)
    except ConfigError as exc:
        parser.error(str(exc))

    server = HTTPServer(config)
    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, signal_handler(server.shutdown))

    if sys.stdin is not None and sys.stdin.isatty():
        watch_stdin(server.shutdown, sys.stdin)

    try:
        server.bind()
    except BindFailure as exc:
        logger.error("%s", exc)
        return 1

    _print_banner(server)
    server.serve_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
