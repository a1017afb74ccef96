"""Tests for the bounded worker pool."""

import socket
import threading
import time

from thread_pool import ThreadPool


def _socket_pair() -> socket.socket:
    left, right = socket.socketpair()
    right.close()
    return left


def test_thread_pool_starts_fixed_worker_count() -> None:
    pool = ThreadPool(worker_count=3, queue_size=4, handler=lambda _sock, _addr: None)
    pool.start()

    try:
        assert pool.worker_count == 3
        assert len(pool.threads) == 3
        assert all(thread.is_alive() for thread in pool.threads)
    finally:
        pool.shutdown()


def test_thread_pool_submit_returns_false_when_full() -> None:
    pool = ThreadPool(worker_count=1, queue_size=1, handler=lambda _sock, _addr: None)
    first, second = _socket_pair(), _socket_pair()
    try:
        assert pool.submit(first, ("127.0.0.1", 0)) is True
        assert pool.submit(second, ("127.0.0.1", 1)) is False
    finally:
        first.close()
        second.close()


def test_graceful_shutdown_waits_for_running_job() -> None:
    finished = threading.Event()

    def _slow(client_socket: socket.socket, _addr: tuple[str, int]) -> None:
        time.sleep(0.3)
        client_socket.close()
        finished.set()

    pool = ThreadPool(worker_count=1, queue_size=2, handler=_slow)
    pool.start()
    assert pool.submit(_socket_pair(), ("127.0.0.1", 0))
    time.sleep(0.05)

    drained = pool.shutdown(graceful=True, timeout=2.0)

    assert drained is True
    assert finished.is_set()


def test_graceful_shutdown_reports_timeout() -> None:
    release = threading.Event()

    def _blocked(client_socket: socket.socket, _addr: tuple[str, int]) -> None:
        release.wait(timeout=3.0)
        client_socket.close()

    pool = ThreadPool(worker_count=1, queue_size=2, handler=_blocked)
    pool.start()
    assert pool.submit(_socket_pair(), ("127.0.0.1", 0))
    time.sleep(0.05)

    try:
        assert pool.shutdown(graceful=True, timeout=0.2) is False
    finally:
        release.set()


def test_closed_pool_refuses_work() -> None:
    pool = ThreadPool(worker_count=1, queue_size=1, handler=lambda _sock, _addr: None)
    pool.start()
    pool.shutdown()
    sock = _socket_pair()
    try:
        assert pool.submit(sock, ("127.0.0.1", 0)) is False
    finally:
        sock.close()
