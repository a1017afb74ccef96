"""Bounded worker pool for accepted client sockets."""

from __future__ import annotations

import queue
import socket
import threading
import time
from collections.abc import Callable

ClientAddress = tuple[str, int]
ClientJob = tuple[socket.socket, ClientAddress]
ClientHandler = Callable[[socket.socket, ClientAddress], None]


class ThreadPool:
    """Fixed-size thread pool with a bounded queue and draining shutdown."""

    def __init__(self, worker_count: int, queue_size: int, handler: ClientHandler) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._queue: queue.Queue[ClientJob | None] = queue.Queue(maxsize=queue_size)
        self._closed = threading.Event()
        self._threads: list[threading.Thread] = []
        self._worker_count = worker_count
        self._active_jobs = 0
        self._drain_condition = threading.Condition()

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def threads(self) -> tuple[threading.Thread, ...]:
        return tuple(self._threads)

    def start(self) -> None:
        for index in range(self._worker_count):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"dirshare-worker-{index}",
                daemon=True,
            )
            self._threads.append(worker)
            worker.start()

    def submit(self, client_socket: socket.socket, address: ClientAddress) -> bool:
        """Queue a connection; False means the caller still owns the socket."""
        if self._closed.is_set():
            return False
        try:
            self._queue.put_nowait((client_socket, address))
        except queue.Full:
            return False
        return True

    def wait_for_drain(self, timeout: float | None = None) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._drain_condition:
            while self._active_jobs or not self._queue.empty():
                if deadline is None:
                    self._drain_condition.wait(timeout=0.1)
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._drain_condition.wait(timeout=min(remaining, 0.1))
            return True

    def shutdown(self, *, graceful: bool = False, timeout: float | None = None) -> bool:
        """Stop accepting jobs; with ``graceful`` let queued and running ones finish.

        Returns whether the pool drained completely.
        """
        if self._closed.is_set():
            return True
        self._closed.set()

        drained = True
        if graceful:
            drained = self.wait_for_drain(timeout=timeout)

        for _ in self._threads:
            try:
                self._queue.put_nowait(None)
            except queue.Full:
                break
        for thread in self._threads:
            thread.join(timeout=1.0)
        return drained

    def _worker_loop(self) -> None:
        while True:
            try:
                item = self._queue.get(timeout=0.2)
            except queue.Empty:
                if self._closed.is_set() and self._queue.empty():
                    return
                continue
            if item is None:
                return

            client_socket, address = item
            with self._drain_condition:
                self._active_jobs += 1
            try:
                self._handler(client_socket, address)
            finally:
                with self._drain_condition:
                    self._active_jobs -= 1
                    self._drain_condition.notify_all()
