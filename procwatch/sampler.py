"""Process table access: snapshots of live processes whose name matches a query."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from queue import Empty, Queue

import psutil

from procwatch.config import POLL_TIMEOUT_MS

_ATTRS = ["name", "create_time", "memory_info", "cpu_percent", "io_counters"]


@dataclass(frozen=True)
class ProcessSample:
    """One process as seen in one snapshot."""

    pid: int
    name: str
    run_time: float  # seconds since the process started
    memory: int  # resident set size, bytes
    cpu: float  # fraction of one core since the previous snapshot
    read_bytes: int  # cumulative since process start
    write_bytes: int  # cumulative since process start
    create_time: float | None = None  # epoch seconds, if the OS reported it


class ProcessSampler:
    """Reads matching processes from the OS via psutil.

    A process matches when *query* occurs literally (case-sensitive) in its
    name. CPU usage is measured by psutil since the previous call on the same
    process, so the window is whatever elapsed between two snapshots.
    """

    def snapshot(self, query: str) -> list[ProcessSample]:
        now = time.time()
        found: list[ProcessSample] = []
        for proc in psutil.process_iter(_ATTRS, ad_value=None):
            try:
                info = proc.info
                name: str = info.get("name") or ""
                if query not in name:
                    continue

                create_time = info.get("create_time")
                run_time = max(0.0, now - create_time) if create_time else 0.0
                mem_info = info.get("memory_info")
                io = info.get("io_counters")
                cpu: float = info.get("cpu_percent") or 0.0

                found.append(
                    ProcessSample(
                        pid=proc.pid,
                        name=name,
                        run_time=run_time,
                        memory=mem_info.rss if mem_info else 0,
                        cpu=cpu / 100.0,
                        read_bytes=io.read_bytes if io else 0,
                        write_bytes=io.write_bytes if io else 0,
                        create_time=create_time or None,
                    )
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return found


class ThreadedSampler:
    """Samples on a daemon thread at a fixed cadence.

    Decouples the CPU measurement window from drawing and key handling.
    :meth:`snapshot` drains the queue and returns only the newest snapshot,
    or None if nothing arrived since the last call. If the wrapped sampler
    raises, the thread stops and the next :meth:`snapshot` re-raises.
    """

    INTERVAL = POLL_TIMEOUT_MS / 1000

    def __init__(self, sampler: ProcessSampler | None = None) -> None:
        self._query = ""
        self._sampler = sampler or ProcessSampler()
        self._queue: Queue[list[ProcessSample]] = Queue()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._error: Exception | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, query: str) -> None:
        if self.is_running:
            return
        self._query = query
        self._error = None
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="ProcessSampler",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def snapshot(self, query: str) -> list[ProcessSample] | None:
        """Newest snapshot for *query* taken since the previous call, if any."""
        if query != self._query:
            raise ValueError(f"sampler is watching {self._query!r}, not {query!r}")
        if self._error is not None:
            raise self._error
        snapshot = None
        while True:
            try:
                snapshot = self._queue.get_nowait()
            except Empty:
                return snapshot

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                snapshot = self._sampler.snapshot(self._query)
            except Exception as e:
                self._error = e
                return
            self._queue.put(snapshot)
            self._stop_event.wait(timeout=self.INTERVAL)
