"""Interactive terminal dashboard for processes matching a name.

Every cycle samples the matching processes, updates the registry, lays out
as many records as fit on the screen, draws them and waits briefly for a
key. Sampling, drawing and key handling share one thread unless a
ThreadedSampler is supplied.

Usage:
    uv run procwatch firefox
    python -m procwatch python
"""

from __future__ import annotations

import argparse
import curses
import sys
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Protocol

from procwatch.config import POLL_TIMEOUT_MS, make_config
from procwatch.entry import Detail
from procwatch.layout import plan
from procwatch.registry import EntryRegistry
from procwatch.render import draw_record, init_colors
from procwatch.sampler import ProcessSample, ProcessSampler, ThreadedSampler

KEY_CTRL_C = 3


class Sampler(Protocol):
    def snapshot(self, query: str) -> list[ProcessSample] | None: ...


class LoopState(Enum):
    RUNNING = "running"
    STOPPED = "stopped"


class Command(Enum):
    QUIT = "quit"
    RESET = "reset"
    EXPAND_ALL = "expand-all"
    CONDENSE_ALL = "condense-all"


KEYMAP: dict[int, Command] = {
    ord("q"): Command.QUIT,
    KEY_CTRL_C: Command.QUIT,
    ord("r"): Command.RESET,
    ord("E"): Command.EXPAND_ALL,
    ord("C"): Command.CONDENSE_ALL,
}


def _version() -> str:
    try:
        return version("procwatch")
    except PackageNotFoundError:
        return "unknown"


class Dashboard:
    """Owns the registry and the terminal for one run.

    Args:
        query: Substring to look for in process names.
        sampler: Snapshot source. Defaults to a synchronous ProcessSampler;
            a ThreadedSampler may return None when nothing new arrived.
        config: Overrides for :data:`procwatch.config.DEFAULT_CONFIG`.
        clock: Returns the current local time; swapped out in tests.
    """

    def __init__(
        self,
        query: str,
        sampler: Sampler | None = None,
        config: dict[str, Any] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = make_config(config)
        self.registry = EntryRegistry(
            query,
            history_limit=self.config["history_limit"],
            ordering=self.config["ordering"],
        )
        self.sampler: Sampler = sampler or ProcessSampler()
        self.state = LoopState.RUNNING
        self._clock = clock

    @property
    def query(self) -> str:
        return self.registry.query

    @property
    def is_running(self) -> bool:
        return self.state is LoopState.RUNNING

    def stop(self) -> None:
        self.state = LoopState.STOPPED

    # ── One cycle ──────────────────────────────────────────────────────────

    def sample(self, now: datetime) -> None:
        snapshot = self.sampler.snapshot(self.query)
        if snapshot is not None:
            self.registry.apply(snapshot, now)

    def draw(self, stdscr: Any, now: datetime) -> None:
        max_y, max_x = stdscr.getmaxyx()
        stdscr.erase()
        for region, record in plan(self.registry.records(), max_y, max_x):
            draw_record(stdscr, region, record, now)
        stdscr.refresh()

    def poll_key(self, stdscr: Any) -> int:
        """Wait up to the poll timeout for a key; return only the newest one.

        Keys already queued behind the first are read without blocking and
        discarded in favour of the last. Returns -1 if no key arrived.
        """
        stdscr.timeout(POLL_TIMEOUT_MS)
        key = stdscr.getch()
        if key == -1:
            return key
        stdscr.timeout(0)
        while True:
            nxt = stdscr.getch()
            if nxt == -1:
                return key
            key = nxt

    def handle_key(self, key: int) -> Command | None:
        command = KEYMAP.get(key)
        if command is Command.QUIT:
            self.stop()
        elif command is Command.RESET:
            self.registry.reset()
        elif command is Command.EXPAND_ALL:
            self.registry.set_detail_all(Detail.EXPANDED)
        elif command is Command.CONDENSE_ALL:
            self.registry.set_detail_all(Detail.CONDENSED)
        return command

    def step(self, stdscr: Any) -> None:
        now = self._clock()
        self.sample(now)
        self.draw(stdscr, now)
        self.handle_key(self.poll_key(stdscr))

    # ── Main loop ──────────────────────────────────────────────────────────

    def run(self, stdscr: Any) -> None:
        """Cycle until quit. Meant to be called through ``curses.wrapper``."""
        curses.raw()
        curses.curs_set(0)
        if curses.has_colors():
            init_colors(self.config["colors"])

        threaded = isinstance(self.sampler, ThreadedSampler)
        if threaded:
            self.sampler.start(self.query)
        try:
            while self.is_running:
                self.step(stdscr)
        finally:
            if threaded:
                self.sampler.stop()


# ── CLI entry point ────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="procwatch",
        description="Observe memory, cpu, and disk I/O for processes matching the provided name.",
        epilog=(
            "To clear and reset all entries, press r. Use C and E to collapse and "
            "expand all entries, respectively. Exit with ^C or q."
        ),
    )
    parser.add_argument("name", help="Name of the program to watch")
    parser.add_argument("--version", action="version", version=f"%(prog)s {_version()}")
    args = parser.parse_args(argv)

    dashboard = Dashboard(args.name)
    try:
        curses.wrapper(dashboard.run)
    except KeyboardInterrupt:
        pass
    except (curses.error, OSError) as e:
        print(f"procwatch: error: {e}", file=sys.stderr)
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
