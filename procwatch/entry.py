"""Per-process record kept by the registry: identity, lifecycle and history."""

from __future__ import annotations

from collections import deque
from collections.abc import MutableSequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


# ── Lifecycle ──────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Alive:
    """The process was present in the most recent snapshot."""


@dataclass(frozen=True, slots=True)
class Dead:
    """The process vanished; ``time_of_death`` is the first cycle it was missing."""

    time_of_death: datetime


State = Alive | Dead


# ── Detail mode ────────────────────────────────────────────────────────────


class Detail(Enum):
    """How much vertical space a record's charts get."""

    EXPANDED = "expanded"
    CONDENSED = "condensed"

    @property
    def chart_height(self) -> int:
        return 3 if self is Detail.EXPANDED else 1

    @property
    def height(self) -> int:
        """Rows needed by a record in this mode: one header row plus charts."""
        return 1 + self.chart_height


# ── Record ─────────────────────────────────────────────────────────────────


def _series(limit: int | None) -> MutableSequence:
    return deque(maxlen=limit) if limit is not None else []


@dataclass
class Record:
    """Tracked state for one process incarnation.

    The four series grow by one sample per cycle while the process is alive
    and stop growing once it is dead. With ``history_limit`` set they are
    ring buffers holding only the newest samples.
    """

    pid: int
    name: str
    query: str
    start: datetime
    created: float = 0.0  # epoch seconds; compared across cycles to spot pid reuse
    state: State = field(default_factory=Alive)
    detail: Detail = Detail.EXPANDED
    mem: MutableSequence[int] = field(default_factory=list)
    cpu: MutableSequence[float] = field(default_factory=list)
    read: MutableSequence[int] = field(default_factory=list)
    write: MutableSequence[int] = field(default_factory=list)

    @classmethod
    def new(
        cls,
        pid: int,
        name: str,
        query: str,
        run_time: float,
        now: datetime,
        history_limit: int | None = None,
        created: float = 0.0,
    ) -> Record:
        """Create a record first seen at *now* after running *run_time* seconds."""
        return cls(
            pid=pid,
            name=name,
            query=query,
            start=now - timedelta(seconds=run_time),
            created=created,
            mem=_series(history_limit),
            cpu=_series(history_limit),
            read=_series(history_limit),
            write=_series(history_limit),
        )

    @property
    def is_dead(self) -> bool:
        return isinstance(self.state, Dead)

    @property
    def samples(self) -> int:
        return len(self.mem)

    @property
    def height(self) -> int:
        return self.detail.height

    def push(self, memory: int, cpu: float, read: int, write: int) -> None:
        """Append one sample to every series. Dead records do not grow."""
        if self.is_dead:
            return
        self.mem.append(memory)
        self.cpu.append(cpu)
        self.read.append(read)
        self.write.append(write)

    def die(self, now: datetime) -> bool:
        """Mark the record dead at *now* and condense it.

        Returns False (and changes nothing) if it was already dead.
        """
        if self.is_dead:
            return False
        self.state = Dead(now)
        self.detail = Detail.CONDENSED
        return True

    def lifetime(self, now: datetime) -> timedelta:
        """Time from start until *now*, or until death for dead records."""
        end = self.state.time_of_death if isinstance(self.state, Dead) else now
        return end - self.start

    def name_match(self) -> tuple[str, str, str]:
        """Split the name around the first occurrence of the query.

        The sampler's match rule is not guaranteed to be a literal substring
        match; if the query is not in the name the whole name is unmatched.
        """
        if not self.query:
            return self.name, "", ""
        before, sep, after = self.name.partition(self.query)
        if not sep:
            return self.name, "", ""
        return before, sep, after
