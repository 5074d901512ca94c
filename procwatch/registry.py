"""The set of tracked processes and how each snapshot updates it."""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator
from datetime import datetime

from procwatch.config import START_TOLERANCE
from procwatch.entry import Detail, Record
from procwatch.sampler import ProcessSample


class EntryRegistry:
    """Records for every process incarnation seen since the last reset.

    Records live in an insertion-ordered list; ``_current`` maps each pid to
    its newest record for constant-time updates. Iteration is by ascending
    pid (``ordering="pid"``) or by first sighting (``ordering="discovery"``).

    A pid is reused when its record is dead, or when an alive record's name
    or creation time no longer matches the sample. Creation times are epoch
    seconds, so local clock changes such as DST never split a process.
    Either way the sample starts a new record and the old one stays in the
    registry as dead.
    """

    def __init__(
        self,
        query: str,
        history_limit: int | None = None,
        ordering: str = "pid",
    ) -> None:
        self.query = query
        self.history_limit = history_limit
        self.ordering = ordering
        self._records: list[Record] = []
        self._current: dict[int, Record] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records())

    def records(self) -> list[Record]:
        if self.ordering == "pid":
            # stable, so incarnations of one pid stay in sighting order
            return sorted(self._records, key=lambda r: r.pid)
        return list(self._records)

    def get(self, pid: int) -> Record | None:
        """Newest record for *pid*, alive or dead."""
        return self._current.get(pid)

    def apply(self, samples: Iterable[ProcessSample], now: datetime | None = None) -> None:
        """Fold one snapshot into the registry.

        Unseen pids get a new record, seen ones get one more sample each, and
        alive records missing from the snapshot die at *now*.
        """
        if now is None:
            now = datetime.now()

        seen: set[int] = set()
        for sample in samples:
            if sample.pid in seen:
                continue
            seen.add(sample.pid)

            created = _created(sample)
            record = self._current.get(sample.pid)
            if record is not None and not record.is_dead and not self._same_process(
                record, sample.name, created
            ):
                record.die(now)
            if record is None or record.is_dead:
                record = Record.new(
                    sample.pid,
                    sample.name,
                    self.query,
                    sample.run_time,
                    now,
                    self.history_limit,
                    created,
                )
                self._records.append(record)
                self._current[sample.pid] = record
            record.push(sample.memory, sample.cpu, sample.read_bytes, sample.write_bytes)

        for pid, record in self._current.items():
            if pid not in seen:
                record.die(now)

    def reset(self) -> None:
        """Forget every record."""
        self._records.clear()
        self._current.clear()

    def set_detail_all(self, mode: Detail) -> None:
        for record in self._records:
            record.detail = mode

    @staticmethod
    def _same_process(record: Record, name: str, created: float) -> bool:
        if name != record.name:
            return False
        return abs(created - record.created) <= START_TOLERANCE


def _created(sample: ProcessSample) -> float:
    """Epoch creation time of the sampled process."""
    if sample.create_time is not None:
        return sample.create_time
    return time.time() - sample.run_time
