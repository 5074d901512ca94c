"""Tests for procwatch.registry."""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from procwatch.entry import Alive, Dead, Detail
from procwatch.registry import EntryRegistry
from procwatch.sampler import ProcessSample

T0 = datetime(2025, 3, 1, 12, 0, 0)
T0_EPOCH = 1_740_830_400.0


def _at(cycle: int) -> datetime:
    return T0 + timedelta(seconds=cycle)


def _sample(
    pid: int,
    cycle: int = 0,
    name: str = "bash",
    age: float = 100.0,
    mem: int = 1024,
) -> ProcessSample:
    """A sample taken at *cycle* from a process that was *age* seconds old at T0."""
    return ProcessSample(
        pid=pid,
        name=name,
        run_time=age + cycle,
        memory=mem,
        cpu=0.5,
        read_bytes=10 * cycle,
        write_bytes=20 * cycle,
        create_time=T0_EPOCH - age,
    )


def _cycle(reg: EntryRegistry, cycle: int, pids: list[int]) -> None:
    reg.apply([_sample(pid, cycle) for pid in pids], now=_at(cycle))


# ── apply ──────────────────────────────────────────────────────────────────


class TestApply:
    def test_new_identity_creates_alive_expanded_record(self) -> None:
        reg = EntryRegistry("sh")
        reg.apply([_sample(7)], now=T0)
        rec = reg.get(7)
        assert rec is not None
        assert rec.state == Alive()
        assert rec.detail is Detail.EXPANDED
        assert rec.name == "bash"
        assert rec.query == "sh"
        assert rec.start == T0 - timedelta(seconds=100)
        assert rec.samples == 1

    def test_seen_identity_gets_one_sample_per_cycle(self) -> None:
        reg = EntryRegistry("sh")
        for cycle in range(5):
            _cycle(reg, cycle, [7])
        rec = reg.get(7)
        assert rec is not None
        assert len(reg) == 1
        assert rec.samples == 5
        assert rec.read == [0, 10, 20, 30, 40]
        assert rec.start == T0 - timedelta(seconds=100)

    def test_missing_identity_dies(self) -> None:
        reg = EntryRegistry("sh")
        for cycle in range(3):
            _cycle(reg, cycle, [7])
        _cycle(reg, 3, [])
        rec = reg.get(7)
        assert rec is not None
        assert rec.state == Dead(_at(3))
        assert rec.detail is Detail.CONDENSED
        assert rec.samples == 3

    def test_death_is_idempotent_across_cycles(self) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [7])
        _cycle(reg, 1, [])
        _cycle(reg, 2, [])
        _cycle(reg, 3, [])
        rec = reg.get(7)
        assert rec is not None
        assert rec.state == Dead(_at(1))

    def test_default_now_is_wall_clock(self) -> None:
        reg = EntryRegistry("sh")
        before = datetime.now()
        reg.apply([ProcessSample(1, "bash", 0.0, 1, 0.0, 0, 0)])
        rec = reg.get(1)
        assert rec is not None
        assert rec.start >= before - timedelta(seconds=1)

    def test_duplicate_pid_in_one_snapshot_counted_once(self) -> None:
        reg = EntryRegistry("sh")
        reg.apply([_sample(7), _sample(7)], now=T0)
        rec = reg.get(7)
        assert rec is not None
        assert rec.samples == 1

    def test_empty_snapshot_on_empty_registry(self) -> None:
        reg = EntryRegistry("sh")
        reg.apply([], now=T0)
        assert len(reg) == 0

    def test_scenario_alive_three_then_absent(self) -> None:
        reg = EntryRegistry("sh")
        for cycle in range(3):
            _cycle(reg, cycle, [7])
        _cycle(reg, 3, [])
        rec = reg.get(7)
        assert rec is not None
        assert rec.state == Dead(_at(3))
        assert rec.detail is Detail.CONDENSED

        reg.set_detail_all(Detail.EXPANDED)
        assert rec.detail is Detail.EXPANDED
        assert rec.is_dead


class TestRandomSequences:
    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    def test_sample_counts_match_cycles_alive(self, seed: int) -> None:
        """Pids that vanish never come back; counts equal cycles seen."""
        rng = random.Random(seed)
        reg = EntryRegistry("sh")
        alive: set[int] = set()
        gone: set[int] = set()
        first_seen: dict[int, int] = {}
        died_at: dict[int, int] = {}
        next_pid = 100

        for cycle in range(40):
            for pid in list(alive):
                if rng.random() < 0.1:
                    alive.discard(pid)
                    gone.add(pid)
                    died_at[pid] = cycle
            for _ in range(rng.randint(0, 2)):
                alive.add(next_pid)
                first_seen[next_pid] = cycle
                next_pid += rng.randint(1, 50)
            _cycle(reg, cycle, sorted(alive))

        assert len(reg) == len(first_seen)
        for pid, seen in first_seen.items():
            rec = reg.get(pid)
            assert rec is not None
            if pid in gone:
                assert rec.state == Dead(_at(died_at[pid]))
                assert rec.samples == died_at[pid] - seen
            else:
                assert rec.state == Alive()
                assert rec.samples == 40 - seen


# ── PID reuse ──────────────────────────────────────────────────────────────


class TestPidReuse:
    def test_dead_pid_reappearing_starts_new_record(self) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [7])
        _cycle(reg, 1, [])
        reg.apply([_sample(7, 2, age=0.0)], now=_at(2))

        assert len(reg) == 2
        old, new = reg.records()
        assert old.state == Dead(_at(1))
        assert old.samples == 1
        assert new.state == Alive()
        assert new.samples == 1
        assert reg.get(7) is new

    def test_renamed_process_on_same_pid(self) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [7])
        reg.apply([_sample(7, 1, name="zsh")], now=_at(1))

        assert len(reg) == 2
        old, new = reg.records()
        assert old.name == "bash"
        assert old.state == Dead(_at(1))
        assert new.name == "zsh"
        assert new.samples == 1

    def test_start_time_jump_means_new_process(self) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [7])
        # Same name, but only 0.1s old one cycle later
        reg.apply([_sample(7, 1, age=-0.9)], now=_at(1))
        assert len(reg) == 2
        assert reg.records()[0].is_dead

    def test_small_start_jitter_is_same_process(self) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [7])
        reg.apply([_sample(7, 1, age=101.5)], now=_at(1))
        assert len(reg) == 1
        rec = reg.get(7)
        assert rec is not None
        assert rec.samples == 2

    def test_local_clock_moving_back_keeps_process_alive(self) -> None:
        # DST ends: the wall clock falls back an hour between two cycles
        before = datetime(2025, 10, 26, 2, 59, 59)
        after = before - timedelta(hours=1) + timedelta(seconds=1)
        reg = EntryRegistry("sh")
        reg.apply([ProcessSample(7, "bash", 100.0, 1024, 0.1, 0, 0, T0_EPOCH)], now=before)
        reg.apply([ProcessSample(7, "bash", 101.0, 1024, 0.1, 0, 0, T0_EPOCH)], now=after)

        assert len(reg) == 1
        rec = reg.get(7)
        assert rec is not None
        assert rec.state == Alive()
        assert rec.samples == 2

    @patch("procwatch.registry.time")
    def test_creation_time_derived_from_run_time_when_missing(
        self, mock_time: MagicMock
    ) -> None:
        mock_time.time.side_effect = [1000.0, 1001.0, 1002.0]
        reg = EntryRegistry("sh")
        reg.apply([ProcessSample(7, "bash", 100.0, 1024, 0.1, 0, 0)], now=_at(0))
        reg.apply([ProcessSample(7, "bash", 101.0, 1024, 0.1, 0, 0)], now=_at(1))
        assert len(reg) == 1
        # restarted: created at 1001.9 instead of 900
        reg.apply([ProcessSample(7, "bash", 0.1, 1024, 0.1, 0, 0)], now=_at(2))
        assert len(reg) == 2
        assert reg.records()[0].state == Dead(_at(2))


# ── Ordering) ───────────────────────────────────────────────────────────────


class TestOrdering:
    def test_pid_order_by_default(self) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [30])
        _cycle(reg, 1, [30, 10])
        _cycle(reg, 2, [30, 10, 20])
        assert [r.pid for r in reg] == [10, 20, 30]

    def test_discovery_order(self) -> None:
        reg = EntryRegistry("sh", ordering="discovery")
        _cycle(reg, 0, [30])
        _cycle(reg, 1, [30, 10])
        _cycle(reg, 2, [30, 10, 20])
        assert [r.pid for r in reg] == [30, 10, 20]

    def test_history_limit_passed_to_records(self) -> None:
        reg = EntryRegistry("sh", history_limit=2)
        for cycle in range(4):
            _cycle(reg, cycle, [7])
        rec = reg.get(7)
        assert rec is not None
        assert list(rec.read) == [20, 30]


# ── reset / set_detail_all ─────────────────────────────────────────────────


class TestCommands:
    def test_reset_removes_everything(self) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [1, 2, 3])
        _cycle(reg, 1, [1])
        reg.reset()
        assert len(reg) == 0
        assert reg.get(1) is None
        assert list(reg) == []

    def test_reset_then_apply_recomputes_start(self) -> None:
        reg = EntryRegistry("sh")
        reg.apply([_sample(1, 0, age=100.0)], now=T0)
        reg.reset()
        later = T0 + timedelta(minutes=5)
        reg.apply([ProcessSample(1, "bash", 50.0, 1, 0.0, 0, 0)], now=later)
        rec = reg.get(1)
        assert rec is not None
        assert rec.start == later - timedelta(seconds=50)
        assert rec.samples == 1

    def test_reset_clears_in_place(self) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [1])
        records_list = reg._records
        reg.reset()
        assert reg._records is records_list

    @pytest.mark.parametrize("mode", list(Detail))
    def test_set_detail_all_covers_alive_and_dead(self, mode: Detail) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [1, 2])
        _cycle(reg, 1, [1])
        reg.set_detail_all(mode)
        assert all(r.detail is mode for r in reg)

    def test_set_detail_all_idempotent(self) -> None:
        reg = EntryRegistry("sh")
        _cycle(reg, 0, [1, 2])
        _cycle(reg, 1, [2])
        reg.set_detail_all(Detail.CONDENSED)
        once = [(r.pid, r.detail, r.state) for r in reg]
        reg.set_detail_all(Detail.CONDENSED)
        assert [(r.pid, r.detail, r.state) for r in reg] == once
