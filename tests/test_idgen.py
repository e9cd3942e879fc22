"""Time-ordered id generation for auto-id mode."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from settingstore.exceptions import IdGenerationError
from settingstore.infra.idgen import (
    BITS_SEQUENCE,
    EPOCH,
    TIME_UNIT_NS,
    SnowflakeIdGenerator,
    decompose,
    private_ip_machine_id,
)

_EPOCH_NS = int(EPOCH.timestamp()) * 1_000_000_000


class FakeClock:
    """Manually advanced nanosecond clock."""

    def __init__(self, units_after_epoch: int = 1000) -> None:
        self.now = _EPOCH_NS + units_after_epoch * TIME_UNIT_NS
        self.slept: list[float] = []

    def __call__(self) -> int:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.slept.append(seconds)
        self.now += int(seconds * 1_000_000_000) + 1


def test_ids_pack_time_sequence_and_machine():
    clock = FakeClock(units_after_epoch=1234)
    generator = SnowflakeIdGenerator(machine_id=0xBEEF, clock=clock, sleep=clock.sleep)

    first = decompose(generator.next_id())
    second = decompose(generator.next_id())

    assert (first.elapsed, first.sequence, first.machine_id) == (1234, 0, 0xBEEF)
    assert (second.elapsed, second.sequence) == (1234, 1)


def test_new_time_unit_resets_sequence():
    clock = FakeClock()
    generator = SnowflakeIdGenerator(machine_id=1, clock=clock, sleep=clock.sleep)
    generator.next_id()
    generator.next_id()

    clock.now += TIME_UNIT_NS
    parts = decompose(generator.next_id())

    assert parts.elapsed == 1001
    assert parts.sequence == 0


def test_sequence_overflow_waits_for_next_unit():
    clock = FakeClock()
    generator = SnowflakeIdGenerator(machine_id=1, clock=clock, sleep=clock.sleep)

    ids = [generator.next_id() for _ in range((1 << BITS_SEQUENCE) + 1)]

    assert ids == sorted(ids)
    assert len(clock.slept) == 1
    assert decompose(ids[-1]).elapsed == 1001
    assert decompose(ids[-1]).sequence == 0


def test_clock_moving_backwards_keeps_ids_increasing():
    clock = FakeClock()
    generator = SnowflakeIdGenerator(machine_id=1, clock=clock, sleep=clock.sleep)
    first = generator.next_id()

    clock.now -= 50 * TIME_UNIT_NS
    second = generator.next_id()

    assert second > first


def test_ids_from_different_machines_never_collide():
    clock = FakeClock()
    a = SnowflakeIdGenerator(machine_id=1, clock=clock, sleep=clock.sleep)
    b = SnowflakeIdGenerator(machine_id=2, clock=clock, sleep=clock.sleep)

    assert {a.next_id() for _ in range(50)}.isdisjoint({b.next_id() for _ in range(50)})


def test_concurrent_callers_get_unique_increasing_ids():
    generator = SnowflakeIdGenerator(machine_id=3)
    results: list[list[int]] = [[] for _ in range(8)]

    def _worker(bucket: list[int]) -> None:
        for _ in range(200):
            bucket.append(generator.next_id())

    threads = [threading.Thread(target=_worker, args=(bucket,)) for bucket in results]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    every_id = [value for bucket in results for value in bucket]
    assert len(set(every_id)) == len(every_id)
    for bucket in results:
        assert bucket == sorted(bucket)


def test_timestamp_round_trips_to_wall_clock():
    generator = SnowflakeIdGenerator(machine_id=1)
    before = datetime.now(timezone.utc)

    stamp = decompose(generator.next_id()).timestamp

    assert abs(stamp - before) < timedelta(seconds=5)


def test_machine_id_must_fit_sixteen_bits():
    with pytest.raises(IdGenerationError):
        SnowflakeIdGenerator(machine_id=1 << 16)
    with pytest.raises(IdGenerationError):
        SnowflakeIdGenerator(machine_id=-1)


def test_future_epoch_is_rejected():
    future = datetime.now(timezone.utc) + timedelta(days=1)
    with pytest.raises(IdGenerationError):
        SnowflakeIdGenerator(machine_id=1, epoch=future)


def test_exhausted_time_range_raises():
    clock = FakeClock(units_after_epoch=1 << 39)
    generator = SnowflakeIdGenerator(machine_id=1, clock=clock, sleep=clock.sleep)

    with pytest.raises(IdGenerationError):
        generator.next_id()


def test_private_ip_machine_id_uses_lower_sixteen_bits():
    assert private_ip_machine_id(["127.0.0.1", "8.8.8.8", "192.168.1.20"]) == (1 << 8) + 20
    assert private_ip_machine_id(["10.0.2.15"]) == (2 << 8) + 15


def test_private_ip_machine_id_requires_private_address():
    with pytest.raises(IdGenerationError):
        private_ip_machine_id(["127.0.0.1", "not-an-ip", "8.8.4.4"])
