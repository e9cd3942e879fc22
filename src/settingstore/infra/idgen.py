"""Time-ordered distributed ids for auto-id mode.

Layout (Sonyflake scheme), most significant bits first::

    39 bits  elapsed time since EPOCH in 10 ms units
     8 bits  sequence within one time unit
    16 bits  machine id

Ids from one generator are strictly increasing. Generators on different
machines never collide as long as their machine ids differ.
"""

from __future__ import annotations

import ipaddress
import socket
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from ..exceptions import IdGenerationError

EPOCH = datetime(2014, 9, 1, tzinfo=timezone.utc)

BITS_TIME = 39
BITS_SEQUENCE = 8
BITS_MACHINE_ID = 16

TIME_UNIT_NS = 10_000_000  # 10 ms

_MASK_SEQUENCE = (1 << BITS_SEQUENCE) - 1
_MASK_MACHINE_ID = (1 << BITS_MACHINE_ID) - 1

_PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)


@dataclass(frozen=True, slots=True)
class IdParts:
    """The fields packed into one generated id."""

    elapsed: int
    sequence: int
    machine_id: int

    @property
    def timestamp(self) -> datetime:
        seconds = self.elapsed * TIME_UNIT_NS / 1_000_000_000
        return datetime.fromtimestamp(EPOCH.timestamp() + seconds, tz=timezone.utc)


def decompose(value: int) -> IdParts:
    """Split an id back into its time, sequence and machine fields."""

    return IdParts(
        elapsed=value >> (BITS_SEQUENCE + BITS_MACHINE_ID),
        sequence=(value >> BITS_MACHINE_ID) & _MASK_SEQUENCE,
        machine_id=value & _MASK_MACHINE_ID,
    )


def _candidate_addresses() -> list[str]:
    addresses: list[str] = []
    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            addresses.append(info[4][0])
    except OSError:
        pass
    # Connecting a UDP socket only selects the outbound interface; nothing is sent.
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(("10.255.255.255", 1))
            addresses.append(probe.getsockname()[0])
    except OSError:
        pass
    return addresses


def private_ip_machine_id(addresses: Optional[list[str]] = None) -> int:
    """Derive a machine id from the lower 16 bits of a private IPv4 address."""

    for raw in addresses if addresses is not None else _candidate_addresses():
        try:
            address = ipaddress.IPv4Address(raw)
        except ValueError:
            continue
        if any(address in network for network in _PRIVATE_NETWORKS):
            return int(address) & _MASK_MACHINE_ID
    raise IdGenerationError("no private IPv4 address found to derive a machine id")


class SnowflakeIdGenerator:
    """Thread-safe generator of time-ordered 63-bit ids."""

    def __init__(
        self,
        machine_id: Optional[int] = None,
        *,
        epoch: datetime = EPOCH,
        clock: Callable[[], int] = time.time_ns,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._start = self._to_units(round(epoch.timestamp() * 1000) * 1_000_000)
        if self._start > self._to_units(clock()):
            raise IdGenerationError(f"epoch {epoch.isoformat()} is in the future")

        if machine_id is None:
            machine_id = private_ip_machine_id()
        if not 0 <= machine_id <= _MASK_MACHINE_ID:
            raise IdGenerationError(f"machine id {machine_id} does not fit in {BITS_MACHINE_ID} bits")
        self.machine_id = machine_id

        self._lock = threading.Lock()
        self._elapsed = 0
        # First call rolls the sequence over to zero.
        self._sequence = _MASK_SEQUENCE

    @staticmethod
    def _to_units(nanoseconds: int) -> int:
        return nanoseconds // TIME_UNIT_NS

    def _current_elapsed(self) -> int:
        return self._to_units(self._clock()) - self._start

    def next_id(self) -> int:
        """Return the next id, sleeping when a time unit's sequence is exhausted."""

        with self._lock:
            current = self._current_elapsed()
            if self._elapsed < current:
                self._elapsed = current
                self._sequence = 0
            else:
                # Clock stood still or moved backwards: keep counting from the last unit.
                self._sequence = (self._sequence + 1) & _MASK_SEQUENCE
                if self._sequence == 0:
                    self._elapsed += 1
                    overtime = self._elapsed - current
                    self._sleep(self._sleep_seconds(overtime))
            return self._compose()

    def _sleep_seconds(self, overtime: int) -> float:
        remainder_ns = self._clock() % TIME_UNIT_NS
        return max(overtime * TIME_UNIT_NS - remainder_ns, 0) / 1_000_000_000

    def _compose(self) -> int:
        if self._elapsed >= 1 << BITS_TIME:
            raise IdGenerationError("id generator ran past its time range")
        return (
            (self._elapsed << (BITS_SEQUENCE + BITS_MACHINE_ID))
            | (self._sequence << BITS_MACHINE_ID)
            | self.machine_id
        )


__all__ = [
    "EPOCH",
    "IdParts",
    "SnowflakeIdGenerator",
    "decompose",
    "private_ip_machine_id",
]
