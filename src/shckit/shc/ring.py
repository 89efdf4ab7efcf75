from __future__ import annotations

from typing import Dict, Tuple

import numpy as np

FIELDS: Tuple[str, ...] = ("sx", "sy", "sz", "vx", "vy", "vz")


def physical_lag(correlation_step, block, capacity: int):
    """
    Lag (index into an accumulator of length ``capacity``) of ring slot ``block``
    as seen from the slot ``correlation_step`` that was just written.

    Works element-wise on arrays. Slots at or before the current one are
    ``correlation_step - block`` samples back; later slots were written in the
    previous fill cycle, ``correlation_step + capacity - block`` samples back.
    """
    correlation_step = np.asarray(correlation_step)
    block = np.asarray(block)
    return np.where(block <= correlation_step, correlation_step - block, correlation_step + capacity - block)


class SampleRing:
    """
    Indexed ring of ``capacity`` slots driven by an absolute sample counter.

    All modular arithmetic of the circular history lives here: the counter only
    ever increases, slots are always ``index mod capacity``.
    """

    def __init__(self, capacity: int):
        capacity = int(capacity)
        if capacity < 1:
            raise ValueError("capacity must be >= 1.")
        self.capacity = capacity
        self.count = 0

    def slot(self, index: int) -> int:
        return int(index) % self.capacity

    @property
    def head(self) -> int:
        """Slot the next sample goes to."""
        return self.slot(self.count)

    @property
    def last_index(self) -> int:
        if self.count == 0:
            raise ValueError("No sample has been written yet.")
        return self.count - 1

    @property
    def last_slot(self) -> int:
        return self.slot(self.last_index)

    def advance(self) -> int:
        """Claim the slot for a new sample and return it."""
        s = self.head
        self.count += 1
        return s

    @property
    def is_saturated(self) -> bool:
        """True once every slot holds a sample."""
        return self.count >= self.capacity

    def lags(self, correlation_step: int | None = None) -> np.ndarray:
        """Physical lag of every slot, relative to ``correlation_step`` (default: last written)."""
        c = self.last_slot if correlation_step is None else self.slot(correlation_step)
        return physical_lag(c, np.arange(self.capacity), self.capacity)

    def reset(self) -> None:
        self.count = 0


class RingBufferStore:
    """
    Fixed-capacity history of per-particle flux and velocity.

    Six float64 arrays of shape ``(Nc, group_size)`` (page ``k`` is
    ``array[k]``), allocated once and overwritten in place.
    """

    def __init__(self, num_correlation_steps: int, group_size: int):
        if group_size < 1:
            raise ValueError("group_size must be >= 1.")
        self.ring = SampleRing(num_correlation_steps)
        self.group_size = int(group_size)
        shape = (self.ring.capacity, self.group_size)
        self.arrays: Dict[str, np.ndarray] = {name: np.zeros(shape, dtype=np.float64) for name in FIELDS}

    @property
    def capacity(self) -> int:
        return self.ring.capacity

    @property
    def nbytes(self) -> int:
        return int(sum(a.nbytes for a in self.arrays.values()))

    def page(self, slot: int) -> Dict[str, np.ndarray]:
        """Writable views of the six vectors stored at ``slot``."""
        s = self.ring.slot(slot)
        return {name: arr[s] for name, arr in self.arrays.items()}

    def write(self, slot: int, values: Dict[str, np.ndarray]) -> None:
        s = self.ring.slot(slot)
        missing = [name for name in FIELDS if name not in values]
        if missing:
            raise KeyError(f"values missing fields: {missing}")
        for name in FIELDS:
            self.arrays[name][s, :] = values[name]

    def append(self, values: Dict[str, np.ndarray]) -> int:
        """Write ``values`` into the next slot and return that slot."""
        self.write(self.ring.head, values)
        return self.ring.advance()

    def __getitem__(self, name: str) -> np.ndarray:
        return self.arrays[name]
