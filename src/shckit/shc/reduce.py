"""
Lag-correlation reductions over the ring buffer.

Each of the ``Nc`` ring slots is one reduction block. Within a block,
``block_size`` workers each fold a strided range of tracked particles
(particle ``tid + round * block_size`` goes to worker ``tid``), then the worker
partials are combined pairwise in a binary tree. Both phases are expressed as
whole-array NumPy operations over all blocks at once.

For a fixed ``block_size`` the summation order, and hence the result, is
deterministic. Different block sizes give numerically close but not bitwise
identical sums.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .accumulate import SHCAccumulator
from .ring import RingBufferStore

DEFAULT_BLOCK_SIZE = 128


def _check_block_size(block_size: int) -> int:
    block_size = int(block_size)
    if block_size < 1 or block_size & (block_size - 1):
        raise ValueError(f"block_size must be a positive power of two, got {block_size}.")
    return block_size


def block_reduce(values: np.ndarray, block_size: int = DEFAULT_BLOCK_SIZE) -> np.ndarray:
    """
    Reduce each row of ``values`` (num_blocks, n) to one float64 sum.

    Returns:
        (num_blocks,) array of per-block totals.
    """
    block_size = _check_block_size(block_size)
    values = np.asarray(values, dtype=np.float64)
    if values.ndim != 2:
        raise ValueError("values must be 2D (num_blocks, n).")
    num_blocks, n = values.shape
    if n == 0:
        return np.zeros(num_blocks, dtype=np.float64)

    # workers past the last particle only ever hold zeros; drop them from the tree
    workers = block_size if n >= block_size else 1 << (n - 1).bit_length()
    full = (n // block_size) * block_size

    # phase 1: per-worker partial sums over the strided rounds, ragged tail last
    if full:
        shared = values[:, :full].reshape(num_blocks, full // block_size, block_size).sum(axis=1)
    else:
        shared = np.zeros((num_blocks, workers), dtype=np.float64)
    if full < n:
        shared[:, : n - full] += values[:, full:]

    # phase 2: binary tree over the workers of each block
    width = workers
    while width > 1:
        half = width // 2
        shared[:, :half] += shared[:, half:width]
        width = half
    return shared[:, 0].copy()


class CorrelationReducer:
    """
    Runs the two correlation passes for the slot just written and adds the
    block results into an :class:`SHCAccumulator` at their physical lags.

    Flux->Velocity pass: current flux against every stored velocity, feeding
    ``ki_positive`` / ``ko_positive``.
    Velocity->Flux pass: current velocity against every stored flux, feeding
    ``ki_negative`` / ``ko_negative``.
    ``ki`` sums the x and y products, ``ko`` the z product.
    """

    def __init__(self, block_size: int = DEFAULT_BLOCK_SIZE):
        self.block_size = _check_block_size(block_size)
        self._scratch: Optional[Tuple[np.ndarray, np.ndarray]] = None

    def _buffers(self, shape: Tuple[int, ...]) -> Tuple[np.ndarray, np.ndarray]:
        """Two (Nc, G) product buffers, allocated once per ring shape."""
        if self._scratch is None or self._scratch[0].shape != shape:
            self._scratch = (np.empty(shape, dtype=np.float64), np.empty(shape, dtype=np.float64))
        return self._scratch

    def _pass(
        self,
        now: Tuple[np.ndarray, np.ndarray, np.ndarray],
        lagged: Tuple[np.ndarray, np.ndarray, np.ndarray],
    ) -> Tuple[np.ndarray, np.ndarray]:
        ax, ay, az = now
        bx, by, bz = lagged
        prod, tmp = self._buffers(bx.shape)
        np.multiply(bx, ax, out=prod)
        np.multiply(by, ay, out=tmp)
        prod += tmp
        ki = block_reduce(prod, self.block_size)
        np.multiply(bz, az, out=prod)
        ko = block_reduce(prod, self.block_size)
        return ki, ko

    def flux_velocity(self, store: RingBufferStore, correlation_step: int) -> Tuple[np.ndarray, np.ndarray]:
        """Per-block (ki, ko) of current flux times stored velocity, indexed by slot."""
        c = store.ring.slot(correlation_step)
        now = (store["sx"][c], store["sy"][c], store["sz"][c])
        return self._pass(now, (store["vx"], store["vy"], store["vz"]))

    def velocity_flux(self, store: RingBufferStore, correlation_step: int) -> Tuple[np.ndarray, np.ndarray]:
        """Per-block (ki, ko) of current velocity times stored flux, indexed by slot."""
        c = store.ring.slot(correlation_step)
        now = (store["vx"][c], store["vy"][c], store["vz"][c])
        return self._pass(now, (store["sx"], store["sy"], store["sz"]))

    def reduce(self, store: RingBufferStore, accumulator: SHCAccumulator) -> None:
        """Correlate the last written slot against the whole ring; one time origin."""
        if not store.ring.is_saturated:
            raise ValueError("Ring buffer has not filled yet; nothing to correlate.")
        if accumulator.num_correlation_steps != store.capacity:
            raise ValueError("Accumulator length does not match ring capacity.")

        c = store.ring.last_slot
        ki_positive, ko_positive = self.flux_velocity(store, c)
        ki_negative, ko_negative = self.velocity_flux(store, c)
        accumulator.add_origin(
            store.ring.lags(c),
            ki_negative=ki_negative,
            ko_negative=ko_negative,
            ki_positive=ki_positive,
            ko_positive=ko_positive,
        )
