from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple

import numpy as np

from shckit.groups import GroupRegistry
from shckit.io import write_shc

from .accumulate import SHCAccumulator, SHCResult
from .reduce import DEFAULT_BLOCK_SIZE, CorrelationReducer
from .ring import RingBufferStore
from .sources import ParticleSource, particle_source
from .types import SHCConfig

logger = logging.getLogger(__name__)


def _as_rows(values: np.ndarray, rows: int, name: str, num_particles: int) -> np.ndarray:
    """Accept (rows, N) or flat axis-major (rows * N,) input; return a float64 (rows, N) view or copy."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim == 1:
        if arr.size != rows * num_particles:
            raise ValueError(f"{name} must have {rows} * {num_particles} entries, got {arr.size}.")
        return arr.reshape(rows, num_particles)
    if arr.shape != (rows, num_particles):
        raise ValueError(f"{name} must have shape ({rows}, {num_particles}), got {arr.shape}.")
    return arr


class SHCEngine:
    """
    On-the-fly spectral heat current correlator.

    Lifecycle::

        engine = SHCEngine(SHCConfig(sample_interval=2, num_correlation_steps=250, direction="z"))
        engine.preprocess(num_particles, groups)
        for step in range(n_steps):
            ...  # integrate, compute velocity and per-particle virial
            engine.process(step, velocity, virial)
        result = engine.postprocess("shc.out")

    ``process`` records a sample every ``sample_interval`` steps. Once ``Nc``
    samples have been recorded, every further sample is one time origin:
    it is correlated against the whole history and added into the
    accumulators. ``postprocess`` averages, appends the result to the output
    file, and releases the buffers; the engine then ignores ``process`` calls
    until ``preprocess`` is called again.
    """

    def __init__(self, config: SHCConfig, *, block_size: int = DEFAULT_BLOCK_SIZE):
        if not isinstance(config, SHCConfig):
            raise TypeError("config must be an SHCConfig.")
        self.config = config
        self.reducer = CorrelationReducer(block_size)
        self.source: Optional[ParticleSource] = None
        self.store: Optional[RingBufferStore] = None
        self.accumulator: Optional[SHCAccumulator] = None

    @property
    def active(self) -> bool:
        return self.store is not None

    @property
    def num_time_origins(self) -> int:
        return 0 if self.accumulator is None else self.accumulator.num_time_origins

    @property
    def group_size(self) -> int:
        if self.source is None:
            raise RuntimeError("Engine is not prepared; call preprocess() first.")
        return self.source.group_size

    def preprocess(self, num_particles: int, groups: Optional[GroupRegistry] = None) -> None:
        """Resolve the tracked particles and allocate the ring buffer and accumulators."""
        cfg = self.config
        num_particles = int(num_particles)
        if num_particles < 1:
            raise ValueError("num_particles must be >= 1.")

        index_map = None
        if cfg.uses_group:
            if groups is None:
                raise ValueError("config selects a group but no GroupRegistry was given.")
            index_map = groups.resolve(cfg.group_method, cfg.group_id)
            if groups.groupings[cfg.group_method].num_particles != num_particles:
                raise ValueError("GroupRegistry does not label the same number of particles as the system.")

        source = particle_source(num_particles, index_map)
        self.store = RingBufferStore(cfg.num_correlation_steps, source.group_size)
        self.accumulator = SHCAccumulator(cfg.num_correlation_steps)
        self.source = source
        logger.info("SHC: %s (group_size=%d).", cfg.describe(), source.group_size)

    def process(self, step: int, velocity: np.ndarray, virial: np.ndarray) -> bool:
        """
        Feed one simulation step.

        velocity: (3, N) or flat (3N,) axis-major.
        virial: (9, N) or flat (9N,) in rows xx, yy, zz, xy, xz, yz, yx, zx, zy.

        Returns True if the step was sampled.
        """
        if not self.active:
            return False
        if int(step) % self.config.sample_interval != 0:
            return False
        assert self.source is not None and self.store is not None and self.accumulator is not None

        n = self.source.num_particles
        vel = _as_rows(velocity, 3, "velocity", n)
        vir = _as_rows(virial, 9, "virial", n)
        flux = vir[list(self.config.flux_rows)]

        ring = self.store.ring
        self.source.gather(vel, flux, self.store.page(ring.head))
        ring.advance()

        if ring.is_saturated:
            if ring.count == ring.capacity:
                logger.debug("SHC: ring buffer filled at step %d; accumulating.", step)
            self.reducer.reduce(self.store, self.accumulator)
        return True

    def result(self) -> SHCResult:
        """Current time-origin averaged correlations; the engine keeps running."""
        if self.accumulator is None:
            raise RuntimeError("Engine is not prepared; call preprocess() first.")
        cfg = self.config
        return self.accumulator.finalize(
            sample_interval=cfg.sample_interval,
            direction=cfg.direction,
            meta={
                "num_correlation_steps": cfg.num_correlation_steps,
                "group_method": cfg.group_method,
                "group_id": cfg.group_id,
                "group_size": self.group_size,
            },
        )

    def postprocess(self, output: Optional[str | Path] = None) -> Optional[SHCResult]:
        """
        Average, append to ``output`` (if given), and release all storage.

        Storage is released even when averaging or writing fails, so the
        engine is inert afterwards either way.

        Returns None if the engine is not active.
        """
        if not self.active:
            return None
        try:
            result = self.result()
            if output is not None:
                write_shc(result, output)
                logger.info("SHC: wrote %d lags to %s.", result.num_correlation_steps, output)
        finally:
            self.release()
        return result

    def release(self) -> None:
        self.source = None
        self.store = None
        self.accumulator = None

    def merge(self, other: "SHCEngine") -> None:
        """Add another engine's raw sums and time origins into this one."""
        if self.accumulator is None or other.accumulator is None:
            raise RuntimeError("Both engines must be prepared before merge.")
        self.accumulator.merge(other.accumulator)


def run_shc(
    frames: Iterable[Tuple[np.ndarray, np.ndarray]],
    config: SHCConfig,
    *,
    groups: Optional[GroupRegistry] = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
    output: Optional[str | Path] = None,
) -> SHCResult:
    """
    Drive an engine over ``(velocity, virial)`` frames taken at steps 0, 1, 2, ...

    The particle count is taken from the first frame's velocity.
    """
    engine = SHCEngine(config, block_size=block_size)
    for step, (velocity, virial) in enumerate(frames):
        if not engine.active:
            vel = np.asarray(velocity)
            num_particles = vel.shape[1] if vel.ndim == 2 else vel.size // 3
            engine.preprocess(num_particles, groups)
        engine.process(step, velocity, virial)
    if not engine.active:
        raise ValueError("No frames provided to run_shc.")
    result = engine.postprocess(output)
    assert result is not None
    return result
