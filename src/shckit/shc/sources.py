from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np

from .ring import FIELDS


class ParticleSource:
    """
    Maps full-system per-particle vectors onto the tracked-particle order.

    Chosen once at setup; the engine calls :meth:`gather` the same way every
    step regardless of which variant it holds.
    """

    num_particles: int
    group_size: int

    def take(self, values: np.ndarray, out: np.ndarray) -> None:
        raise NotImplementedError

    def gather(
        self,
        velocity: np.ndarray,
        flux: np.ndarray,
        out: Dict[str, np.ndarray],
    ) -> None:
        """
        Copy tracked-particle values into ``out`` (one length-``group_size`` view per field).

        velocity: (3, num_particles) vx, vy, vz rows.
        flux: (3, num_particles) sx, sy, sz rows.
        """
        if velocity.shape != (3, self.num_particles):
            raise ValueError(f"velocity must have shape (3, {self.num_particles}), got {velocity.shape}.")
        if flux.shape != (3, self.num_particles):
            raise ValueError(f"flux must have shape (3, {self.num_particles}), got {flux.shape}.")
        rows = {"sx": flux[0], "sy": flux[1], "sz": flux[2], "vx": velocity[0], "vy": velocity[1], "vz": velocity[2]}
        for name in FIELDS:
            self.take(rows[name], out[name])


class IdentitySource(ParticleSource):
    """All particles, in global order: a straight copy."""

    def __init__(self, num_particles: int):
        if num_particles < 1:
            raise ValueError("num_particles must be >= 1.")
        self.num_particles = int(num_particles)
        self.group_size = self.num_particles

    def take(self, values: np.ndarray, out: np.ndarray) -> None:
        np.copyto(out, values)

    def __repr__(self) -> str:
        return f"IdentitySource(num_particles={self.num_particles})"


class IndexedSource(ParticleSource):
    """A named subset: tracked slot ``n`` reads global particle ``index_map[n]``."""

    def __init__(self, num_particles: int, index_map: Sequence[int]):
        index_map = np.asarray(index_map)
        if index_map.ndim != 1 or index_map.size == 0:
            raise ValueError("index_map must be a non-empty 1D sequence of particle indices.")
        if not np.issubdtype(index_map.dtype, np.integer):
            raise TypeError("index_map must contain integers.")
        if index_map.min() < 0 or index_map.max() >= num_particles:
            raise ValueError(f"index_map entries must lie in [0, {num_particles}).")
        self.num_particles = int(num_particles)
        self.index_map = index_map.astype(np.intp, copy=True)
        self.index_map.setflags(write=False)
        self.group_size = int(self.index_map.size)

    def take(self, values: np.ndarray, out: np.ndarray) -> None:
        np.take(values, self.index_map, out=out)

    def __repr__(self) -> str:
        return f"IndexedSource(num_particles={self.num_particles}, group_size={self.group_size})"


def particle_source(num_particles: int, index_map: Optional[Sequence[int]] = None) -> ParticleSource:
    """Pick the identity copy when no subset is given, the index gather otherwise."""
    if index_map is None:
        return IdentitySource(num_particles)
    return IndexedSource(num_particles, index_map)
