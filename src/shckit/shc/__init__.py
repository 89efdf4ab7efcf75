"""
On-the-fly spectral heat current (SHC) correlation engine.

Every sampled step the per-particle velocity and the direction-selected
virial rows of the tracked particles are written into a fixed ring buffer of
``Nc`` slots. Once the ring is full, each new sample is correlated against the
whole history in two passes (flux->velocity and velocity->flux) and the
per-lag sums are accumulated across time origins.
"""

from .types import FLUX_ROWS, VIRIAL_ROWS, SHCConfig, normalize_direction
from .ring import RingBufferStore, SampleRing, physical_lag
from .sources import IdentitySource, IndexedSource, ParticleSource, particle_source
from .accumulate import SHCAccumulator, SHCResult
from .reduce import CorrelationReducer, block_reduce
from .engine import SHCEngine, run_shc

__all__ = [
    "FLUX_ROWS",
    "VIRIAL_ROWS",
    "SHCConfig",
    "normalize_direction",
    "RingBufferStore",
    "SampleRing",
    "physical_lag",
    "IdentitySource",
    "IndexedSource",
    "ParticleSource",
    "particle_source",
    "SHCAccumulator",
    "SHCResult",
    "CorrelationReducer",
    "block_reduce",
    "SHCEngine",
    "run_shc",
]
