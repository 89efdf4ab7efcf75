from .shc import SHCConfig, SHCEngine, SHCResult, run_shc
from .groups import Grouping, GroupRegistry
from .io import load_shc, load_shc_result, save_shc_result, write_shc

__all__ = [
    "SHCConfig",
    "SHCEngine",
    "SHCResult",
    "run_shc",
    "Grouping",
    "GroupRegistry",
    "write_shc",
    "load_shc",
    "save_shc_result",
    "load_shc_result",
]
