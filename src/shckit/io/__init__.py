from .text import load_shc, write_shc
from .parquet import load_shc_result, save_shc_result

__all__ = ["write_shc", "load_shc", "save_shc_result", "load_shc_result"]
