from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pandas as pd

from shckit.shc.accumulate import SUM_NAMES, SHCResult


def save_shc_result(
    result: SHCResult,
    folder: str | Path,
    *,
    table_filename: str = "shc.parquet",
    meta_filename: str = "meta.json",
) -> None:
    """
    Writes:
      folder/
        shc.parquet   (per-lag averaged correlations)
        meta.json     (time origins, sample interval, direction, run metadata)
    """
    folder = Path(folder)
    folder.mkdir(parents=True, exist_ok=True)

    result.to_dataframe().to_parquet(folder / table_filename, index=False)

    meta: Dict[str, Any] = {
        "num_time_origins": int(result.num_time_origins),
        "sample_interval": int(result.sample_interval),
        "direction": result.direction,
        "meta": result.meta,
    }
    (folder / meta_filename).write_text(json.dumps(meta, indent=2))


def load_shc_result(
    folder: str | Path,
    *,
    table_filename: str = "shc.parquet",
    meta_filename: str = "meta.json",
) -> SHCResult:
    """Reconstruct an SHCResult saved by :func:`save_shc_result`."""
    folder = Path(folder)
    meta = json.loads((folder / meta_filename).read_text())
    df = pd.read_parquet(folder / table_filename)

    missing = [c for c in ("lag", *SUM_NAMES) if c not in df.columns]
    if missing:
        raise KeyError(f"{table_filename} missing columns: {missing}")
    df = df.sort_values("lag")

    return SHCResult(
        **{name: df[name].to_numpy(dtype=float) for name in SUM_NAMES},
        num_time_origins=int(meta["num_time_origins"]),
        sample_interval=int(meta.get("sample_interval", 1)),
        direction=str(meta.get("direction", "x")),
        meta=dict(meta.get("meta", {})),
    )
