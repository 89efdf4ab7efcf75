from __future__ import annotations

from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

COLUMNS = ("ki_negative", "ko_negative", "ki_positive", "ko_positive")
FLOAT_FORMAT = "%.15e"


def write_shc(result, path: str | Path) -> None:
    """
    Append averaged correlations to a plain-text file.

    One line per lag, no header, four space separated fields:
    ki_negative ko_negative ki_positive ko_positive.
    """
    table = np.column_stack([getattr(result, name) for name in COLUMNS])
    with Path(path).open("a") as fh:
        np.savetxt(fh, table, fmt=FLOAT_FORMAT, delimiter=" ")


def load_shc(path: str | Path, *, num_correlation_steps: Optional[int] = None) -> pd.DataFrame:
    """
    Read a file written by :func:`write_shc`.

    Returns:
        DataFrame with columns run, lag, ki_negative, ko_negative, ki_positive, ko_positive.
        When ``num_correlation_steps`` is given, consecutive blocks of that many lines
        are numbered as separate runs; otherwise everything is run 0.
    """
    df = pd.read_csv(path, sep=r"\s+", header=None, names=list(COLUMNS), dtype=float)
    n = len(df)
    if num_correlation_steps is None:
        run = np.zeros(n, dtype=int)
        lag = np.arange(n, dtype=int)
    else:
        nc = int(num_correlation_steps)
        if nc < 1:
            raise ValueError("num_correlation_steps must be >= 1.")
        if n % nc != 0:
            raise ValueError(f"{path} holds {n} lines, not a multiple of num_correlation_steps={nc}.")
        idx = np.arange(n, dtype=int)
        run, lag = idx // nc, idx % nc
    df.insert(0, "lag", lag)
    df.insert(0, "run", run)
    return df
