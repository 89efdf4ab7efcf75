from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

SUM_NAMES = ("ki_negative", "ko_negative", "ki_positive", "ko_positive")


@dataclass
class SHCResult:
    """
    Time-origin averaged heat current correlations, one entry per lag.

    ki_*: in-plane (x + y) part, ko_*: out-of-plane (z) part.
    *_positive come from the flux->velocity pass, *_negative from the
    velocity->flux pass.
    """

    ki_negative: np.ndarray
    ko_negative: np.ndarray
    ki_positive: np.ndarray
    ko_positive: np.ndarray
    num_time_origins: int
    sample_interval: int = 1
    direction: str = "x"
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        arrays = [np.asarray(getattr(self, name), dtype=np.float64) for name in SUM_NAMES]
        for arr in arrays:
            if arr.ndim != 1:
                raise ValueError("Correlation arrays must be 1D (Nc,).")
        if len({arr.shape for arr in arrays}) != 1:
            raise ValueError("All correlation arrays must share the same length.")
        for name, arr in zip(SUM_NAMES, arrays):
            setattr(self, name, arr)

    @property
    def num_correlation_steps(self) -> int:
        return int(self.ki_negative.shape[0])

    @property
    def lags(self) -> np.ndarray:
        return np.arange(self.num_correlation_steps, dtype=int)

    def time_axis(self, time_step: float) -> np.ndarray:
        """Lag times, ``lag * sample_interval * time_step``."""
        if time_step <= 0:
            raise ValueError("time_step must be positive.")
        return self.lags * (self.sample_interval * float(time_step))

    def to_dataframe(self) -> pd.DataFrame:
        """Columns: lag, ki_negative, ko_negative, ki_positive, ko_positive."""
        data: Dict[str, Any] = {"lag": self.lags}
        for name in SUM_NAMES:
            data[name] = getattr(self, name)
        return pd.DataFrame(data)


class SHCAccumulator:
    """
    Four running lag-indexed sums plus the number of time origins behind them.

    Contributions are scatter-added, so any number of them may target the same
    lag within one call.
    """

    def __init__(self, num_correlation_steps: int):
        nc = int(num_correlation_steps)
        if nc < 1:
            raise ValueError("num_correlation_steps must be >= 1.")
        self.num_correlation_steps = nc
        self.ki_negative = np.zeros(nc, dtype=np.float64)
        self.ko_negative = np.zeros(nc, dtype=np.float64)
        self.ki_positive = np.zeros(nc, dtype=np.float64)
        self.ko_positive = np.zeros(nc, dtype=np.float64)
        self.num_time_origins = 0

    @property
    def sums(self) -> Dict[str, np.ndarray]:
        return {name: getattr(self, name) for name in SUM_NAMES}

    def add_origin(
        self,
        lags: np.ndarray,
        *,
        ki_negative: np.ndarray,
        ko_negative: np.ndarray,
        ki_positive: np.ndarray,
        ko_positive: np.ndarray,
    ) -> None:
        """Add one time origin's per-block sums at ``lags`` and count the origin."""
        lags = np.asarray(lags, dtype=np.intp)
        if lags.ndim != 1:
            raise ValueError("lags must be 1D.")
        if lags.size and (lags.min() < 0 or lags.max() >= self.num_correlation_steps):
            raise ValueError(f"lags must lie in [0, {self.num_correlation_steps}).")
        contributions = {
            "ki_negative": ki_negative,
            "ko_negative": ko_negative,
            "ki_positive": ki_positive,
            "ko_positive": ko_positive,
        }
        for name, values in contributions.items():
            values = np.asarray(values, dtype=np.float64)
            if values.shape != lags.shape:
                raise ValueError(f"{name} must have the same shape as lags {lags.shape}, got {values.shape}.")
            contributions[name] = values
        for name, values in contributions.items():
            np.add.at(getattr(self, name), lags, values)
        self.num_time_origins += 1

    def finalize(
        self,
        *,
        sample_interval: int = 1,
        direction: str = "x",
        meta: Optional[Dict[str, Any]] = None,
    ) -> SHCResult:
        """
        Average the sums over time origins. Does not modify the accumulator.
        """
        if self.num_time_origins == 0:
            raise ValueError("No time origins accumulated; the run is shorter than one buffer fill.")
        n = float(self.num_time_origins)
        return SHCResult(
            **{name: self.sums[name] / n for name in SUM_NAMES},
            num_time_origins=self.num_time_origins,
            sample_interval=sample_interval,
            direction=direction,
            meta=dict(meta or {}),
        )

    def merge(self, other: "SHCAccumulator") -> None:
        """
        Merge another accumulator into this one (in-place).
        Lengths must match.
        """
        if self.num_correlation_steps != other.num_correlation_steps:
            raise ValueError("Accumulator lengths do not match; cannot merge.")
        for name in SUM_NAMES:
            self.sums[name] += other.sums[name]
        self.num_time_origins += other.num_time_origins

    def reset(self) -> None:
        for arr in self.sums.values():
            arr.fill(0.0)
        self.num_time_origins = 0
