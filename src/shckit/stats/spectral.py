"""
Frequency decomposition of time-origin averaged heat current correlations.

References
----------
- K. Sääskilahti et al., "Role of anharmonic phonon scattering in the spectrally
  decomposed thermal conductance at planar interfaces," Phys. Rev. B 90, 134312 (2014).
- Z. Fan et al., "Thermal conductivity decomposition in two-dimensional materials:
  Application to graphene," Phys. Rev. B 95, 144309 (2017).
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
import pandas as pd
from scipy.signal import windows

from shckit.shc.accumulate import SHCResult


def symmetric_correlation(result: SHCResult) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Join both correlation directions into one series over lags -(Nc-1) .. Nc-1.

    Negative lags come from the ``*_negative`` sums (reversed), lag 0 and
    positive lags from the ``*_positive`` sums.

    Returns:
        (lags, k_in, k_out), each of length 2*Nc - 1.
    """
    nc = result.num_correlation_steps
    lags = np.arange(-(nc - 1), nc, dtype=int)
    k_in = np.concatenate([result.ki_negative[:0:-1], result.ki_positive])
    k_out = np.concatenate([result.ko_negative[:0:-1], result.ko_positive])
    return lags, k_in, k_out


def hann_window(num_correlation_steps: int) -> np.ndarray:
    """
    Hann window over lags -(Nc-1) .. Nc-1: 1 at lag 0, vanishing at |lag| = Nc.
    """
    nc = int(num_correlation_steps)
    if nc < 1:
        raise ValueError("num_correlation_steps must be >= 1.")
    return windows.hann(2 * nc + 1, sym=True)[1:-1]


def spectral_heat_current(
    result: SHCResult,
    time_step: float,
    *,
    max_omega: float,
    num_omega: int = 1000,
) -> pd.DataFrame:
    """
    Cosine transform of the windowed correlation.

    J(w) = sum_t K(t) W(t) cos(w t) dt, with dt = sample_interval * time_step and
    angular frequencies w_k = (k + 1) * max_omega / num_omega. ``max_omega`` is in
    radians per unit of ``time_step``.

    Returns:
        DataFrame with columns omega, jw_in, jw_out.
    """
    if time_step <= 0:
        raise ValueError("time_step must be positive.")
    if max_omega <= 0:
        raise ValueError("max_omega must be positive.")
    if num_omega < 1:
        raise ValueError("num_omega must be >= 1.")

    dt = result.sample_interval * float(time_step)
    lags, k_in, k_out = symmetric_correlation(result)
    weights = hann_window(result.num_correlation_steps)
    t = lags * dt

    omega = (np.arange(num_omega, dtype=float) + 1.0) * (float(max_omega) / num_omega)
    cosines = np.cos(np.outer(omega, t))
    jw_in = cosines @ (k_in * weights) * dt
    jw_out = cosines @ (k_out * weights) * dt
    return pd.DataFrame({"omega": omega, "jw_in": jw_in, "jw_out": jw_out})


def integrated_correlation(result: SHCResult, time_step: float) -> pd.DataFrame:
    """
    Running time integral of the symmetric correlation, from lag 0 outward.

    The integral over |t| <= tau of K(t) is what the zero-frequency limit of
    :func:`spectral_heat_current` converges to (without windowing).

    Returns:
        DataFrame with columns lag, tau, k_in, k_out (cumulative sums over
        lags in [-lag, lag], rectangle rule).
    """
    if time_step <= 0:
        raise ValueError("time_step must be positive.")
    dt = result.sample_interval * float(time_step)
    pos_in = result.ki_positive
    pos_out = result.ko_positive
    neg_in = result.ki_negative
    neg_out = result.ko_negative
    # lag 0 is shared by both directions; count it once
    k_in = np.cumsum(pos_in + neg_in) - pos_in[0]
    k_out = np.cumsum(pos_out + neg_out) - pos_out[0]
    return pd.DataFrame(
        {
            "lag": result.lags,
            "tau": result.time_axis(time_step),
            "k_in": k_in * dt,
            "k_out": k_out * dt,
        }
    )
