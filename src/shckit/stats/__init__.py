from .spectral import hann_window, integrated_correlation, spectral_heat_current, symmetric_correlation

__all__ = [
    "hann_window",
    "integrated_correlation",
    "spectral_heat_current",
    "symmetric_correlation",
]
