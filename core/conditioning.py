"""Pre-detection signal conditioning: robust smoothing, detrending and the CF.

Every stage is a pure whole-sequence transform. Windows are truncated at the
sequence boundaries (never zero-padded or wrapped), so the output always has
the same length as the input, even when the input is shorter than the window.

Centered windows are the default and suit offline/segment processing. Passing
``causal=True`` switches every stage to trailing windows, so each output only
depends on the current and past samples; this is the layout the streaming
detector reproduces sample by sample.
"""
from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from shared.errors import ConfigurationError, InputError
from shared.models import DetectorConfig

logger = logging.getLogger(__name__)

# Rows per np.median call; bounds the temporary (rows, window) copy.
_MEDIAN_BLOCK_ROWS = 65536


def _as_signal(samples, name: str = "samples") -> np.ndarray:
    arr = np.asarray(samples, dtype=np.float64)
    if arr.ndim != 1:
        raise InputError(f"{name} must be a 1D sequence, got shape {arr.shape}")
    if arr.size == 0:
        raise InputError(f"{name} must not be empty")
    return arr


def validate_samples(samples, *, min_length: int = 1, name: str = "samples") -> np.ndarray:
    """Ingestion boundary check. Returns a float64 1D copy of `samples`.

    Raises:
        InputError: if the data is not 1D, empty, shorter than `min_length`,
            or contains NaN/Inf.
    """
    arr = _as_signal(samples, name)
    if arr.size < min_length:
        raise InputError(f"{name} has {arr.size} samples, at least {min_length} required")
    finite = np.isfinite(arr)
    if not finite.all():
        bad = int(np.flatnonzero(~finite)[0])
        raise InputError(
            f"{name} contains {int((~finite).sum())} non-finite value(s); first at index {bad}"
        )
    return arr.copy()


def _window_layout(window: int, causal: bool) -> Tuple[int, int]:
    """Return (samples before, samples after) the output index."""
    if causal:
        return window - 1, 0
    before = window // 2
    return before, window - 1 - before


def moving_mean(samples, window: int, *, causal: bool = False) -> np.ndarray:
    """Moving average over `window` samples, averaging only the samples available.

    Centered windows hold ``window // 2`` samples before the index and the
    rest after it; causal windows hold the trailing `window` samples.
    """
    if window < 1:
        raise ConfigurationError("window must be positive")
    x = _as_signal(samples)
    n = x.size
    before, after = _window_layout(int(window), causal)
    idx = np.arange(n)
    lo = np.maximum(idx - before, 0)
    hi = np.minimum(idx + after + 1, n)
    csum = np.concatenate(([0.0], np.cumsum(x)))
    return (csum[hi] - csum[lo]) / (hi - lo)


def rolling_median(samples, window: int, *, causal: bool = False) -> np.ndarray:
    """Median over a sliding window of odd width, truncated at the boundaries."""
    if window < 1 or window % 2 == 0:
        raise ConfigurationError(f"median window must be a positive odd integer, got {window}")
    x = _as_signal(samples)
    n = x.size
    before, after = _window_layout(int(window), causal)
    out = np.empty(n, dtype=np.float64)

    if n >= window:
        view = sliding_window_view(x, window)
        for start in range(0, view.shape[0], _MEDIAN_BLOCK_ROWS):
            block = view[start : start + _MEDIAN_BLOCK_ROWS]
            out[before + start : before + start + block.shape[0]] = np.median(block, axis=1)
        edges = np.concatenate((np.arange(0, before), np.arange(n - after, n)))
    else:
        edges = np.arange(n)

    for i in edges:
        out[i] = np.median(x[max(0, i - before) : min(n, i + after + 1)])
    return out


class _BaseStage:
    """Interface for whole-sequence conditioning stages."""

    def apply(self, samples) -> np.ndarray:
        raise NotImplementedError


class RobustSmoother(_BaseStage):
    """Rank-order (median) filter.

    Any run of fewer than ``(window + 1) // 2`` outliers inside a window
    leaves the median untouched, so short impulsive spikes disappear while
    step-like transitions keep their edges. Even widths are rejected.
    """

    def __init__(self, window: int, *, causal: bool = False) -> None:
        if not isinstance(window, (int, np.integer)) or window < 1 or window % 2 == 0:
            raise ConfigurationError(f"median window must be a positive odd integer, got {window!r}")
        self.window = int(window)
        self.causal = bool(causal)

    def apply(self, samples) -> np.ndarray:
        return rolling_median(samples, self.window, causal=self.causal)


class LinearSmoother(_BaseStage):
    """Moving-average prefilter used by the classical method (smears spikes)."""

    def __init__(self, window: int, *, causal: bool = False) -> None:
        if not isinstance(window, (int, np.integer)) or window < 1:
            raise ConfigurationError(f"mean window must be a positive integer, got {window!r}")
        self.window = int(window)
        self.causal = bool(causal)

    def apply(self, samples) -> np.ndarray:
        return moving_mean(samples, self.window, causal=self.causal)


class Detrender(_BaseStage):
    """Subtracts a long moving average to strip slow baseline drift."""

    def __init__(self, long_window: int, *, causal: bool = False) -> None:
        if not isinstance(long_window, (int, np.integer)) or long_window < 1:
            raise ConfigurationError(f"long_window must be a positive integer, got {long_window!r}")
        self.long_window = int(long_window)
        self.causal = bool(causal)

    def apply(self, samples) -> np.ndarray:
        x = _as_signal(samples)
        return x - moving_mean(x, self.long_window, causal=self.causal)


def characteristic_function(detrended) -> np.ndarray:
    """Instantaneous energy proxy: the squared detrended amplitude."""
    x = _as_signal(detrended, "detrended")
    return x * x


def make_smoother(config: DetectorConfig) -> _BaseStage:
    if config.smoother == "median":
        return RobustSmoother(config.window, causal=config.causal)
    return LinearSmoother(config.window, causal=config.causal)


class SignalConditioner:
    """Chains smoothing, detrending and CF computation for one detector config."""

    def __init__(self, config: DetectorConfig) -> None:
        self._config = config
        self._smoother = make_smoother(config)
        self._detrender = Detrender(config.long_window, causal=config.causal)

    @property
    def config(self) -> DetectorConfig:
        return self._config

    def process(self, samples) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return ``(smoothed, detrended, cf)`` for a whole sequence."""
        x = _as_signal(samples)
        if x.size < self._config.window:
            logger.debug(
                "Signal (%d samples) shorter than smoothing window %d; using shrunk windows",
                x.size,
                self._config.window,
            )
        smoothed = self._smoother.apply(x)
        detrended = self._detrender.apply(smoothed)
        return smoothed, detrended, characteristic_function(detrended)


__all__ = [
    "validate_samples",
    "moving_mean",
    "rolling_median",
    "RobustSmoother",
    "LinearSmoother",
    "Detrender",
    "characteristic_function",
    "make_smoother",
    "SignalConditioner",
]
