"""Noise-floor estimation, spike annotation and detection scoring.

Nothing in this module feeds back into the detectors:
- noise_floor: std of a signal after removing its short moving average
- locate_largest_spike / segment_bounds: pick a window around the biggest spike
- find_spikes: local |x| peaks above a multiple of the local noise std (display only)
- summarize_detection: per-method alarm counts and anomaly coverage
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy import signal

from core.conditioning import moving_mean, rolling_median, validate_samples
from shared.models import DetectionResult


def noise_floor(samples: np.ndarray, window: int = 100) -> float:
    """Sample std (ddof=1) of `samples` minus its centered moving mean."""
    arr = validate_samples(samples)
    if arr.size < 2:
        return 0.0
    residual = arr - moving_mean(arr, window)
    return float(np.std(residual, ddof=1))


def smoothed_noise_floor(samples: np.ndarray, smoothing_window: int = 61, window: int = 100) -> float:
    """Noise floor of the median-smoothed signal; the scale anomalies are sized against."""
    return noise_floor(rolling_median(validate_samples(samples), smoothing_window), window)


def locate_largest_spike(samples: np.ndarray, window: int = 1000) -> int:
    arr = validate_samples(samples)
    return int(np.argmax(np.abs(arr - moving_mean(arr, window))))


def segment_bounds(n_samples: int, center: int, half_width: int) -> Tuple[int, int]:
    """Return ``(start, stop)`` of the window ``center ± half_width`` clipped to the data."""
    if n_samples <= 0:
        raise ValueError("n_samples must be positive")
    start = max(0, center - half_width)
    stop = min(n_samples, center + half_width + 1)
    return start, stop


def find_spikes(
    samples: np.ndarray,
    *,
    window: int = 100,
    sigma: float = 3.5,
    min_distance: int = 50,
    exclude: Optional[Tuple[int, int]] = None,
) -> np.ndarray:
    """Indices of natural spikes, for annotation only.

    Peaks of ``|x - movmean(x, window)|`` higher than ``sigma`` times the
    std of that residual, at least `min_distance` samples apart. Peaks inside
    the half-open `exclude` range are dropped.
    """
    arr = validate_samples(samples)
    residual = arr - moving_mean(arr, window)
    if arr.size < 2:
        return np.zeros(0, dtype=np.int64)
    threshold = sigma * float(np.std(residual, ddof=1))
    peaks, _ = signal.find_peaks(np.abs(residual), height=threshold, distance=max(1, int(min_distance)))
    if exclude is not None:
        start, stop = exclude
        peaks = peaks[(peaks < start) | (peaks >= stop)]
    return peaks.astype(np.int64)


@dataclass(frozen=True)
class DetectionSummary:
    method: str
    n_events: int
    active_samples: int
    longest_event: int
    anomaly_detected: bool
    anomaly_coverage: float
    onset_latency: Optional[int]
    false_alarms: int

    def as_dict(self) -> dict:
        return {
            "method": self.method,
            "n_events": self.n_events,
            "active_samples": self.active_samples,
            "longest_event": self.longest_event,
            "anomaly_detected": self.anomaly_detected,
            "anomaly_coverage": self.anomaly_coverage,
            "onset_latency": self.onset_latency,
            "false_alarms": self.false_alarms,
        }


def summarize_detection(result: DetectionResult, anomaly: Optional[Tuple[int, int]] = None) -> DetectionSummary:
    """Score a detector run, optionally against a known ``[start, stop)`` anomaly."""
    events = result.events
    longest = max((e.duration for e in events), default=0)
    coverage = 0.0
    latency: Optional[int] = None
    detected = False
    false_alarms = len(events)
    if anomaly is not None:
        start, stop = anomaly
        stop = min(stop, result.n_samples)
        inside = result.flags[start:stop]
        if inside.size:
            coverage = float(np.mean(inside))
            hits = np.flatnonzero(inside)
            if hits.size:
                detected = True
                latency = int(hits[0])
        false_alarms = sum(1 for e in events if not e.overlaps(start, stop))
    return DetectionSummary(
        method=result.method,
        n_events=len(events),
        active_samples=int(result.flags.sum()),
        longest_event=int(longest),
        anomaly_detected=detected,
        anomaly_coverage=coverage,
        onset_latency=latency,
        false_alarms=false_alarms,
    )


__all__ = [
    "noise_floor",
    "smoothed_noise_floor",
    "locate_largest_spike",
    "segment_bounds",
    "find_spikes",
    "DetectionSummary",
    "summarize_detection",
]
