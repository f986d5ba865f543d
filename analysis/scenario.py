"""Synthetic-anomaly test scenarios built on a real (or simulated) background."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from core.conditioning import validate_samples
from shared.app_settings import ScenarioSettings
from shared.errors import InputError

from .metrics import find_spikes, locate_largest_spike, segment_bounds, smoothed_noise_floor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnomalySpec:
    """A rectangular pulse covering samples ``[start, start + duration)``."""

    start: int
    duration: int
    amplitude: float

    def __post_init__(self) -> None:
        if self.start < 0:
            raise InputError("anomaly start must be non-negative")
        if self.duration <= 0:
            raise InputError("anomaly duration must be positive")

    @property
    def stop(self) -> int:
        return self.start + self.duration

    @property
    def bounds(self) -> Tuple[int, int]:
        return self.start, self.stop


def inject_anomaly(samples: np.ndarray, anomaly: AnomalySpec) -> np.ndarray:
    """Return a copy of `samples` with the rectangular pulse added."""
    arr = validate_samples(samples)
    if anomaly.start >= arr.size:
        raise InputError(f"anomaly starts at {anomaly.start} but signal has {arr.size} samples")
    if anomaly.stop > arr.size:
        logger.warning(
            "Anomaly [%d, %d) runs past the end of the signal (%d samples); truncating",
            anomaly.start,
            anomaly.stop,
            arr.size,
        )
    arr[anomaly.start : anomaly.stop] += anomaly.amplitude
    return arr


@dataclass(frozen=True)
class Scenario:
    """Background segment, the test signal derived from it and its annotations."""

    segment: np.ndarray
    test_signal: np.ndarray
    segment_start: int
    anomaly: AnomalySpec
    noise_floor: float
    spike_indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))

    @property
    def n_samples(self) -> int:
        return int(self.segment.size)


def build_scenario(raw: np.ndarray, settings: ScenarioSettings | None = None) -> Scenario:
    """Reproduce the reference experiment on a background recording.

    1. Center a window of ``±segment_half_width`` samples on the largest spike.
    2. Annotate natural spikes in the window (outside the anomaly region).
    3. Size the anomaly at ``multiplier`` times the noise floor of the
       median-smoothed window and add it at ``anomaly_start``.
    """
    settings = settings or ScenarioSettings()
    data = validate_samples(raw)

    center = locate_largest_spike(data, settings.locate_window)
    start, stop = segment_bounds(data.size, center, settings.segment_half_width)
    segment = data[start:stop].copy()
    if segment.size <= settings.anomaly_start:
        raise InputError(
            f"segment has {segment.size} samples; anomaly_start {settings.anomaly_start} does not fit"
        )

    nf = smoothed_noise_floor(segment, settings.noise_smoothing_window, settings.noise_window)
    anomaly = AnomalySpec(
        start=settings.anomaly_start,
        duration=settings.anomaly_duration,
        amplitude=settings.multiplier * nf,
    )
    spikes = find_spikes(
        segment,
        window=settings.spike_window,
        sigma=settings.spike_sigma,
        min_distance=settings.spike_min_distance,
        exclude=anomaly.bounds,
    )
    logger.info(
        "Scenario: segment [%d, %d) around spike at %d; %d natural spike(s); anomaly amplitude %.4g",
        start,
        stop,
        center,
        spikes.size,
        anomaly.amplitude,
    )
    return Scenario(
        segment=segment,
        test_signal=inject_anomaly(segment, anomaly),
        segment_start=start,
        anomaly=anomaly,
        noise_floor=nf,
        spike_indices=spikes,
    )


__all__ = ["AnomalySpec", "inject_anomaly", "Scenario", "build_scenario"]
