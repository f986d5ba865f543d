# daq/simulated_source.py
"""Synthetic geoelectric-style background: noise, slow drift and natural spikes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import numpy as np

from shared.models import Chunk


@dataclass(frozen=True)
class BackgroundSpec:
    """Parameters of the simulated background.

    `spike_amplitudes` are in units of `noise_std`; spikes are single-sample
    impulses of random polarity placed at least `spike_min_gap` apart.
    """

    n_samples: int = 4000
    noise_std: float = 1.0
    drift_amplitude: float = 5.0
    drift_period: int = 20000
    offset: float = 0.0
    n_spikes: int = 6
    spike_amplitude_range: Tuple[float, float] = (8.0, 20.0)
    spike_min_gap: int = 150

    def __post_init__(self) -> None:
        if self.n_samples <= 0:
            raise ValueError("n_samples must be positive")
        if self.noise_std < 0:
            raise ValueError("noise_std must be non-negative")
        if self.drift_period <= 0:
            raise ValueError("drift_period must be positive")
        if self.n_spikes < 0:
            raise ValueError("n_spikes must be non-negative")
        low, high = self.spike_amplitude_range
        if not 0 < low <= high:
            raise ValueError("spike_amplitude_range must satisfy 0 < low <= high")


class SimulatedBackground:
    """Deterministic (seeded) stand-in for a recorded background segment."""

    def __init__(self, spec: Optional[BackgroundSpec] = None, *, seed: Optional[int] = None) -> None:
        self._spec = spec or BackgroundSpec()
        self._rng = np.random.default_rng(seed)
        self._samples, self._spike_indices = self._generate()

    @property
    def spec(self) -> BackgroundSpec:
        return self._spec

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    @property
    def spike_indices(self) -> np.ndarray:
        """Ground-truth positions of the injected natural spikes."""
        return self._spike_indices

    def _place_spikes(self, n: int) -> np.ndarray:
        spec = self._spec
        chosen: list[int] = []
        attempts = 0
        while len(chosen) < spec.n_spikes and attempts < 100 * max(1, spec.n_spikes):
            attempts += 1
            candidate = int(self._rng.integers(0, n))
            if all(abs(candidate - c) >= spec.spike_min_gap for c in chosen):
                chosen.append(candidate)
        return np.array(sorted(chosen), dtype=np.int64)

    def _generate(self) -> Tuple[np.ndarray, np.ndarray]:
        spec = self._spec
        n = spec.n_samples
        t = np.arange(n, dtype=np.float64)
        signal = spec.offset + spec.drift_amplitude * np.sin(2.0 * np.pi * t / spec.drift_period)
        signal += self._rng.normal(0.0, spec.noise_std, n)

        spikes = self._place_spikes(n)
        low, high = spec.spike_amplitude_range
        amps = self._rng.uniform(low, high, spikes.size) * spec.noise_std
        signs = self._rng.choice((-1.0, 1.0), spikes.size)
        signal[spikes] += signs * amps
        return signal, spikes

    def iter_chunks(self, chunk_size: int = 256, sample_rate: float = 1.0) -> Iterator[Chunk]:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        dt = 1.0 / sample_rate
        for seq, start in enumerate(range(0, self._samples.size, chunk_size)):
            yield Chunk(
                samples=self._samples[start : start + chunk_size].reshape(1, -1),
                start_time=start * dt,
                dt=dt,
                seq=seq,
                channel_names=("Simulated",),
            )


__all__ = ["BackgroundSpec", "SimulatedBackground"]
