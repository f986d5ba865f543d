from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from shared.errors import ConfigurationError

SMOOTHER_KINDS = ("median", "mean")


def _freeze_array(array: np.ndarray, *, ndim: int | None = None, dtype=None) -> np.ndarray:
    """Return a read-only, C-contiguous copy of `array`, validating dimensions."""
    arr = np.array(array, dtype=dtype, copy=True, order="C")
    if ndim is not None and arr.ndim != ndim:
        raise ValueError(f"array must be {ndim}D, got {arr.ndim}D")
    arr.setflags(write=False)
    return arr


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


# ----------------------------
# Detector configuration
# ----------------------------

class TriggerState(enum.Enum):
    ARMED = "armed"
    ACTIVE = "active"


@dataclass(frozen=True)
class DetectorConfig:
    """Immutable parameter bundle for one detector instance.

    Attributes:
        window: Smoothing window width W (samples). Must be odd for the
            median smoother.
        long_window: Detrending moving-mean window L (samples).
        alpha_short: STA smoothing coefficient, in (0, 1).
        alpha_long: LTA smoothing coefficient, in (0, alpha_short).
        threshold_on: Ratio above which the trigger becomes active.
        threshold_off: Ratio below which an active trigger re-arms.
        epsilon: Guard added to the LTA before division.
        smoother: ``"median"`` (rank-order) or ``"mean"`` (linear prefilter).
        causal: Use trailing instead of centered windows.
    """

    window: int = 61
    long_window: int = 1000
    alpha_short: float = 1.0 / 30.0
    alpha_long: float = 1.0 / 500.0
    threshold_on: float = 3.0
    threshold_off: float = 1.2
    epsilon: float = 1e-9
    smoother: str = "median"
    causal: bool = False

    def __post_init__(self) -> None:
        for name in ("alpha_short", "alpha_long", "threshold_on", "threshold_off", "epsilon"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
            if not np.isfinite(value):
                raise ConfigurationError(f"{name} must be a finite number, got {value!r}")
        if not _is_int(self.window) or self.window < 1:
            raise ConfigurationError(f"window must be a positive integer, got {self.window!r}")
        if self.smoother not in SMOOTHER_KINDS:
            raise ConfigurationError(
                f"smoother must be one of {', '.join(SMOOTHER_KINDS)}, got {self.smoother!r}"
            )
        if self.smoother == "median" and self.window % 2 == 0:
            raise ConfigurationError(f"median window must be odd, got {self.window}")
        if not _is_int(self.long_window) or self.long_window < 1:
            raise ConfigurationError(
                f"long_window must be a positive integer, got {self.long_window!r}"
            )
        if not 0.0 < self.alpha_short < 1.0:
            raise ConfigurationError("alpha_short must be in (0, 1)")
        if not 0.0 < self.alpha_long < 1.0:
            raise ConfigurationError("alpha_long must be in (0, 1)")
        if self.alpha_short <= self.alpha_long:
            raise ConfigurationError("alpha_short must be greater than alpha_long")
        if not self.threshold_off > 0.0:
            raise ConfigurationError("threshold_off must be positive")
        if self.threshold_off >= self.threshold_on:
            raise ConfigurationError("threshold_off must be lower than threshold_on")
        if not self.epsilon > 0.0:
            raise ConfigurationError("epsilon must be positive")
        object.__setattr__(self, "window", int(self.window))
        object.__setattr__(self, "long_window", int(self.long_window))
        object.__setattr__(self, "causal", bool(self.causal))

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DetectorConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown detector settings: {', '.join(unknown)}")
        return cls(**dict(data))


# ----------------------------
# Streaming data models
# ----------------------------

@dataclass(frozen=True)
class Chunk:
    """Block of multi-channel samples handed to the streaming detector."""

    samples: np.ndarray
    start_time: float
    dt: float
    seq: int
    channel_names: Tuple[str, ...]

    def __post_init__(self) -> None:
        if self.dt <= 0:
            raise ValueError("dt must be positive")
        if self.seq < 0:
            raise ValueError("seq must be non-negative")
        if not self.channel_names:
            raise ValueError("channel_names must not be empty")

        samples = _freeze_array(self.samples, ndim=2, dtype=np.float64)
        if samples.shape[0] != len(self.channel_names):
            raise ValueError("samples shape mismatch: axis 0 must match len(channel_names)")

        object.__setattr__(self, "samples", samples)
        object.__setattr__(self, "channel_names", tuple(self.channel_names))

    @property
    def n_channels(self) -> int:
        return self.samples.shape[0]

    @property
    def n_samples(self) -> int:
        return self.samples.shape[1]

    @property
    def duration(self) -> float:
        return self.n_samples * self.dt


# ----------------------------
# Detection output
# ----------------------------

@dataclass(frozen=True)
class DetectionEvent:
    """One contiguous run of active detection flags.

    Attributes:
        onset: Index of the first flagged sample.
        offset: Index one past the last flagged sample.
        peak_ratio: Largest STA/LTA ratio inside the run.
        chan: Channel index the event belongs to.
    """

    onset: int
    offset: int
    peak_ratio: float
    chan: int = 0

    def __post_init__(self) -> None:
        if self.onset < 0:
            raise ValueError("onset must be non-negative")
        if self.offset <= self.onset:
            raise ValueError("offset must be greater than onset")

    @property
    def duration(self) -> int:
        return self.offset - self.onset

    def onset_time(self, sample_rate: float) -> float:
        return self.onset / float(sample_rate)

    def overlaps(self, start: int, stop: int) -> bool:
        return self.onset < stop and start < self.offset


def events_from_flags(flags: np.ndarray, ratio: Optional[np.ndarray] = None, *, chan: int = 0) -> List[DetectionEvent]:
    """Collapse a boolean flag sequence into onset/offset intervals."""
    flags = np.asarray(flags, dtype=bool)
    if flags.size == 0:
        return []
    edges = np.diff(np.concatenate(([0], flags.astype(np.int8), [0])))
    onsets = np.flatnonzero(edges == 1)
    offsets = np.flatnonzero(edges == -1)
    events = []
    for onset, offset in zip(onsets, offsets):
        peak = float(np.max(ratio[onset:offset])) if ratio is not None else float("nan")
        events.append(DetectionEvent(onset=int(onset), offset=int(offset), peak_ratio=peak, chan=chan))
    return events


@dataclass(frozen=True)
class DetectionResult:
    """Per-sample output of one detector run plus its diagnostic sequences."""

    method: str
    config: DetectorConfig
    smoothed: np.ndarray
    detrended: np.ndarray
    cf: np.ndarray
    sta: np.ndarray
    lta: np.ndarray
    ratio: np.ndarray
    flags: np.ndarray
    sample_rate: float = 1.0
    events: Tuple[DetectionEvent, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        n = len(self.flags)
        for name in ("smoothed", "detrended", "cf", "sta", "lta", "ratio"):
            arr = _freeze_array(getattr(self, name), ndim=1, dtype=np.float64)
            if arr.shape[0] != n:
                raise ValueError(f"{name} length {arr.shape[0]} does not match flags length {n}")
            object.__setattr__(self, name, arr)
        flags = _freeze_array(self.flags, ndim=1, dtype=bool)
        object.__setattr__(self, "flags", flags)
        if not self.events:
            object.__setattr__(self, "events", tuple(events_from_flags(flags, self.ratio)))

    @property
    def n_samples(self) -> int:
        return int(self.flags.shape[0])

    @property
    def times(self) -> np.ndarray:
        return np.arange(self.n_samples, dtype=np.float64) / self.sample_rate

    def as_arrays(self) -> Dict[str, np.ndarray]:
        return {
            "time": self.times,
            "smoothed": self.smoothed,
            "detrended": self.detrended,
            "cf": self.cf,
            "sta": self.sta,
            "lta": self.lta,
            "ratio": self.ratio,
            "flag": self.flags,
        }


__all__ = [
    "SMOOTHER_KINDS",
    "TriggerState",
    "DetectorConfig",
    "Chunk",
    "DetectionEvent",
    "DetectionResult",
    "events_from_flags",
]
