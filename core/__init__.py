"""Core detection pipeline."""

from .conditioning import (
    Detrender,
    LinearSmoother,
    RobustSmoother,
    SignalConditioner,
    characteristic_function,
    moving_mean,
    rolling_median,
    validate_samples,
)
from .detection import (
    AlwaysUpdate,
    EnergyEstimator,
    FreezeOnActive,
    HysteresisTrigger,
    StaLtaDetector,
)
from shared.models import Chunk, DetectionEvent, DetectionResult, DetectorConfig, TriggerState

__all__ = [
    "Chunk",
    "DetectionEvent",
    "DetectionResult",
    "DetectorConfig",
    "TriggerState",
    "validate_samples",
    "moving_mean",
    "rolling_median",
    "RobustSmoother",
    "LinearSmoother",
    "Detrender",
    "characteristic_function",
    "SignalConditioner",
    "EnergyEstimator",
    "HysteresisTrigger",
    "AlwaysUpdate",
    "FreezeOnActive",
    "StaLtaDetector",
]
