"""
Data structures, settings and errors shared by the detection core and tooling.
"""

from .errors import ConfigurationError, HyMadError, InputError
from .models import Chunk, DetectionEvent, DetectionResult, DetectorConfig, TriggerState
from .ring_buffer import SampleRingBuffer

__all__ = [
    "HyMadError",
    "ConfigurationError",
    "InputError",
    "Chunk",
    "DetectionEvent",
    "DetectionResult",
    "DetectorConfig",
    "TriggerState",
    "SampleRingBuffer",
]
