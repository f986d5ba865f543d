from __future__ import annotations

from typing import Sequence

import numpy as np

from shared.errors import ConfigurationError
from shared.models import TriggerState


class HysteresisTrigger:
    """Two-threshold trigger on the STA/LTA ratio.

    ARMED -> ACTIVE when the ratio exceeds `threshold_on`; ACTIVE -> ARMED
    when it drops below `threshold_off`. Ratios inside the dead band
    ``[threshold_off, threshold_on]`` leave the state unchanged.
    """

    def __init__(self, threshold_on: float, threshold_off: float) -> None:
        if not (np.isfinite(threshold_on) and np.isfinite(threshold_off)):
            raise ConfigurationError("thresholds must be finite")
        if not threshold_off > 0.0:
            raise ConfigurationError("threshold_off must be positive")
        if threshold_off >= threshold_on:
            raise ConfigurationError("threshold_off must be lower than threshold_on")
        self.threshold_on = float(threshold_on)
        self.threshold_off = float(threshold_off)
        self._state = TriggerState.ARMED

    @property
    def state(self) -> TriggerState:
        return self._state

    @property
    def active(self) -> bool:
        return self._state is TriggerState.ACTIVE

    def reset(self) -> None:
        self._state = TriggerState.ARMED

    def update(self, ratio: float) -> bool:
        """Evaluate one ratio and return the detection flag."""
        if self._state is TriggerState.ARMED:
            if ratio > self.threshold_on:
                self._state = TriggerState.ACTIVE
        elif ratio < self.threshold_off:
            self._state = TriggerState.ARMED
        return self._state is TriggerState.ACTIVE

    def run(self, ratios: Sequence[float]) -> np.ndarray:
        self.reset()
        values = np.asarray(ratios, dtype=np.float64).reshape(-1)
        return np.fromiter((self.update(r) for r in values.tolist()), dtype=bool, count=values.size)


__all__ = ["HysteresisTrigger"]
