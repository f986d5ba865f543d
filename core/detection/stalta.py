from __future__ import annotations

import logging
from typing import Optional, Tuple, Union

import numpy as np

from core.conditioning import SignalConditioner, _as_signal
from shared.models import DetectionResult, DetectorConfig, TriggerState

from .base import FreezePolicy, get_policy
from .energy import EnergyEstimator
from .trigger import HysteresisTrigger

logger = logging.getLogger(__name__)


class LockstepDetector:
    """One EnergyEstimator + HysteresisTrigger pair advanced together.

    The trigger state after step i-1 is handed to the estimator as the
    freeze signal for step i; only then is the trigger evaluated on the new
    ratio. The first sample seeds the estimator and never fires.
    """

    def __init__(self, config: DetectorConfig, policy: FreezePolicy) -> None:
        self.estimator = EnergyEstimator(
            config.alpha_short,
            config.alpha_long,
            epsilon=config.epsilon,
            policy=policy,
        )
        self.trigger = HysteresisTrigger(config.threshold_on, config.threshold_off)

    @property
    def state(self) -> TriggerState:
        return self.trigger.state

    def reset(self) -> None:
        self.estimator.reset()
        self.trigger.reset()

    def step(self, cf: float) -> Tuple[float, float, float, bool]:
        """Consume one CF value; return ``(sta, lta, ratio, flag)``."""
        if not self.estimator.seeded:
            ratio = self.estimator.seed(cf)
            flag = False
        else:
            ratio = self.estimator.update(cf, trigger_active=self.trigger.active)
            flag = self.trigger.update(ratio)
        return self.estimator.sta, self.estimator.lta, ratio, flag


class StaLtaDetector:
    """Batch detector: conditioning followed by the lockstep STA/LTA trigger."""

    def __init__(
        self,
        config: Optional[DetectorConfig] = None,
        policy: Union[FreezePolicy, str] = "freeze",
        *,
        name: Optional[str] = None,
        sample_rate: float = 1.0,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self._config = config or DetectorConfig()
        self._policy = get_policy(policy) if isinstance(policy, str) else policy
        self._name = name or self._policy.name
        self._sample_rate = float(sample_rate)
        self._conditioner = SignalConditioner(self._config)

    @property
    def config(self) -> DetectorConfig:
        return self._config

    @property
    def policy(self) -> FreezePolicy:
        return self._policy

    @property
    def name(self) -> str:
        return self._name

    def detect_cf(self, cf) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Run the energy/trigger stage over a CF sequence.

        Returns ``(sta, lta, ratio, flags)``.
        """
        values = _as_signal(cf, "cf")
        n = values.size
        sta = np.empty(n, dtype=np.float64)
        lta = np.empty(n, dtype=np.float64)
        ratio = np.empty(n, dtype=np.float64)
        flags = np.zeros(n, dtype=bool)

        core = LockstepDetector(self._config, self._policy)
        for i, value in enumerate(values.tolist()):
            sta[i], lta[i], ratio[i], flags[i] = core.step(value)
        return sta, lta, ratio, flags

    def process(self, samples) -> DetectionResult:
        smoothed, detrended, cf = self._conditioner.process(samples)
        sta, lta, ratio, flags = self.detect_cf(cf)
        result = DetectionResult(
            method=self._name,
            config=self._config,
            smoothed=smoothed,
            detrended=detrended,
            cf=cf,
            sta=sta,
            lta=lta,
            ratio=ratio,
            flags=flags,
            sample_rate=self._sample_rate,
        )
        logger.debug(
            "%s: %d samples, %d event(s), %d active samples",
            self._name,
            result.n_samples,
            len(result.events),
            int(flags.sum()),
        )
        return result


__all__ = ["LockstepDetector", "StaLtaDetector"]
