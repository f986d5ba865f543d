"""Recursive short-term / long-term energy averages (STA/LTA)."""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from shared.errors import ConfigurationError

from .base import AlwaysUpdate, FreezePolicy

DEFAULT_EPSILON = 1e-9


class EnergyEstimator:
    """Exponentially weighted STA and LTA of a characteristic function.

    Per sample::

        STA[i] = a_s * cf[i] + (1 - a_s) * STA[i-1]
        LTA[i] = a_l * cf[i] + (1 - a_l) * LTA[i-1]    unless frozen
        LTA[i] = LTA[i-1]                               when frozen
        r[i]   = STA[i] / (LTA[i] + eps)

    Both averages are seeded with the first CF value. Whether the LTA is
    frozen on a step is decided by the freeze policy from the trigger state
    the caller passes in; with `AlwaysUpdate` this is the classical detector.
    """

    def __init__(
        self,
        alpha_short: float,
        alpha_long: float,
        *,
        epsilon: float = DEFAULT_EPSILON,
        policy: Optional[FreezePolicy] = None,
    ) -> None:
        if not 0.0 < alpha_short < 1.0 or not 0.0 < alpha_long < 1.0:
            raise ConfigurationError("smoothing coefficients must lie in (0, 1)")
        if alpha_short <= alpha_long:
            raise ConfigurationError("alpha_short must be greater than alpha_long")
        if not epsilon > 0.0:
            raise ConfigurationError("epsilon must be positive")
        self._alpha_short = float(alpha_short)
        self._alpha_long = float(alpha_long)
        self._epsilon = float(epsilon)
        self._policy: FreezePolicy = policy if policy is not None else AlwaysUpdate()
        self._sta: Optional[float] = None
        self._lta: Optional[float] = None

    @property
    def policy(self) -> FreezePolicy:
        return self._policy

    @property
    def seeded(self) -> bool:
        return self._sta is not None

    @property
    def sta(self) -> Optional[float]:
        return self._sta

    @property
    def lta(self) -> Optional[float]:
        return self._lta

    @property
    def ratio(self) -> float:
        if self._sta is None:
            raise RuntimeError("estimator has not been seeded")
        return self._sta / (self._lta + self._epsilon)

    def reset(self) -> None:
        self._sta = None
        self._lta = None

    def seed(self, cf: float) -> float:
        value = float(cf)
        self._sta = value
        self._lta = value
        return self.ratio

    def update(self, cf: float, *, trigger_active: bool = False) -> float:
        """Advance one sample and return the new ratio.

        `trigger_active` is the trigger state after the previous sample.
        The first call seeds the estimator instead of updating it.
        """
        if self._sta is None:
            return self.seed(cf)
        value = float(cf)
        self._sta = self._alpha_short * value + (1.0 - self._alpha_short) * self._sta
        if not self._policy.freeze_lta(trigger_active):
            self._lta = self._alpha_long * value + (1.0 - self._alpha_long) * self._lta
        return self._sta / (self._lta + self._epsilon)

    def run(
        self,
        cf: Sequence[float],
        trigger_active: Optional[Sequence[bool]] = None,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Replay a whole CF sequence from a fresh state.

        `trigger_active[i]` is the trigger state fed in at step i; omitted
        means the trigger never fires.
        """
        values = np.asarray(cf, dtype=np.float64).reshape(-1)
        n = values.size
        if trigger_active is None:
            active = [False] * n
        else:
            active = [bool(a) for a in trigger_active]
            if len(active) != n:
                raise ValueError("trigger_active length must match cf length")
        sta = np.empty(n, dtype=np.float64)
        lta = np.empty(n, dtype=np.float64)
        ratio = np.empty(n, dtype=np.float64)
        self.reset()
        for i, value in enumerate(values.tolist()):
            ratio[i] = self.update(value, trigger_active=active[i])
            sta[i] = self._sta
            lta[i] = self._lta
        return sta, lta, ratio


__all__ = ["EnergyEstimator", "DEFAULT_EPSILON"]
