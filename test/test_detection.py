"""Tests for the lockstep STA/LTA detector and the freeze-policy registry."""
from __future__ import annotations

import numpy as np
import pytest

from core.detection import (
    FREEZE_POLICY_REGISTRY,
    AlwaysUpdate,
    FreezeOnActive,
    LockstepDetector,
    StaLtaDetector,
    get_policy,
)
from shared.errors import ConfigurationError
from shared.models import DetectionResult, DetectorConfig, TriggerState
from test.fixtures.reference_models import reference_sta_lta
from test.fixtures.signal_generators import make_cf_step, make_flat_noise

CONFIG = DetectorConfig()


class TestPolicyRegistry:
    def test_registered_policies(self):
        assert {"always", "freeze"} <= set(FREEZE_POLICY_REGISTRY)
        assert isinstance(get_policy("always"), AlwaysUpdate)
        assert isinstance(get_policy("freeze"), FreezeOnActive)

    def test_unknown_policy(self):
        with pytest.raises(ConfigurationError, match="available"):
            get_policy("sometimes")

    def test_freeze_decisions(self):
        assert not AlwaysUpdate().freeze_lta(True)
        assert FreezeOnActive().freeze_lta(True)
        assert not FreezeOnActive().freeze_lta(False)


class TestLockstepDetector:
    def test_first_step_seeds_and_never_fires(self):
        core = LockstepDetector(CONFIG, FreezeOnActive())
        sta, lta, ratio, flag = core.step(100.0)
        assert (sta, lta) == (100.0, 100.0)
        assert flag is False
        assert core.state is TriggerState.ARMED

    def test_freeze_uses_previous_trigger_state(self):
        core = LockstepDetector(CONFIG, FreezeOnActive())
        core.step(1.0)
        _, lta_fire, _, flag = core.step(1000.0)
        assert flag
        # The step that fired still updated the LTA; the next one holds it.
        assert lta_fire > 1.0
        _, lta_next, _, _ = core.step(1000.0)
        assert lta_next == lta_fire

    def test_reset(self):
        core = LockstepDetector(CONFIG, FreezeOnActive())
        core.step(1.0)
        core.step(1000.0)
        core.reset()
        assert core.state is TriggerState.ARMED
        assert not core.estimator.seeded


class TestDetectCf:
    @pytest.mark.parametrize("policy, freeze", [("always", False), ("freeze", True)])
    def test_matches_reference(self, policy, freeze):
        cf = make_flat_noise(3000, seed=21) ** 2
        cf[1000:1400] *= 30.0
        sta, lta, ratio, flags = StaLtaDetector(CONFIG, policy).detect_cf(cf)
        ref = reference_sta_lta(
            cf.tolist(),
            CONFIG.alpha_short,
            CONFIG.alpha_long,
            CONFIG.threshold_on,
            CONFIG.threshold_off,
            freeze=freeze,
        )
        np.testing.assert_array_equal(sta, ref[0])
        np.testing.assert_array_equal(lta, ref[1])
        np.testing.assert_array_equal(ratio, ref[2])
        np.testing.assert_array_equal(flags, ref[3])
        assert flags.any()

    def test_lta_held_while_active(self):
        cf = make_cf_step(6000, 2000, 3000)
        _, lta, _, flags = StaLtaDetector(CONFIG, "freeze").detect_cf(cf)
        held = np.flatnonzero(flags[:-1]) + 1
        assert held.size > 0
        np.testing.assert_array_equal(lta[held], lta[held - 1])

    def test_classical_self_suppresses_on_sustained_anomaly(self):
        start, duration = 2000, 3000
        cf = make_cf_step(7000, start, duration)
        _, _, _, flags = StaLtaDetector(CONFIG, "always").detect_cf(cf)
        assert flags[start + 10]
        assert not flags[start + 1500 : start + duration].any()

    def test_freeze_stays_active_for_whole_anomaly(self):
        start, duration = 2000, 3000
        cf = make_cf_step(7000, start, duration)
        _, _, _, flags = StaLtaDetector(CONFIG, "freeze").detect_cf(cf)
        assert not flags[:start].any()
        assert flags[start + 10 : start + duration].all()
        assert not flags[start + duration + 500 :].any()

    def test_empty_cf_rejected(self):
        with pytest.raises(ValueError):
            StaLtaDetector(CONFIG).detect_cf([])


class TestProcess:
    def test_result_shapes_and_metadata(self):
        x = make_flat_noise(1200, seed=22)
        result = StaLtaDetector(CONFIG, "freeze", name="hymad", sample_rate=50.0).process(x)
        assert isinstance(result, DetectionResult)
        assert result.method == "hymad"
        assert result.n_samples == 1200
        for name in ("smoothed", "detrended", "cf", "sta", "lta", "ratio", "flags"):
            assert getattr(result, name).shape == (1200,)
        assert result.times[50] == pytest.approx(1.0)
        assert not result.flags[0]

    def test_default_name_is_policy_name(self):
        assert StaLtaDetector(CONFIG, "always").name == "always"

    def test_policy_instance_accepted(self):
        policy = FreezeOnActive()
        assert StaLtaDetector(CONFIG, policy).policy is policy

    def test_invalid_sample_rate(self):
        with pytest.raises(ValueError):
            StaLtaDetector(CONFIG, sample_rate=0.0)

    def test_short_signal_processed(self):
        result = StaLtaDetector(CONFIG).process([1.0, 2.0, 1.5, 0.5])
        assert result.n_samples == 4
        assert not result.flags.any()

    def test_deterministic(self):
        x = make_flat_noise(800, seed=23)
        a = StaLtaDetector(CONFIG).process(x)
        b = StaLtaDetector(CONFIG).process(x)
        np.testing.assert_array_equal(a.ratio, b.ratio)
        np.testing.assert_array_equal(a.flags, b.flags)
