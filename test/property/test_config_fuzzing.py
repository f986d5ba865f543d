"""
Property-based configuration fuzzing tests.

These tests use Hypothesis to generate random, potentially invalid
configuration values and verify the system handles them gracefully:
1. Invalid values are rejected with ConfigurationError (not crashes)
2. Valid edge-case values work correctly
3. No silent acceptance of clearly wrong values
"""
from __future__ import annotations

import numpy as np
import pytest
from hypothesis import given, settings, strategies as st, assume

from core.detection import EnergyEstimator, HysteresisTrigger
from shared.app_settings import AppSettings, ScenarioSettings
from shared.errors import ConfigurationError
from shared.models import DetectorConfig

any_float = st.floats(allow_nan=True, allow_infinity=True)
weird_floats = st.sampled_from([0.0, -0.0, float("nan"), float("inf"), float("-inf"), 1e-300, 1e300])


class TestDetectorConfigFuzzing:
    @given(
        window=st.integers(min_value=-5, max_value=200),
        long_window=st.integers(min_value=-5, max_value=5000),
        alpha_short=any_float,
        alpha_long=any_float,
        threshold_on=any_float,
        threshold_off=any_float,
        smoother=st.sampled_from(["median", "mean", "gaussian"]),
    )
    @settings(max_examples=200, deadline=None)
    def test_construct_or_configuration_error(
        self, window, long_window, alpha_short, alpha_long, threshold_on, threshold_off, smoother
    ):
        """Any combination either builds a usable config or raises ConfigurationError."""
        try:
            cfg = DetectorConfig(
                window=window,
                long_window=long_window,
                alpha_short=alpha_short,
                alpha_long=alpha_long,
                threshold_on=threshold_on,
                threshold_off=threshold_off,
                smoother=smoother,
            )
        except ConfigurationError:
            return
        assert cfg.window >= 1 and cfg.long_window >= 1
        assert 0.0 < cfg.alpha_long < cfg.alpha_short < 1.0
        assert 0.0 < cfg.threshold_off < cfg.threshold_on < np.inf
        if cfg.smoother == "median":
            assert cfg.window % 2 == 1

    @given(value=weird_floats, field=st.sampled_from(["alpha_short", "alpha_long", "threshold_on", "epsilon"]))
    @settings(max_examples=50, deadline=None)
    def test_weird_values(self, value, field):
        assume(not (field == "epsilon" and 0.0 < value < np.inf))
        assume(not (field == "alpha_long" and value == 1e-300))
        assume(not (field == "threshold_on" and value == 1e300))
        with pytest.raises(ConfigurationError):
            DetectorConfig(**{field: value})

    @given(window=st.integers(min_value=1, max_value=500).filter(lambda w: w % 2 == 1))
    @settings(max_examples=50, deadline=None)
    def test_odd_median_windows_accepted(self, window):
        assert DetectorConfig(window=window).window == window


class TestComponentFuzzing:
    @given(on=any_float, off=any_float)
    @settings(max_examples=100, deadline=None)
    def test_trigger_thresholds(self, on, off):
        try:
            trigger = HysteresisTrigger(on, off)
        except ConfigurationError:
            return
        assert trigger.threshold_off < trigger.threshold_on

    @given(a_s=any_float, a_l=any_float)
    @settings(max_examples=100, deadline=None)
    def test_estimator_coefficients(self, a_s, a_l):
        try:
            EnergyEstimator(a_s, a_l)
        except ConfigurationError:
            return
        assert 0.0 < a_l < a_s < 1.0


class TestSettingsFuzzing:
    @given(sample_rate=st.one_of(st.floats(max_value=0.0), st.just(float("nan")), st.just(float("inf"))))
    @settings(max_examples=50, deadline=None)
    def test_invalid_sample_rate_rejected(self, sample_rate):
        with pytest.raises(ConfigurationError):
            AppSettings(sample_rate=sample_rate)

    @given(sample_rate=st.floats(min_value=1e-3, max_value=1e6))
    @settings(max_examples=50, deadline=None)
    def test_valid_sample_rate_accepted(self, sample_rate):
        assert AppSettings.from_dict({"sample_rate": sample_rate}).sample_rate == sample_rate


scenario_int_fields = st.sampled_from(
    [
        "segment_half_width",
        "locate_window",
        "spike_window",
        "spike_min_distance",
        "noise_window",
        "noise_smoothing_window",
        "anomaly_start",
        "anomaly_duration",
    ]
)
non_integers = st.one_of(
    st.floats(allow_nan=True, allow_infinity=True),
    st.text(max_size=5),
    st.booleans(),
    st.none(),
)


class TestScenarioSettingsFuzzing:
    @given(field=scenario_int_fields, value=non_integers)
    @settings(max_examples=100, deadline=None)
    def test_integer_fields_reject_non_integers(self, field, value):
        with pytest.raises(ConfigurationError):
            ScenarioSettings(**{field: value})

    @given(
        field=st.sampled_from(["spike_sigma", "multiplier"]),
        value=st.one_of(st.floats(max_value=0.0), weird_floats, st.text(max_size=5), st.booleans()),
    )
    @settings(max_examples=100, deadline=None)
    def test_scale_fields(self, field, value):
        assume(not (isinstance(value, float) and 0.0 < value < np.inf))
        with pytest.raises(ConfigurationError):
            ScenarioSettings(**{field: value})

    @given(
        duration=st.integers(min_value=1, max_value=10_000),
        start=st.integers(min_value=0, max_value=10_000),
        multiplier=st.floats(min_value=1e-3, max_value=100.0),
    )
    @settings(max_examples=50, deadline=None)
    def test_valid_values_accepted(self, duration, start, multiplier):
        scenario = ScenarioSettings(anomaly_start=start, anomaly_duration=duration, multiplier=multiplier)
        assert (scenario.anomaly_start, scenario.anomaly_duration) == (start, duration)
