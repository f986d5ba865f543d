"""
Property-based tests for SampleRingBuffer using Hypothesis.

The buffer is compared against a plain Python list trimmed to capacity
after every write, for arbitrary interleavings of append() and clear().
"""
from __future__ import annotations

import numpy as np
from hypothesis import given, settings, strategies as st

from shared.ring_buffer import SampleRingBuffer

finite = st.floats(min_value=-1e6, max_value=1e6)
# None stands for a clear()
operations = st.lists(st.one_of(finite, st.none()), min_size=1, max_size=120)


@given(capacity=st.integers(min_value=1, max_value=32), ops=operations)
@settings(max_examples=200, deadline=None)
def test_matches_trimmed_list(capacity, ops):
    buf = SampleRingBuffer(capacity)
    model: list = []
    for op in ops:
        if op is None:
            buf.clear()
            model = []
        else:
            buf.append(op)
            model.append(op)
        model = model[-capacity:]
        np.testing.assert_array_equal(buf.values(), model)
        assert len(buf) == len(model)
        if model:
            np.testing.assert_allclose(buf.mean(), np.mean(model), rtol=1e-9, atol=1e-6)


@given(capacity=st.integers(min_value=1, max_value=64), values=st.lists(finite, min_size=1, max_size=200))
@settings(max_examples=100, deadline=None)
def test_statistics_use_trailing_window(capacity, values):
    buf = SampleRingBuffer(capacity)
    for v in values:
        buf.append(v)
    tail = np.asarray(values[-capacity:])
    assert buf.median() == np.median(tail)
    np.testing.assert_allclose(buf.mean(), np.mean(tail), rtol=1e-9, atol=1e-6)
