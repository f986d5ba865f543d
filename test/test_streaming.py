"""
Tests for chunked causal detection.

The streaming detector must reproduce the batch pipeline configured with
trailing windows regardless of how the signal is cut into chunks, and must
keep channels fully independent.
"""
from __future__ import annotations

from typing import Iterator, List

import numpy as np
import pytest

from core.detection import StaLtaDetector
from core.streaming import StreamingDetector
from shared.models import Chunk, DetectorConfig, events_from_flags
from test.fixtures.signal_generators import add_impulses, add_step, make_flat_noise

CONFIG = DetectorConfig(window=31, long_window=200, causal=True)


def make_signal(seed: int = 31) -> np.ndarray:
    x = make_flat_noise(3000, seed=seed)
    x = add_impulses(x, [500, 1700], 15.0)
    return add_step(x, 1200, 300, 6.0)


def iter_chunks(samples: np.ndarray, chunk_size: int, names=("Ch0",)) -> Iterator[Chunk]:
    if samples.ndim == 1:
        samples = samples.reshape(1, -1)
    for seq, start in enumerate(range(0, samples.shape[1], chunk_size)):
        yield Chunk(
            samples=samples[:, start : start + chunk_size],
            start_time=float(start),
            dt=1.0,
            seq=seq,
            channel_names=tuple(names),
        )


def run_stream(detector: StreamingDetector, chunks) -> List:
    outputs = [detector.process_chunk(chunk) for chunk in chunks]
    return outputs


class TestBatchEquivalence:
    @pytest.mark.parametrize("chunk_size", [1, 97, 1000, 5000])
    @pytest.mark.parametrize("policy", ["always", "freeze"])
    def test_matches_causal_batch(self, chunk_size, policy):
        x = make_signal()
        batch = StaLtaDetector(CONFIG, policy).process(x)
        outputs = run_stream(StreamingDetector(CONFIG, policy), iter_chunks(x, chunk_size))

        ratio = np.concatenate([o.ratio[0] for o in outputs])
        flags = np.concatenate([o.flags[0] for o in outputs])
        lta = np.concatenate([o.lta[0] for o in outputs])
        np.testing.assert_allclose(ratio, batch.ratio, rtol=1e-6, atol=1e-9)
        np.testing.assert_allclose(lta, batch.lta, rtol=1e-6, atol=1e-12)
        np.testing.assert_array_equal(flags, batch.flags)

    def test_events_match_batch(self):
        x = make_signal()
        batch = StaLtaDetector(CONFIG, "freeze").process(x)
        detector = StreamingDetector(CONFIG, "freeze")
        events = []
        for output in run_stream(detector, iter_chunks(x, 128)):
            events.extend(output.events)
        events.extend(detector.finalize())
        assert [(e.onset, e.offset) for e in events] == [(e.onset, e.offset) for e in batch.events]
        assert detector.stats.events == len(events)

    def test_start_index_advances(self):
        x = make_signal()
        outputs = run_stream(StreamingDetector(CONFIG), iter_chunks(x, 700))
        assert [o.start_index for o in outputs] == [0, 700, 1400, 2100, 2800]


class TestChannels:
    def test_channels_are_independent(self):
        a = make_signal(seed=32)
        b = make_flat_noise(3000, seed=33)
        both = run_stream(StreamingDetector(CONFIG), iter_chunks(np.vstack([a, b]), 250, names=("a", "b")))
        only_b = run_stream(StreamingDetector(CONFIG), iter_chunks(b, 250, names=("b",)))
        np.testing.assert_array_equal(
            np.concatenate([o.ratio[1] for o in both]),
            np.concatenate([o.ratio[0] for o in only_b]),
        )

    def test_event_channel_index(self):
        quiet = np.zeros(3000)
        detector = StreamingDetector(CONFIG)
        events = []
        for output in run_stream(detector, iter_chunks(np.vstack([quiet, make_signal()]), 500, names=("q", "s"))):
            events.extend(output.events)
        events.extend(detector.finalize())
        assert events
        assert {e.chan for e in events} == {1}

    def test_layout_change_requires_reset(self):
        detector = StreamingDetector(CONFIG)
        detector.process_chunk(next(iter_chunks(np.zeros(10), 10, names=("a",))))
        with pytest.raises(ValueError, match="channel layout changed"):
            detector.process_chunk(next(iter_chunks(np.zeros(10), 10, names=("b",))))
        detector.reset(("b",))
        detector.process_chunk(next(iter_chunks(np.zeros(10), 10, names=("b",))))


class TestStreamingDetector:
    def test_forces_trailing_windows(self):
        detector = StreamingDetector(DetectorConfig())
        assert detector.config.causal

    def test_finalize_closes_open_event(self):
        x = add_step(make_flat_noise(1500, seed=34), 1000, 500, 8.0)
        # Long detrend window so the step is still above baseline at the end.
        detector = StreamingDetector(DetectorConfig(window=31, long_window=1000, causal=True))
        outputs = run_stream(detector, iter_chunks(x, 300))
        flags = np.concatenate([o.flags[0] for o in outputs])
        assert flags[-1]
        closing = detector.finalize()
        assert len(closing) == 1
        assert closing[0].offset == 1500
        assert detector.finalize() == []

    def test_stats(self):
        detector = StreamingDetector(CONFIG)
        run_stream(detector, iter_chunks(make_flat_noise(1000, seed=35), 300))
        assert detector.stats.snapshot()["chunks"] == 4
        assert detector.stats.samples == 1000

    def test_events_agree_with_flags(self):
        x = make_signal()
        detector = StreamingDetector(CONFIG)
        outputs = run_stream(detector, iter_chunks(x, 333))
        events = [e for o in outputs for e in o.events] + detector.finalize()
        flags = np.concatenate([o.flags[0] for o in outputs])
        assert [(e.onset, e.offset) for e in events] == [(e.onset, e.offset) for e in events_from_flags(flags)]


def test_detection_log_carries_stream_time(caplog):
    x = np.zeros(1500)
    x[400:460] = 5.0
    chunks = [
        Chunk(x[None, start : start + 100], start_time=10.0 + start * 0.01, dt=0.01, seq=seq, channel_names=("Ch0",))
        for seq, start in enumerate(range(0, 1500, 100))
    ]
    detector = StreamingDetector(DetectorConfig(window=5, long_window=100, causal=True), "freeze")
    with caplog.at_level("INFO", logger="core.streaming"):
        events = [e for chunk in chunks for e in detector.process_chunk(chunk).events]
    assert events
    assert f"at {10.0 + events[0].onset * 0.01:.3f} s" in caplog.text
