"""Chunked, causal detection for live or replayed multi-channel streams."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from shared.models import Chunk, DetectionEvent, DetectorConfig
from shared.ring_buffer import SampleRingBuffer

from .detection.base import FreezePolicy, get_policy
from .detection.stalta import LockstepDetector

logger = logging.getLogger(__name__)


@dataclass
class StreamingStats:
    chunks: int = 0
    samples: int = 0
    events: int = 0

    def snapshot(self) -> Dict[str, int]:
        return {"chunks": self.chunks, "samples": self.samples, "events": self.events}


@dataclass(frozen=True)
class StreamingOutput:
    """Per-sample diagnostics for one processed chunk, shaped (channels, frames)."""

    start_index: int
    sta: np.ndarray
    lta: np.ndarray
    ratio: np.ndarray
    flags: np.ndarray
    events: Tuple[DetectionEvent, ...] = field(default=())


class _ChannelPipeline:
    """Private causal state for a single channel."""

    def __init__(self, config: DetectorConfig, policy: FreezePolicy, chan: int) -> None:
        self._median = config.smoother == "median"
        self._chan = chan
        self._raw = SampleRingBuffer(config.window)
        self._smoothed = SampleRingBuffer(config.long_window)
        self._core = LockstepDetector(config, policy)
        self._index = 0
        self._onset: Optional[int] = None
        self._peak = 0.0

    @property
    def index(self) -> int:
        return self._index

    def push(self, value: float) -> Tuple[float, float, float, bool, Optional[DetectionEvent]]:
        self._raw.append(value)
        smoothed = self._raw.median() if self._median else self._raw.mean()
        self._smoothed.append(smoothed)
        detrended = smoothed - self._smoothed.mean()
        sta, lta, ratio, flag = self._core.step(detrended * detrended)

        finished = None
        if flag:
            if self._onset is None:
                self._onset = self._index
                self._peak = ratio
            else:
                self._peak = max(self._peak, ratio)
        elif self._onset is not None:
            finished = DetectionEvent(self._onset, self._index, self._peak, chan=self._chan)
            self._onset = None
        self._index += 1
        return sta, lta, ratio, flag, finished

    def close_open_event(self) -> Optional[DetectionEvent]:
        if self._onset is None:
            return None
        event = DetectionEvent(self._onset, self._index, self._peak, chan=self._chan)
        self._onset = None
        return event


class StreamingDetector:
    """Runs one independent causal detector per channel over incoming chunks.

    Smoothing and detrending use trailing windows, so processing a signal in
    chunks of any size reproduces the batch pipeline configured with
    ``causal=True``.
    """

    def __init__(
        self,
        config: Optional[DetectorConfig] = None,
        policy: Union[FreezePolicy, str] = "freeze",
    ) -> None:
        config = config or DetectorConfig(causal=True)
        if not config.causal:
            logger.info("Streaming detection requires trailing windows; forcing causal=True")
            config = replace(config, causal=True)
        self._config = config
        self._policy = get_policy(policy) if isinstance(policy, str) else policy
        self._channels: List[_ChannelPipeline] = []
        self._channel_names: Optional[Tuple[str, ...]] = None
        self.stats = StreamingStats()

    @property
    def config(self) -> DetectorConfig:
        return self._config

    @property
    def channel_names(self) -> Optional[Tuple[str, ...]]:
        return self._channel_names

    def reset(self, channel_names: Optional[Tuple[str, ...]] = None) -> None:
        self._channel_names = tuple(channel_names) if channel_names is not None else None
        n = len(self._channel_names) if self._channel_names else 0
        self._channels = [_ChannelPipeline(self._config, self._policy, chan) for chan in range(n)]
        self.stats = StreamingStats()

    def process_chunk(self, chunk: Chunk) -> StreamingOutput:
        if self._channel_names is None:
            self.reset(chunk.channel_names)
        elif chunk.channel_names != self._channel_names:
            raise ValueError("channel layout changed without reset")

        n_ch, n_frames = chunk.samples.shape
        start_index = self._channels[0].index if self._channels else 0
        sta = np.empty((n_ch, n_frames), dtype=np.float64)
        lta = np.empty((n_ch, n_frames), dtype=np.float64)
        ratio = np.empty((n_ch, n_frames), dtype=np.float64)
        flags = np.zeros((n_ch, n_frames), dtype=bool)
        events: List[DetectionEvent] = []

        for ch, pipeline in enumerate(self._channels):
            for j, value in enumerate(chunk.samples[ch].tolist()):
                sta[ch, j], lta[ch, j], ratio[ch, j], flags[ch, j], done = pipeline.push(value)
                if done is not None:
                    events.append(done)

        self.stats.chunks += 1
        self.stats.samples += n_frames
        self.stats.events += len(events)
        origin = chunk.start_time - start_index * chunk.dt
        for event in events:
            logger.info(
                "Detection on %s at %.3f s: samples %d-%d (peak ratio %.2f)",
                self._channel_names[event.chan],
                origin + event.onset * chunk.dt,
                event.onset,
                event.offset,
                event.peak_ratio,
            )
        return StreamingOutput(start_index, sta, lta, ratio, flags, tuple(events))

    def finalize(self) -> List[DetectionEvent]:
        """Close detections still active at end of stream."""
        events = [e for e in (p.close_open_event() for p in self._channels) if e is not None]
        self.stats.events += len(events)
        return events


__all__ = ["StreamingDetector", "StreamingOutput", "StreamingStats"]
