from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from analysis.metrics import DetectionSummary, summarize_detection
from analysis.scenario import Scenario, build_scenario
from shared.app_settings import AppSettings
from shared.errors import ConfigurationError
from shared.models import Chunk, DetectionEvent, DetectionResult, DetectorConfig

from .conditioning import validate_samples
from .detection import StaLtaDetector, get_policy
from .streaming import StreamingDetector

# Method name -> freeze policy name.
METHODS: Dict[str, str] = {"classical": "always", "hymad": "freeze"}


@dataclass(frozen=True)
class ComparisonResult:
    results: Dict[str, DetectionResult]
    summaries: Dict[str, DetectionSummary]
    anomaly: Optional[Tuple[int, int]] = None

    def __getitem__(self, method: str) -> DetectionResult:
        return self.results[method]


@dataclass
class StreamRun:
    events: List[DetectionEvent] = field(default_factory=list)
    flags: List[np.ndarray] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)

    def concatenated_flags(self) -> np.ndarray:
        if not self.flags:
            return np.zeros((0, 0), dtype=bool)
        return np.concatenate(self.flags, axis=1)


class DetectionRuntime:
    """Headless entry point that builds detectors from application settings."""

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or AppSettings()
        self.logger = logger or logging.getLogger(__name__)

    def config_for(self, method: str) -> DetectorConfig:
        if method not in METHODS:
            raise ConfigurationError(f"Unknown method {method!r}; choose from {', '.join(METHODS)}")
        return getattr(self.settings, method)

    def detector(self, method: str = "hymad") -> StaLtaDetector:
        return StaLtaDetector(
            self.config_for(method),
            METHODS[method],
            name=method,
            sample_rate=self.settings.sample_rate,
        )

    def detect(self, samples, method: str = "hymad", *, strict: bool = False) -> DetectionResult:
        """Validate `samples` and run one method over them.

        With `strict`, signals shorter than the smoothing window are rejected
        instead of being processed with shrunk windows.
        """
        config = self.config_for(method)
        data = validate_samples(samples, min_length=config.window if strict else 1)
        result = self.detector(method).process(data)
        self.logger.info(
            "%s: %d event(s), %d of %d samples flagged",
            method,
            len(result.events),
            int(result.flags.sum()),
            result.n_samples,
        )
        return result

    def compare(
        self,
        samples,
        *,
        anomaly: Optional[Tuple[int, int]] = None,
        methods: Iterable[str] = ("classical", "hymad"),
    ) -> ComparisonResult:
        data = validate_samples(samples)
        results: Dict[str, DetectionResult] = {}
        summaries: Dict[str, DetectionSummary] = {}
        for method in methods:
            result = self.detect(data, method)
            results[method] = result
            summaries[method] = summarize_detection(result, anomaly)
            summary = summaries[method]
            if anomaly is not None:
                self.logger.info(
                    "%s: anomaly %s (coverage %.0f%%), %d false alarm(s)",
                    method,
                    "detected" if summary.anomaly_detected else "missed",
                    100.0 * summary.anomaly_coverage,
                    summary.false_alarms,
                )
        return ComparisonResult(results=results, summaries=summaries, anomaly=anomaly)

    def run_scenario(self, raw) -> Tuple[Scenario, ComparisonResult]:
        scenario = build_scenario(raw, self.settings.scenario)
        comparison = self.compare(scenario.test_signal, anomaly=scenario.anomaly.bounds)
        return scenario, comparison

    def stream(self, chunks: Iterable[Chunk], method: str = "hymad") -> StreamRun:
        detector = StreamingDetector(self.config_for(method), METHODS[method])
        run = StreamRun()
        for chunk in chunks:
            output = detector.process_chunk(chunk)
            run.events.extend(output.events)
            run.flags.append(output.flags)
        run.events.extend(detector.finalize())
        run.stats = detector.stats.snapshot()
        self.logger.info(
            "%s (streaming, %s): %s",
            method,
            get_policy(METHODS[method]).display_name,
            ", ".join(f"{key}={value}" for key, value in run.stats.items()),
        )
        return run


__all__ = ["METHODS", "ComparisonResult", "StreamRun", "DetectionRuntime"]
