from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import numpy as np

from shared.errors import ConfigurationError
from shared.models import DetectorConfig, _is_int

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def classical_preset() -> DetectorConfig:
    """Moving-average prefilter with an always-updating baseline."""
    return DetectorConfig(window=10, smoother="mean")


def hymad_preset() -> DetectorConfig:
    """Median prefilter; paired with the freeze-on-active policy."""
    return DetectorConfig(window=61, smoother="median")


@dataclass(frozen=True)
class ScenarioSettings:
    """Parameters of the synthetic-anomaly experiment."""

    segment_half_width: int = 1000
    locate_window: int = 1000
    spike_window: int = 100
    spike_sigma: float = 3.5
    spike_min_distance: int = 50
    noise_window: int = 100
    noise_smoothing_window: int = 61
    multiplier: float = 5.0
    anomaly_start: int = 1200
    anomaly_duration: int = 300

    def __post_init__(self) -> None:
        for name in (
            "segment_half_width",
            "locate_window",
            "spike_window",
            "spike_min_distance",
            "noise_window",
            "noise_smoothing_window",
            "anomaly_start",
            "anomaly_duration",
        ):
            value = getattr(self, name)
            if not _is_int(value):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            minimum = 0 if name == "anomaly_start" else 1
            if value < minimum:
                raise ConfigurationError(f"{name} must be at least {minimum}, got {value}")
            object.__setattr__(self, name, int(value))
        if self.noise_smoothing_window % 2 == 0:
            raise ConfigurationError("noise_smoothing_window must be odd")
        for name in ("spike_sigma", "multiplier"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
            if not np.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive finite number")
            object.__setattr__(self, name, float(value))


def _section(data: Mapping[str, Any], name: str) -> Dict[str, Any]:
    section = data[name]
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"{name} settings must be an object, got {type(section).__name__}")
    return dict(section)


@dataclass(frozen=True)
class AppSettings:
    sample_rate: float = 1.0
    log_level: str = "INFO"
    classical: DetectorConfig = field(default_factory=classical_preset)
    hymad: DetectorConfig = field(default_factory=hymad_preset)
    scenario: ScenarioSettings = field(default_factory=ScenarioSettings)

    def __post_init__(self) -> None:
        if isinstance(self.sample_rate, bool) or not isinstance(self.sample_rate, (int, float, np.number)):
            raise ConfigurationError(f"sample_rate must be a number, got {self.sample_rate!r}")
        if not np.isfinite(self.sample_rate) or self.sample_rate <= 0:
            raise ConfigurationError("sample_rate must be a positive finite number")
        object.__setattr__(self, "sample_rate", float(self.sample_rate))
        level = str(self.log_level).upper()
        if level not in LOG_LEVELS:
            raise ConfigurationError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        object.__setattr__(self, "log_level", level)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AppSettings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"unknown settings: {', '.join(unknown)}")
        defaults = cls()
        kwargs: Dict[str, Any] = {}
        if "sample_rate" in data:
            kwargs["sample_rate"] = data["sample_rate"]
        if "log_level" in data:
            kwargs["log_level"] = str(data["log_level"])
        # Detector sections override the preset field by field.
        for name in ("classical", "hymad"):
            if name in data:
                base = getattr(defaults, name).to_dict()
                overrides = _section(data, name)
                unknown = sorted(set(overrides) - set(base))
                if unknown:
                    raise ConfigurationError(f"unknown {name} settings: {', '.join(unknown)}")
                base.update(overrides)
                kwargs[name] = DetectorConfig.from_dict(base)
        if "scenario" in data:
            scenario = _section(data, "scenario")
            scenario_fields = {f.name for f in fields(ScenarioSettings)}
            unknown = sorted(set(scenario) - scenario_fields)
            if unknown:
                raise ConfigurationError(f"unknown scenario settings: {', '.join(unknown)}")
            kwargs["scenario"] = replace(defaults.scenario, **scenario)
        return replace(defaults, **kwargs)


def load_settings(path: Union[str, Path]) -> AppSettings:
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{path}: invalid JSON ({exc})") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path}: top level must be an object")
    settings = AppSettings.from_dict(data)
    logger.info("Loaded settings from %s", path)
    return settings


def save_settings(settings: AppSettings, path: Union[str, Path]) -> Path:
    path = Path(path)
    if path.suffix.lower() != ".json":
        path = path.with_suffix(".json")
    path.write_text(json.dumps(settings.to_dict(), indent=2))
    return path


__all__ = [
    "AppSettings",
    "ScenarioSettings",
    "classical_preset",
    "hymad_preset",
    "load_settings",
    "save_settings",
]
