"""Exception types raised by the detection pipeline."""

from __future__ import annotations


class HyMadError(Exception):
    """Base class for all detector failures."""


class ConfigurationError(HyMadError, ValueError):
    """Invalid detector or application configuration (raised at construction)."""


class InputError(HyMadError, ValueError):
    """Sample data that cannot be processed (empty, wrong shape, non-finite)."""


__all__ = ["HyMadError", "ConfigurationError", "InputError"]
