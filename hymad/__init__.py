"""Hy-MAD: impulse-robust STA/LTA anomaly detection."""

__version__ = "0.1.0"
