"""Trace export for detector runs."""
