"""Data sources: recorded files and simulated backgrounds."""
