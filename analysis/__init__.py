"""Offline analysis helpers: noise floors, spike annotation, scenarios and scoring."""
