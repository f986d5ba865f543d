"""Export of detector diagnostic traces (CSV for inspection, NPZ for reloading)."""
from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import IO, Mapping, Optional, Union

import numpy as np

from shared.models import DetectionResult

logger = logging.getLogger(__name__)

TRACE_COLUMNS = ("index", "time", "raw", "smoothed", "detrended", "cf", "sta", "lta", "ratio", "flag")


class TraceWriter:
    """Writes one row per sample for a detector run.

    Usable as a context manager; the file is opened on construction and
    closed by `close()`.
    """

    def __init__(self, out_path: Union[str, Path]) -> None:
        self._out_path = Path(out_path)
        self._out_path.parent.mkdir(parents=True, exist_ok=True)
        self._fh: Optional[IO[str]] = open(self._out_path, "w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._fh)
        self._writer.writerow(TRACE_COLUMNS)
        self._rows = 0

    @property
    def path(self) -> Path:
        return self._out_path

    @property
    def rows_written(self) -> int:
        return self._rows

    def write_result(self, result: DetectionResult, raw: Optional[np.ndarray] = None) -> None:
        if self._fh is None:
            raise RuntimeError("TraceWriter is closed")
        if raw is not None and len(raw) != result.n_samples:
            raise ValueError("raw length does not match the detection result")
        times = result.times
        raw_values = raw if raw is not None else np.full(result.n_samples, np.nan)
        for i in range(result.n_samples):
            self._writer.writerow(
                (
                    i,
                    repr(float(times[i])),
                    repr(float(raw_values[i])),
                    repr(float(result.smoothed[i])),
                    repr(float(result.detrended[i])),
                    repr(float(result.cf[i])),
                    repr(float(result.sta[i])),
                    repr(float(result.lta[i])),
                    repr(float(result.ratio[i])),
                    int(result.flags[i]),
                )
            )
        self._rows += result.n_samples

    def close(self) -> None:
        if self._fh is not None and not self._fh.closed:
            self._fh.close()
            logger.info("Wrote %d trace rows to %s", self._rows, self._out_path)
        self._fh = None

    def __enter__(self) -> "TraceWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def save_npz(
    results: Mapping[str, DetectionResult],
    out_path: Union[str, Path],
    *,
    raw: Optional[np.ndarray] = None,
) -> Path:
    """Store every method's traces in one archive as ``<method>__<trace>`` arrays."""
    out_path = Path(out_path)
    if out_path.suffix.lower() != ".npz":
        out_path = out_path.with_suffix(".npz")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    arrays = {}
    if raw is not None:
        arrays["raw"] = np.asarray(raw, dtype=np.float64)
    for method, result in results.items():
        for name, values in result.as_arrays().items():
            arrays[f"{method}__{name}"] = values
    np.savez_compressed(out_path, **arrays)
    logger.info("Saved %d trace array(s) to %s", len(arrays), out_path)
    return out_path


__all__ = ["TRACE_COLUMNS", "TraceWriter", "save_npz"]
