# daq/file_source.py
"""Loading recorded time series from disk and replaying them as chunks."""

from __future__ import annotations

import logging
import wave
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import numpy as np

from core.conditioning import validate_samples
from shared.errors import InputError
from shared.models import Chunk

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = (".txt", ".csv", ".dat", ".asc")
SUPPORTED_SUFFIXES = TEXT_SUFFIXES + (".npy", ".wav")


def _decode_pcm(raw_bytes: bytes, sample_width: int) -> np.ndarray:
    """Convert little-endian PCM bytes to float64 in [-1, 1)."""
    if sample_width == 1:  # 8-bit unsigned
        data = np.frombuffer(raw_bytes, dtype=np.uint8)
        return (data.astype(np.float64) - 128.0) / 128.0
    if sample_width == 2:
        return np.frombuffer(raw_bytes, dtype="<i2").astype(np.float64) / 32768.0
    if sample_width == 3:
        # Sign-extend 3-byte samples into int32
        raw = np.frombuffer(raw_bytes, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        values = raw[:, 0] | (raw[:, 1] << 8) | (raw[:, 2] << 16)
        values = np.where(values & 0x800000, values - 0x1000000, values)
        return values.astype(np.float64) / 8388608.0  # 2^23
    if sample_width == 4:
        return np.frombuffer(raw_bytes, dtype="<i4").astype(np.float64) / 2147483648.0  # 2^31
    raise InputError(f"Unsupported WAV sample width: {sample_width} bytes")


def _read_wav(path: Path) -> Tuple[np.ndarray, float]:
    try:
        with wave.open(str(path), "rb") as wav:
            n_channels = wav.getnchannels()
            sample_width = wav.getsampwidth()
            sample_rate = float(wav.getframerate())
            raw_bytes = wav.readframes(wav.getnframes())
    except (wave.Error, EOFError) as exc:
        raise InputError(f"{path}: unreadable WAV file ({exc})") from exc
    data = _decode_pcm(raw_bytes, sample_width)
    frames = data.size // n_channels
    return data[: frames * n_channels].reshape(frames, n_channels), sample_rate


def _select_column(table: np.ndarray, column: Optional[int], path: Path) -> np.ndarray:
    """Flatten a loaded table to one ordered sequence.

    Single-row and single-column tables are flattened regardless of
    orientation. Wider tables need an explicit column.
    """
    if table.ndim <= 1:
        return table.reshape(-1)
    if table.ndim > 2:
        raise InputError(f"{path}: expected at most 2 dimensions, got {table.ndim}")
    if 1 in table.shape:
        return table.reshape(-1)
    if column is None:
        raise InputError(
            f"{path}: table has shape {table.shape}; pass column= to choose a channel"
        )
    if not -table.shape[1] <= column < table.shape[1]:
        raise InputError(f"{path}: column {column} out of range for {table.shape[1]} columns")
    return table[:, column]


def load_samples(
    path: Union[str, Path],
    *,
    column: Optional[int] = None,
    delimiter: Optional[str] = None,
) -> Tuple[np.ndarray, Optional[float]]:
    """Load a single-channel time series.

    Returns ``(samples, sample_rate)``; the sample rate is only known for WAV
    files and is None otherwise. Samples are validated (non-empty, finite).
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise InputError(f"{path}: unsupported file type {suffix or '<none>'}")
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")

    sample_rate: Optional[float] = None
    if suffix == ".wav":
        table, sample_rate = _read_wav(path)
    elif suffix == ".npy":
        table = np.load(path, allow_pickle=False)
    else:
        if delimiter is None and suffix == ".csv":
            delimiter = ","
        try:
            table = np.loadtxt(path, delimiter=delimiter, dtype=np.float64)
        except ValueError as exc:
            raise InputError(f"{path}: could not parse numeric data ({exc})") from exc

    samples = validate_samples(_select_column(np.asarray(table, dtype=np.float64), column, path))
    logger.info("Loaded %d samples from %s", samples.size, path)
    return samples, sample_rate


class FileSource:
    """Replays a loaded recording as fixed-size single-channel chunks.

    The rate is `sample_rate` when given, else the rate stored in the file
    (WAV), else `default_rate`.
    """

    def __init__(
        self,
        path: Union[str, Path],
        *,
        sample_rate: Optional[float] = None,
        chunk_size: int = 256,
        column: Optional[int] = None,
        channel_name: str = "Channel 1",
        default_rate: float = 1.0,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._path = Path(path)
        self._samples, file_rate = load_samples(self._path, column=column)
        rate = sample_rate if sample_rate is not None else (file_rate or default_rate)
        if rate <= 0:
            raise ValueError("sample_rate must be positive")
        self._sample_rate = float(rate)
        self._chunk_size = int(chunk_size)
        self._channel_name = channel_name

    @property
    def path(self) -> Path:
        return self._path

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    def iter_chunks(self) -> Iterator[Chunk]:
        dt = 1.0 / self._sample_rate
        for seq, start in enumerate(range(0, self._samples.size, self._chunk_size)):
            block = self._samples[start : start + self._chunk_size]
            yield Chunk(
                samples=block.reshape(1, -1),
                start_time=start * dt,
                dt=dt,
                seq=seq,
                channel_names=(self._channel_name,),
            )


__all__ = ["load_samples", "FileSource", "SUPPORTED_SUFFIXES"]
