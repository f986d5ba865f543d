from __future__ import annotations

import numpy as np


class SampleRingBuffer:
    """
    Fixed-capacity history of the most recent samples of one channel.

    Backed by a preallocated NumPy array. Until the buffer has wrapped, only
    the samples written so far are visible, so trailing windows shrink at the
    start of a stream instead of reading uninitialised slots.

    A running sum makes mean() O(1). It is recomputed exactly each time the
    write pointer completes a lap, so rounding error never accumulates over
    more than `capacity` writes.
    """

    def __init__(self, capacity: int, dtype: np.dtype | str = np.float64) -> None:
        capacity = int(capacity)
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._data = np.empty(capacity, dtype=dtype)
        self._write_pos = 0
        self._count = 0
        self._sum = 0.0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    def __len__(self) -> int:
        return self._count

    def clear(self) -> None:
        self._write_pos = 0
        self._count = 0
        self._sum = 0.0

    def append(self, value: float) -> None:
        pos = self._write_pos
        if self._count == self._capacity:
            self._sum -= float(self._data[pos])
        else:
            self._count += 1
        self._data[pos] = value
        self._sum += float(self._data[pos])
        self._write_pos = (pos + 1) % self._capacity
        if self._write_pos == 0:
            self._sum = float(np.sum(self._data, dtype=np.float64))

    def values(self) -> np.ndarray:
        """Return the buffered samples ordered oldest to newest.

        Returns a view when the data is contiguous; returns a copy if the
        range wraps around the end of the buffer.
        """
        if self._count < self._capacity:
            return self._data[: self._count]
        if self._write_pos == 0:
            return self._data
        return np.concatenate((self._data[self._write_pos:], self._data[: self._write_pos]))

    def median(self) -> float:
        if self._count == 0:
            raise ValueError("median of an empty buffer")
        return float(np.median(self.values()))

    def mean(self) -> float:
        if self._count == 0:
            raise ValueError("mean of an empty buffer")
        return self._sum / self._count


__all__ = ["SampleRingBuffer"]
