"""Common containers for curvewarp.

:class:`TimeSeries` is the exchange format between the fitter, the sampler
and callers.  Its arrays are copied on construction and marked read-only so
an instance can be shared freely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

import numpy as np

from .errors import ConfigurationError


def _frozen_array(values: Sequence[float], name: str) -> np.ndarray:
    arr = np.array(values, dtype=float)
    if arr.ndim != 1:
        raise ConfigurationError(f"{name} must be one-dimensional")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class TimeSeries:
    """Ordered ``(time, value)`` pairs with strictly increasing times."""

    times: np.ndarray
    values: np.ndarray

    def __post_init__(self) -> None:
        times = _frozen_array(self.times, "times")
        values = _frozen_array(self.values, "values")
        if times.size != values.size:
            raise ConfigurationError("times and values must have the same length")
        if times.size == 0:
            raise ConfigurationError("a time series needs at least one sample")
        if not np.all(np.isfinite(times)):
            raise ConfigurationError("times must be finite")
        if np.any(np.diff(times) <= 0):
            raise ConfigurationError("times must be strictly increasing")
        object.__setattr__(self, "times", times)
        object.__setattr__(self, "values", values)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[float, float]]) -> "TimeSeries":
        """Build a series from an iterable of ``(time, value)`` tuples."""

        pairs = list(pairs)
        if not pairs:
            raise ConfigurationError("a time series needs at least one sample")
        times, values = zip(*pairs)
        return cls(np.asarray(times, dtype=float), np.asarray(values, dtype=float))

    @property
    def span(self) -> tuple[float, float]:
        """Return ``(first_time, last_time)``."""

        return float(self.times[0]), float(self.times[-1])

    def __len__(self) -> int:
        return int(self.times.size)

    def __iter__(self) -> Iterator[tuple[float, float]]:
        return zip(self.times.tolist(), self.values.tolist())


__all__ = ["TimeSeries"]
