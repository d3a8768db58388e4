"""Exception hierarchy shared by the curvewarp modules."""

from __future__ import annotations

from typing import Sequence

import numpy as np


class CurvewarpError(Exception):
    """Base class for all errors raised by curvewarp."""


class ConfigurationError(CurvewarpError, ValueError):
    """Raised for an invalid parameter or parameter combination."""


class DomainError(CurvewarpError, ValueError):
    """Raised when a curve or basis is evaluated outside its time domain."""

    def __init__(self, times: Sequence[float], domain: tuple[float, float]):
        self.times = np.asarray(times, dtype=float)
        self.domain = (float(domain[0]), float(domain[1]))
        outside = self.times[(self.times < self.domain[0]) | (self.times > self.domain[1])]
        first = float(outside[0]) if outside.size else float("nan")
        super().__init__(
            f"{outside.size} time(s) outside domain [{self.domain[0]:g}, {self.domain[1]:g}], "
            f"first offender t={first:g}"
        )


class SingularFitError(CurvewarpError, np.linalg.LinAlgError):
    """Raised when the penalized normal equations cannot be solved reliably.

    Reduce the number of basis functions or increase the smoothing
    parameter and fit again.
    """


__all__ = [
    "CurvewarpError",
    "ConfigurationError",
    "DomainError",
    "SingularFitError",
]
