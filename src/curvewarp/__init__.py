"""Smooth curve fitting, sparse resampling and open-ended time warping."""

from .config import Settings, load_settings
from .core import (
    AlignmentResult,
    BasisFamily,
    BasisSet,
    FittedCurve,
    StepPattern,
    align,
    build_basis,
    fit_curve,
    get_step_pattern,
    pairwise_distances,
    resample,
)
from .errors import ConfigurationError, CurvewarpError, DomainError, SingularFitError
from .types import TimeSeries

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "load_settings",
    "TimeSeries",
    "BasisFamily",
    "BasisSet",
    "build_basis",
    "FittedCurve",
    "fit_curve",
    "resample",
    "StepPattern",
    "get_step_pattern",
    "AlignmentResult",
    "align",
    "pairwise_distances",
    "CurvewarpError",
    "ConfigurationError",
    "DomainError",
    "SingularFitError",
    "__version__",
]
