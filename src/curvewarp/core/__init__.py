"""Core algorithms and data structures for curvewarp."""

from .alignment import AlignmentResult, align, pairwise_distances
from .basis import BasisFamily, BasisSet, build_basis
from .fitting import FittedCurve, fit_curve
from .sampling import downselect_indices, resample
from .steps import STEP_PATTERNS, StepPattern, StepRule, get_step_pattern

__all__ = [
    "BasisFamily",
    "BasisSet",
    "build_basis",
    "FittedCurve",
    "fit_curve",
    "resample",
    "downselect_indices",
    "StepRule",
    "StepPattern",
    "STEP_PATTERNS",
    "get_step_pattern",
    "AlignmentResult",
    "align",
    "pairwise_distances",
]
