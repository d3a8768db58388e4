"""Penalized basis regression.

Given samples :math:`y` observed at times :math:`t`, a :class:`BasisSet`
with design matrix :math:`\\Phi` and roughness penalty matrix :math:`R`, the
coefficients solve the regularized normal equations

.. math::

   (\\Phi^T \\Phi + \\lambda R) c = \\Phi^T y

independently for every replicate column of :math:`y`.  ``lam = 0`` is
ordinary least squares; growing ``lam`` pulls the curve towards the null
space of the penalty (a straight line for the default second-derivative
penalty).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from scipy.linalg import cho_factor, cho_solve

from ..config import Settings, SmoothingSettings
from ..errors import ConfigurationError, DomainError, SingularFitError
from ..types import TimeSeries
from .basis import BasisSet

logger = logging.getLogger(__name__)

DEFAULT_PENALTY_ORDER = 2


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class FittedCurve:
    """Immutable result of :func:`fit_curve`.

    Attributes
    ----------
    basis:
        The :class:`BasisSet` the coefficients refer to.
    coefficients:
        Array of shape ``(basis.count, n_replicates)``.
    lam:
        Roughness penalty weight used for the fit.
    penalty_order:
        Derivative order of the roughness penalty.
    df:
        Equivalent degrees of freedom, the trace of the smoothing matrix.
    sse:
        Residual sum of squares of each replicate.
    gcv:
        Generalized cross-validation score of each replicate; ``nan`` when
        the fit has no residual degrees of freedom.
    """

    basis: BasisSet
    coefficients: np.ndarray
    lam: float = 0.0
    penalty_order: int = DEFAULT_PENALTY_ORDER
    df: float = float("nan")
    sse: np.ndarray = field(default_factory=lambda: np.empty(0))
    gcv: np.ndarray = field(default_factory=lambda: np.empty(0))

    def __post_init__(self) -> None:
        coefs = np.asarray(self.coefficients, dtype=float)
        if coefs.ndim == 1:
            coefs = coefs[:, None]
        if coefs.ndim != 2 or coefs.shape[0] != self.basis.count:
            raise ConfigurationError(
                f"coefficients must have shape ({self.basis.count}, n_replicates), got {coefs.shape}"
            )
        if self.lam < 0:
            raise ConfigurationError(f"lambda must be non-negative, got {self.lam}")
        object.__setattr__(self, "coefficients", _readonly(coefs))
        object.__setattr__(self, "sse", _readonly(self.sse))
        object.__setattr__(self, "gcv", _readonly(self.gcv))

    @property
    def n_replicates(self) -> int:
        return int(self.coefficients.shape[1])

    @property
    def domain(self) -> tuple[float, float]:
        return self.basis.domain

    def _select(self, replicate: int | None) -> np.ndarray:
        if replicate is None:
            return self.coefficients
        if not 0 <= replicate < self.n_replicates:
            raise IndexError(
                f"replicate index {replicate} out of range for {self.n_replicates} replicate(s)"
            )
        return self.coefficients[:, [replicate]]

    def derivative(
        self,
        times: Sequence[float],
        order: int = 1,
        replicate: int | None = None,
        *,
        extrapolate: bool = False,
    ) -> np.ndarray:
        """Evaluate the ``order``-th derivative of the curve at ``times``.

        A one-dimensional array is returned when ``replicate`` is given or
        the curve holds a single replicate, otherwise an array of shape
        ``(len(times), n_replicates)``.
        """

        coefs = self._select(replicate)
        values = self.basis.evaluate(times, order, extrapolate=extrapolate) @ coefs
        if values.shape[1] == 1:
            return values[:, 0]
        return values

    def evaluate(
        self,
        times: Sequence[float],
        replicate: int | None = None,
        *,
        extrapolate: bool = False,
    ) -> np.ndarray:
        """Evaluate the curve at ``times``; see :meth:`derivative`."""

        return self.derivative(times, 0, replicate, extrapolate=extrapolate)

    def __call__(self, times: Sequence[float], replicate: int | None = None) -> np.ndarray:
        return self.evaluate(times, replicate)

    def roughness(self) -> np.ndarray:
        """Integrated squared ``penalty_order``-th derivative of each replicate."""

        penalty = self.basis.penalty_matrix(self.penalty_order)
        return np.einsum("ir,ij,jr->r", self.coefficients, penalty, self.coefficients)


def _as_columns(
    samples: TimeSeries | np.ndarray | Sequence[float],
    times: Sequence[float] | None,
) -> tuple[np.ndarray, np.ndarray]:
    """Normalise the accepted sample layouts to ``(t, Y)`` with ``Y`` 2-D."""

    if isinstance(samples, TimeSeries):
        if times is not None:
            raise ConfigurationError("times must not be passed together with a TimeSeries")
        return np.asarray(samples.times), np.asarray(samples.values)[:, None]

    if times is None:
        raise ConfigurationError("times are required when samples is an array")
    t = np.asarray(times, dtype=float)
    y = np.asarray(samples, dtype=float)
    if y.ndim == 1:
        y = y[:, None]
    if t.ndim != 1 or y.ndim != 2:
        raise ConfigurationError("expected a 1-D time axis and 1-D or 2-D samples")
    if y.shape[0] != t.size:
        raise ConfigurationError(
            f"samples have {y.shape[0]} rows but {t.size} times were given"
        )
    if t.size == 0 or y.shape[1] == 0:
        raise ConfigurationError("samples must not be empty")
    return t, y


def fit_curve(
    samples: TimeSeries | np.ndarray | Sequence[float],
    basis: BasisSet,
    lam: float | None = None,
    *,
    times: Sequence[float] | None = None,
    penalty_order: int | None = None,
    settings: Settings | None = None,
) -> FittedCurve:
    """Fit a penalized basis expansion to one or more replicates.

    Parameters
    ----------
    samples:
        A :class:`~curvewarp.types.TimeSeries`, or an array whose rows are
        time points and whose columns are replicates sharing ``times``.
    basis:
        :class:`BasisSet` to expand the curve in.  All sample times must lie
        in its domain.
    lam:
        Non-negative roughness penalty weight.  Defaults to
        ``settings.smoothing.lam``.
    times:
        Sample times for array input.
    penalty_order:
        Derivative order penalized by the roughness term.  Defaults to
        ``settings.smoothing.penalty_order``.
    settings:
        Optional :class:`~curvewarp.config.Settings` providing defaults.
        Without it the ``smoothing`` section defaults apply.

    Returns
    -------
    FittedCurve
        Coefficients and fit diagnostics.

    Raises
    ------
    ConfigurationError
        For malformed input or a negative ``lam``.
    DomainError
        If a sample time lies outside the basis domain.
    SingularFitError
        If :math:`\\Phi^T\\Phi + \\lambda R` is numerically singular.
    """

    cfg = SmoothingSettings() if settings is None else settings.smoothing
    lam = cfg.lam if lam is None else lam
    if penalty_order is None:
        penalty_order = cfg.penalty_order

    t, y = _as_columns(samples, times)
    lam = float(lam)
    if not np.isfinite(lam) or lam < 0:
        raise ConfigurationError(f"lambda must be a finite non-negative number, got {lam}")
    if penalty_order < 0:
        raise ConfigurationError(f"penalty order must be >= 0, got {penalty_order}")
    if not (np.all(np.isfinite(t)) and np.all(np.isfinite(y))):
        raise ConfigurationError("samples and times must be finite")
    if not basis.contains(t):
        raise DomainError(t, basis.domain)

    phi = basis.evaluate(t)
    gram = phi.T @ phi
    system = gram + lam * basis.penalty_matrix(penalty_order)

    cond = np.linalg.cond(system)
    if not np.isfinite(cond) or cond > 1.0 / np.finfo(float).eps:
        raise SingularFitError(
            f"penalized normal equations are singular (condition number {cond:.3g}); "
            f"{basis.count} basis functions, {t.size} samples, lambda={lam:g}"
        )
    try:
        factor = cho_factor(system)
    except np.linalg.LinAlgError as exc:
        raise SingularFitError(f"penalized normal equations are not positive definite: {exc}") from exc

    rhs = phi.T @ y
    columns = [cho_solve(factor, rhs[:, col]) for col in range(y.shape[1])]
    coefs = np.column_stack(columns)

    n = t.size
    df = float(np.trace(cho_solve(factor, gram)))
    residuals = y - phi @ coefs
    sse = np.sum(residuals**2, axis=0)
    dof = n - df
    if dof > 1e-8 * n:
        gcv = n * sse / dof**2
    else:
        gcv = np.full(sse.shape, np.nan)

    logger.debug(
        "fitted %s basis k=%d lambda=%g to n=%d samples x %d replicate(s): df=%.3f",
        basis.family.value,
        basis.count,
        lam,
        n,
        y.shape[1],
        df,
    )
    return FittedCurve(
        basis=basis,
        coefficients=coefs,
        lam=lam,
        penalty_order=penalty_order,
        df=df,
        sse=sse,
        gcv=gcv,
    )


__all__ = ["FittedCurve", "fit_curve", "DEFAULT_PENALTY_ORDER"]
