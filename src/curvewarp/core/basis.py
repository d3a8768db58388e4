"""Basis function families used by the curve fitter.

Two families are provided:

``periodic``
    Constant plus sine/cosine pairs whose fundamental period equals the
    length of the domain.  The functions are orthonormal over the domain:

    .. math::

       \\phi_0 = 1/\\sqrt{T}, \\quad
       \\phi_{2k-1} = \\sin(k\\omega x)/\\sqrt{T/2}, \\quad
       \\phi_{2k} = \\cos(k\\omega x)/\\sqrt{T/2}

    with :math:`\\omega = 2\\pi/T` and :math:`x = t - t_{min}`.

``piecewise-polynomial``
    B-splines of a given order (degree ``order - 1``) on evenly spaced
    interior knots with ``order``-fold boundary knots.

A :class:`BasisSet` is immutable.  It evaluates the design matrix of any
derivative and the roughness penalty matrix used by
:func:`curvewarp.core.fitting.fit_curve`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Sequence

import numpy as np
from scipy.interpolate import BSpline

from ..errors import ConfigurationError, DomainError


class BasisFamily(str, Enum):
    """Supported basis families."""

    PERIODIC = "periodic"
    PIECEWISE_POLYNOMIAL = "piecewise-polynomial"

    @classmethod
    def parse(cls, value: "BasisFamily | str") -> "BasisFamily":
        """Return the family named by ``value``.

        Besides the canonical names the aliases ``fourier`` and ``bspline``
        are accepted.
        """

        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("_", "-")
        try:
            return _FAMILY_ALIASES[key]
        except KeyError:
            raise ConfigurationError(
                f"unknown basis family {value!r}; expected one of {sorted(_FAMILY_ALIASES)}"
            ) from None


_FAMILY_ALIASES: Dict[str, BasisFamily] = {
    "periodic": BasisFamily.PERIODIC,
    "fourier": BasisFamily.PERIODIC,
    "piecewise-polynomial": BasisFamily.PIECEWISE_POLYNOMIAL,
    "bspline": BasisFamily.PIECEWISE_POLYNOMIAL,
    "b-spline": BasisFamily.PIECEWISE_POLYNOMIAL,
}

DEFAULT_ORDER = 4


# ---------------------------------------------------------------------------
# Per-family validation
# ---------------------------------------------------------------------------


def _validate_periodic(count: int, order: int | None) -> None:
    if count < 3:
        raise ConfigurationError(f"periodic basis needs at least 3 functions, got {count}")
    if count % 2 == 0:
        raise ConfigurationError(f"periodic basis count must be odd, got {count}")


def _validate_piecewise(count: int, order: int | None) -> None:
    if order is None or order < 1:
        raise ConfigurationError(f"piecewise-polynomial order must be >= 1, got {order}")
    if count < order:
        raise ConfigurationError(
            f"piecewise-polynomial basis count ({count}) must be >= order ({order})"
        )


_VALIDATORS: Dict[BasisFamily, Callable[[int, int | None], None]] = {
    BasisFamily.PERIODIC: _validate_periodic,
    BasisFamily.PIECEWISE_POLYNOMIAL: _validate_piecewise,
}


# ---------------------------------------------------------------------------
# Basis set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BasisSet:
    """A fixed family of ``count`` basis functions over ``domain``.

    Attributes
    ----------
    family:
        :class:`BasisFamily` of the functions.
    domain:
        ``(t_min, t_max)`` interval with ``t_min < t_max``.
    count:
        Number of basis functions ``k``.
    order:
        Polynomial order of the piecewise-polynomial family; ``None`` for
        the periodic family.
    """

    family: BasisFamily
    domain: tuple[float, float]
    count: int
    order: int | None = None

    def __post_init__(self) -> None:
        family = BasisFamily.parse(self.family)
        if len(self.domain) != 2:
            raise ConfigurationError("domain must be a (t_min, t_max) pair")
        t_min, t_max = float(self.domain[0]), float(self.domain[1])
        if not (np.isfinite(t_min) and np.isfinite(t_max)) or t_min >= t_max:
            raise ConfigurationError(f"invalid domain [{t_min}, {t_max}]")
        order = self.order
        if family is BasisFamily.PIECEWISE_POLYNOMIAL and order is None:
            order = DEFAULT_ORDER
        if family is BasisFamily.PERIODIC:
            order = None
        count = int(self.count)
        _VALIDATORS[family](count, order)
        object.__setattr__(self, "family", family)
        object.__setattr__(self, "domain", (t_min, t_max))
        object.__setattr__(self, "count", count)
        object.__setattr__(self, "order", None if order is None else int(order))

    # -- constructors -------------------------------------------------------

    @classmethod
    def periodic(cls, domain: Sequence[float], count: int) -> "BasisSet":
        """Trigonometric basis with period equal to the domain length."""

        return cls(BasisFamily.PERIODIC, tuple(domain), count)

    @classmethod
    def piecewise_polynomial(
        cls, domain: Sequence[float], count: int, order: int = DEFAULT_ORDER
    ) -> "BasisSet":
        """B-spline basis with evenly spaced interior knots."""

        return cls(BasisFamily.PIECEWISE_POLYNOMIAL, tuple(domain), count, order)

    # -- geometry -----------------------------------------------------------

    @property
    def period(self) -> float:
        return self.domain[1] - self.domain[0]

    @property
    def knots(self) -> np.ndarray | None:
        """Full knot vector of the piecewise-polynomial family."""

        if self.family is not BasisFamily.PIECEWISE_POLYNOMIAL:
            return None
        t_min, t_max = self.domain
        n_interior = self.count - self.order
        interior = np.linspace(t_min, t_max, n_interior + 2)[1:-1]
        return np.concatenate(
            [np.full(self.order, t_min), interior, np.full(self.order, t_max)]
        )

    @property
    def breakpoints(self) -> np.ndarray:
        """Distinct knot locations, or the domain ends for periodic bases."""

        if self.family is BasisFamily.PERIODIC:
            return np.array(self.domain, dtype=float)
        return np.unique(self.knots)

    def _tolerance(self) -> float:
        scale = max(abs(self.domain[0]), abs(self.domain[1]), self.period)
        return 8.0 * np.finfo(float).eps * scale

    def contains(self, times: Sequence[float]) -> bool:
        """Return ``True`` if every time lies inside the domain."""

        t = np.asarray(times, dtype=float)
        tol = self._tolerance()
        return bool(np.all((t >= self.domain[0] - tol) & (t <= self.domain[1] + tol)))

    # -- evaluation ---------------------------------------------------------

    def evaluate(
        self,
        times: Sequence[float],
        derivative: int = 0,
        *,
        extrapolate: bool = False,
    ) -> np.ndarray:
        """Return the ``(len(times), count)`` design matrix.

        Parameters
        ----------
        times:
            Evaluation times.
        derivative:
            Order of the derivative applied to every basis function.
        extrapolate:
            Allow times outside the domain.  Without it such times raise
            :class:`~curvewarp.errors.DomainError`.
        """

        t = np.atleast_1d(np.asarray(times, dtype=float))
        if t.ndim != 1:
            raise ConfigurationError("times must be one-dimensional")
        if derivative < 0:
            raise ConfigurationError(f"derivative order must be >= 0, got {derivative}")
        if not extrapolate:
            if not self.contains(t):
                raise DomainError(t, self.domain)
            t = np.clip(t, *self.domain)
        return _EVALUATORS[self.family](self, t, int(derivative), extrapolate)

    def penalty_matrix(self, derivative: int = 2) -> np.ndarray:
        """Return ``R[i, j] = integral of D^m phi_i * D^m phi_j`` over the domain."""

        if derivative < 0:
            raise ConfigurationError(f"derivative order must be >= 0, got {derivative}")
        return _PENALTIES[self.family](self, int(derivative))


# ---------------------------------------------------------------------------
# Periodic family
# ---------------------------------------------------------------------------


def _periodic_frequencies(basis: BasisSet) -> np.ndarray:
    """Angular frequency of each basis function (0 for the constant)."""

    omega = 2.0 * np.pi / basis.period
    harmonics = (np.arange(1, basis.count) + 1) // 2
    return np.concatenate([[0.0], omega * harmonics])


def _periodic_evaluate(basis: BasisSet, t: np.ndarray, derivative: int, extrapolate: bool) -> np.ndarray:
    x = t - basis.domain[0]
    freqs = _periodic_frequencies(basis)
    out = np.empty((t.size, basis.count), dtype=float)
    out[:, 0] = 1.0 / np.sqrt(basis.period) if derivative == 0 else 0.0
    scale = 1.0 / np.sqrt(basis.period / 2.0)
    # D^m sin(a x) = a^m sin(a x + m pi/2); likewise for cos.
    shift = derivative * np.pi / 2.0
    for col in range(1, basis.count):
        a = freqs[col]
        arg = a * x + shift
        wave = np.sin(arg) if col % 2 == 1 else np.cos(arg)
        out[:, col] = scale * a**derivative * wave
    return out


def _periodic_penalty(basis: BasisSet, derivative: int) -> np.ndarray:
    freqs = _periodic_frequencies(basis)
    diag = freqs ** (2 * derivative)
    diag[0] = 1.0 if derivative == 0 else 0.0
    return np.diag(diag)


# ---------------------------------------------------------------------------
# Piecewise-polynomial family
# ---------------------------------------------------------------------------


def _piecewise_evaluate(basis: BasisSet, t: np.ndarray, derivative: int, extrapolate: bool) -> np.ndarray:
    if derivative >= basis.order:
        return np.zeros((t.size, basis.count), dtype=float)
    spline = BSpline(basis.knots, np.eye(basis.count), basis.order - 1, extrapolate=extrapolate)
    if derivative:
        spline = spline.derivative(derivative)
    return np.asarray(spline(t), dtype=float)


def _piecewise_penalty(basis: BasisSet, derivative: int) -> np.ndarray:
    # Gauss-Legendre with ``order`` nodes per knot interval is exact for the
    # piecewise products of degree 2 * (order - 1 - derivative).
    nodes, weights = np.polynomial.legendre.leggauss(basis.order)
    edges = basis.breakpoints
    lo, hi = edges[:-1], edges[1:]
    half = (hi - lo)[:, None] / 2.0
    mid = (hi + lo)[:, None] / 2.0
    points = (mid + half * nodes[None, :]).ravel()
    w = (half * weights[None, :]).ravel()
    design = basis.evaluate(points, derivative)
    return design.T @ (w[:, None] * design)


_EVALUATORS = {
    BasisFamily.PERIODIC: _periodic_evaluate,
    BasisFamily.PIECEWISE_POLYNOMIAL: _piecewise_evaluate,
}

_PENALTIES = {
    BasisFamily.PERIODIC: _periodic_penalty,
    BasisFamily.PIECEWISE_POLYNOMIAL: _piecewise_penalty,
}

_CONSTRUCTORS: Dict[BasisFamily, Callable[..., BasisSet]] = {
    BasisFamily.PERIODIC: lambda domain, count, order: BasisSet.periodic(domain, count),
    BasisFamily.PIECEWISE_POLYNOMIAL: lambda domain, count, order: BasisSet.piecewise_polynomial(
        domain, count, order
    ),
}


def build_basis(
    family: BasisFamily | str,
    domain: Sequence[float],
    count: int,
    order: int = DEFAULT_ORDER,
) -> BasisSet:
    """Construct a :class:`BasisSet`.

    Parameters
    ----------
    family:
        :class:`BasisFamily` member or name (``"periodic"``/``"fourier"``,
        ``"piecewise-polynomial"``/``"bspline"``).
    domain:
        ``(t_min, t_max)`` interval covered by the basis.
    count:
        Number of basis functions.  Periodic bases require an odd count of
        at least 3; piecewise-polynomial bases require ``count >= order``.
    order:
        Polynomial order of the piecewise-polynomial family.  Ignored for
        periodic bases.

    Raises
    ------
    ConfigurationError
        For an unknown family or an invalid count/order combination.
    """

    fam = BasisFamily.parse(family)
    return _CONSTRUCTORS[fam](tuple(domain), count, order)


__all__ = ["BasisFamily", "BasisSet", "build_basis", "DEFAULT_ORDER"]
