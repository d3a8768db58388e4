"""Derive sparse, distorted and noisy observations from a fitted curve.

The sampler mimics observing the underlying process on a different clock
and scale:

1. a dense grid spanning ``[min(target), max(target)]`` is built;
2. grid times are stretched about their start by ``x_stretch`` and the
   curve is evaluated there;
3. values are stretched about their minimum by ``y_stretch``;
4. Gaussian noise with standard deviation ``noise_sd`` is added;
5. ``len(target)`` evenly index-spaced grid points are kept and paired with
   the target times.

``x_stretch`` and ``y_stretch`` are the ground truth an alignment method is
expected to recover.

Values are read at evenly index-spaced grid times, not at the targets.  With
identity distortion the output equals the curve at the targets exactly only
when the targets are evenly spaced and ``len(target) - 1`` divides
``resolution - 1``.  Otherwise evenly spaced targets are off by at most half
a grid step in time, and uneven targets get the values of the evenly spaced
grid points paired with them in order.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from ..config import SamplerSettings, Settings
from ..errors import ConfigurationError
from ..types import TimeSeries
from .fitting import FittedCurve

logger = logging.getLogger(__name__)

def _validate_targets(target_times: Sequence[float]) -> np.ndarray:
    targets = np.asarray(target_times, dtype=float)
    if targets.ndim != 1 or targets.size == 0:
        raise ConfigurationError("target_times must be a non-empty 1-D sequence")
    if not np.all(np.isfinite(targets)):
        raise ConfigurationError("target_times must be finite")
    if np.any(np.diff(targets) < 0):
        raise ConfigurationError("target_times must be non-decreasing")
    return targets


def downselect_indices(n_dense: int, n_target: int) -> np.ndarray:
    """Return ``n_target`` evenly spaced nearest indices into ``n_dense`` points."""

    if n_target > n_dense:
        raise ConfigurationError(
            f"cannot select {n_target} points from a grid of {n_dense}"
        )
    return np.rint(np.linspace(0, n_dense - 1, n_target)).astype(int)


def resample(
    curve: FittedCurve,
    replicate_index: int,
    target_times: Sequence[float],
    x_stretch: float | None = None,
    y_stretch: float | None = None,
    noise_sd: float | None = None,
    *,
    rng: np.random.Generator | None = None,
    resolution: int | None = None,
    extrapolate: bool = False,
    settings: Settings | None = None,
) -> TimeSeries:
    """Produce a sparse distorted observation of one replicate of ``curve``.

    Parameters
    ----------
    curve:
        Fitted curve to observe.
    replicate_index:
        Replicate column of ``curve`` to use.
    target_times:
        Non-decreasing times of the output samples.
    x_stretch:
        Positive time-axis factor.  Values below 1 compress (a longer
        stretch of the process is squeezed into the target span), values
        above 1 dilate.
    y_stretch:
        Value-axis factor applied about the minimum of the dense values.
    noise_sd:
        Standard deviation of the additive Gaussian noise.
    rng:
        Random generator used for the noise.  When omitted a generator is
        seeded from ``settings.sampler.seed`` (unseeded without settings).
    resolution:
        Size of the dense grid.  It is raised to ``len(target_times)`` when
        the target is denser, so no sample is duplicated.
    extrapolate:
        Allow stretched times outside the curve domain.
    settings:
        Optional :class:`~curvewarp.config.Settings`; its ``sampler`` section
        supplies every distortion parameter left as ``None``.  Without it
        the ``sampler`` section defaults apply.

    Returns
    -------
    TimeSeries
        ``target_times`` paired with the selected noisy values.

    Raises
    ------
    ConfigurationError
        For invalid targets or distortion parameters.
    IndexError
        If ``replicate_index`` is out of range.
    DomainError
        If stretched times leave the curve domain and ``extrapolate`` is off.
    """

    cfg = SamplerSettings() if settings is None else settings.sampler
    x_stretch = cfg.x_stretch if x_stretch is None else x_stretch
    y_stretch = cfg.y_stretch if y_stretch is None else y_stretch
    noise_sd = cfg.noise_sd if noise_sd is None else noise_sd
    resolution = cfg.resolution if resolution is None else resolution

    targets = _validate_targets(target_times)
    if not np.isfinite(x_stretch) or x_stretch <= 0:
        raise ConfigurationError(f"x_stretch must be positive, got {x_stretch}")
    if not np.isfinite(y_stretch):
        raise ConfigurationError(f"y_stretch must be finite, got {y_stretch}")
    if not np.isfinite(noise_sd) or noise_sd < 0:
        raise ConfigurationError(f"noise_sd must be non-negative, got {noise_sd}")
    if resolution < 2:
        raise ConfigurationError(f"resolution must be at least 2, got {resolution}")
    if not 0 <= replicate_index < curve.n_replicates:
        raise IndexError(
            f"replicate index {replicate_index} out of range for {curve.n_replicates} replicate(s)"
        )

    n_dense = max(int(resolution), targets.size)
    t_min, t_max = float(targets[0]), float(targets[-1])
    grid = np.linspace(t_min, t_max, n_dense)
    stretched = t_min + (grid - t_min) * x_stretch

    dense = curve.evaluate(stretched, replicate_index, extrapolate=extrapolate)
    floor = float(np.min(dense))
    dense = floor + (dense - floor) * y_stretch

    if noise_sd > 0:
        if rng is None:
            rng = np.random.default_rng(cfg.seed)
        dense = dense + rng.normal(0.0, noise_sd, size=dense.shape)

    picked = dense[downselect_indices(n_dense, targets.size)]
    logger.debug(
        "resampled replicate %d onto %d points (grid=%d, x_stretch=%g, y_stretch=%g, noise_sd=%g)",
        replicate_index,
        targets.size,
        n_dense,
        x_stretch,
        y_stretch,
        noise_sd,
    )
    return TimeSeries(targets, picked)


__all__ = ["resample", "downselect_indices"]
