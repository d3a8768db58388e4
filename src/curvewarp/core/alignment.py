"""Open-ended dynamic time warping.

:func:`align` fills the cumulative cost matrix of a query against a
reference under a :mod:`step pattern <curvewarp.core.steps>` with optional
free prefix (``open_begin``) and free suffix (``open_end``) of the
reference.  The matrix is padded by one row and one column:

* closed begin: the path starts at cell ``(1, 1)`` with cost ``d(1, 1)``;
* open begin: row ``0`` holds zero for every column, so the path may enter
  the first query row at any reference position;
* closed end: the path ends at ``(n, m)``; open end: at ``(n, j)`` for any
  ``j``.

With both boundaries closed the reported path is the minimum-cost path and
``normalized_distance`` is that cost divided by its number of matched
cells.  Ties between rules go to the first rule of the pattern (diagonal,
then query-advance, then reference-advance) and ties between end columns
to the smallest column.

When a boundary is open the min-cost path may be a short path whose cost per
cell is worse than the closed alignment.  The min-cost path is then improved
by ratio (Dinkelbach) iterations: each pass subtracts the current ratio from
every matched cell and re-runs the dynamic program until no path with a
smaller ``cost / path_length`` exists.  Every closed path is also an open
one, so opening a boundary never increases the normalized distance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from ..config import AlignmentSettings, Settings
from ..errors import ConfigurationError
from .steps import StepPattern, StepRule, get_step_pattern

logger = logging.getLogger(__name__)

_START = -2
_MAX_REFINEMENTS = 100


@dataclass(frozen=True, eq=False)
class AlignmentResult:
    """Outcome of :func:`align`.

    Attributes
    ----------
    cost_matrix:
        Padded ``(n + 1, m + 1)`` cumulative cost matrix of the dynamic
        program that produced the reported path; unreachable cells are
        ``inf``.  Its value at the path end is
        ``distance - shift * path_length``.
    distance:
        Total weighted local cost along the reported path.
    path_length:
        Number of matched cells on the path.
    normalized_distance:
        ``distance / path_length``.
    index1, index2:
        0-based query and reference indices of the matched cells in path
        order.
    step_pattern:
        Name of the step pattern used.
    open_begin, open_end:
        Boundary policy used.
    shift:
        Cost subtracted from every matched cell in ``cost_matrix``.  Zero
        when the reported path is the minimum-cost path.
    """

    cost_matrix: np.ndarray
    distance: float
    path_length: int
    normalized_distance: float
    index1: np.ndarray
    index2: np.ndarray
    step_pattern: str
    open_begin: bool = False
    open_end: bool = False
    shift: float = 0.0


def _as_series(values: Sequence[float], name: str) -> np.ndarray:
    try:
        arr = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a sequence of numbers") from exc
    if arr.ndim != 1:
        raise ConfigurationError(f"{name} must be one-dimensional")
    if arr.size == 0:
        raise ConfigurationError(f"{name} must not be empty")
    if not np.all(np.isfinite(arr)):
        raise ConfigurationError(f"{name} must contain only finite values")
    return arr


def _rule_candidates(
    cost: np.ndarray,
    local: np.ndarray,
    rule: StepRule,
    i: int,
    shift: float,
) -> np.ndarray:
    """Cost of reaching every cell of row ``i`` through ``rule``."""

    m = cost.shape[1] - 1
    odi, odj = rule.origin
    out = np.full(m + 1, np.inf)
    if i - odi < 0 or i - rule.max_cell_di < 1:
        return out
    first = max(odj, rule.max_cell_dj + 1)
    if first > m:
        return out
    js = np.arange(first, m + 1)
    total = cost[i - odi, js - odj].copy()
    for di, dj, weight in rule.cells:
        total += weight * local[i - di - 1, js - dj - 1] - shift
    out[first:] = total
    return out


def _accumulate(
    local: np.ndarray,
    pattern: StepPattern,
    open_begin: bool,
    shift: float = 0.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """Fill the padded cumulative cost matrix and the chosen-rule matrix.

    ``shift`` is subtracted from the cost of every matched cell.
    """

    n, m = local.shape
    cost = np.full((n + 1, m + 1), np.inf)
    chosen = np.full((n + 1, m + 1), -1, dtype=int)
    if open_begin:
        # Column 0 is included: the closed start (1, 1) stays reachable.
        cost[0, :] = 0.0

    cross_rules = [(k, r) for k, r in enumerate(pattern.rules) if not r.same_row]
    row_rules = [(k, r) for k, r in enumerate(pattern.rules) if r.same_row]

    for i in range(1, n + 1):
        row = cost[i]
        row_choice = chosen[i]
        for k, rule in cross_rules:
            cand = _rule_candidates(cost, local, rule, i, shift)
            better = cand < row
            row[better] = cand[better]
            row_choice[better] = k

        preset = i == 1 and not open_begin
        if preset:
            row[1] = local[0, 0] - shift
            row_choice[1] = _START

        if row_rules:
            for j in range(1, m + 1):
                if preset and j == 1:
                    continue
                for k, rule in row_rules:
                    odj = rule.origin[1]
                    if j - odj < 0 or j - rule.max_cell_dj < 1:
                        continue
                    base = row[j - odj]
                    if not np.isfinite(base):
                        continue
                    total = base
                    for di, dj, weight in rule.cells:
                        total += weight * local[i - di - 1, j - dj - 1] - shift
                    if total < row[j]:
                        row[j] = total
                        row_choice[j] = k
    return cost, chosen


def _end_cell(cost: np.ndarray, open_end: bool) -> Tuple[int, int]:
    n, m = cost.shape[0] - 1, cost.shape[1] - 1
    if open_end:
        j = int(np.argmin(cost[n, 1:])) + 1
    else:
        j = m
    if not np.isfinite(cost[n, j]):
        raise ConfigurationError(
            "no warping path satisfies the step pattern and boundary conditions"
        )
    return n, j


def _backtrack(
    chosen: np.ndarray,
    pattern: StepPattern,
    end: Tuple[int, int],
) -> List[Tuple[int, int, float]]:
    """Return the matched cells ``(i, j, weight)`` (1-based) in path order."""

    i, j = end
    cells: List[Tuple[int, int, float]] = []
    while i > 0:
        k = chosen[i, j]
        if k == _START:
            cells.append((i, j, 1.0))
            break
        rule = pattern.rules[k]
        for di, dj, weight in reversed(rule.cells):
            cells.append((i - di, j - dj, weight))
        i, j = i - rule.origin[0], j - rule.origin[1]
    cells.reverse()
    return cells


def _path_summary(
    local: np.ndarray, cells: List[Tuple[int, int, float]]
) -> Tuple[float, int]:
    distance = float(sum(w * local[i - 1, j - 1] for i, j, w in cells))
    return distance, len(cells)


def align(
    query: Sequence[float],
    reference: Sequence[float],
    step_pattern: StepPattern | str | None = None,
    open_begin: bool | None = None,
    open_end: bool | None = None,
    *,
    settings: Settings | None = None,
) -> AlignmentResult:
    """Align ``query`` against ``reference`` by dynamic time warping.

    Parameters
    ----------
    query, reference:
        Non-empty one-dimensional numeric sequences.  Local cost is
        ``|query[i] - reference[j]|``.
    step_pattern:
        ``"symmetric"``, ``"asymmetric"``, ``"asymmetricP05"`` or a
        :class:`~curvewarp.core.steps.StepPattern`.
    open_begin:
        Let the path skip a prefix of the reference at no cost.
    open_end:
        Let the path skip a suffix of the reference at no cost.
    settings:
        Optional :class:`~curvewarp.config.Settings`; its ``alignment``
        section supplies any argument left as ``None``.  Without it the
        defaults are the symmetric pattern with both boundaries closed.

    Returns
    -------
    AlignmentResult
        Cost matrix, path and (normalized) distance.

    Raises
    ------
    ConfigurationError
        For empty or non-numeric input, an unknown step pattern, or when no
        path satisfies the pattern and boundary conditions.
    """

    cfg = AlignmentSettings() if settings is None else settings.alignment
    step_pattern = cfg.step_pattern if step_pattern is None else step_pattern
    open_begin = cfg.open_begin if open_begin is None else bool(open_begin)
    open_end = cfg.open_end if open_end is None else bool(open_end)

    q = _as_series(query, "query")
    r = _as_series(reference, "reference")
    pattern = get_step_pattern(step_pattern)
    local = np.abs(q[:, None] - r[None, :])

    cost, chosen = _accumulate(local, pattern, open_begin)
    cells = _backtrack(chosen, pattern, _end_cell(cost, open_end))
    distance, length = _path_summary(local, cells)
    ratio = distance / length

    shift = 0.0
    passes = 1
    refine = open_begin or open_end
    while refine and ratio > 0 and passes < _MAX_REFINEMENTS:
        shifted, shifted_choice = _accumulate(local, pattern, open_begin, shift=ratio)
        cand_cells = _backtrack(shifted_choice, pattern, _end_cell(shifted, open_end))
        cand_distance, cand_length = _path_summary(local, cand_cells)
        cand_ratio = cand_distance / cand_length
        passes += 1
        if cand_ratio >= ratio - 1e-12 * max(1.0, ratio):
            break
        cost, shift = shifted, ratio
        cells, distance, length, ratio = cand_cells, cand_distance, cand_length, cand_ratio

    logger.debug(
        "aligned %d x %d with %s (open_begin=%s, open_end=%s): distance=%g length=%d passes=%d",
        q.size,
        r.size,
        pattern.name,
        open_begin,
        open_end,
        distance,
        length,
        passes,
    )
    return AlignmentResult(
        cost_matrix=cost,
        distance=distance,
        path_length=length,
        normalized_distance=ratio,
        index1=np.array([i - 1 for i, _, _ in cells], dtype=int),
        index2=np.array([j - 1 for _, j, _ in cells], dtype=int),
        step_pattern=pattern.name,
        open_begin=bool(open_begin),
        open_end=bool(open_end),
        shift=shift,
    )


def pairwise_distances(
    series: Sequence[Sequence[float]],
    step_pattern: StepPattern | str | None = None,
    open_begin: bool | None = None,
    open_end: bool | None = None,
    *,
    settings: Settings | None = None,
) -> np.ndarray:
    """Normalized distance of every ordered pair of ``series``.

    Entry ``[a, b]`` aligns ``series[a]`` (query) to ``series[b]``
    (reference).  The diagonal is zero.
    """

    items = list(series)
    size = len(items)
    out = np.zeros((size, size), dtype=float)
    for a in range(size):
        for b in range(size):
            if a == b:
                continue
            result = align(
                items[a], items[b], step_pattern, open_begin, open_end, settings=settings
            )
            out[a, b] = result.normalized_distance
    return out


__all__ = ["AlignmentResult", "align", "pairwise_distances"]
