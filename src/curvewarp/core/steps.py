"""Step patterns for the alignment engine.

A step pattern is a set of rules.  Each rule names an origin cell, given as
a backwards offset ``(di, dj)`` from the cell being filled, and the cells it
covers on the way, each with a weight for its local cost.  Tables are
written in the row layout used by the ``dtw`` package::

    rule, di, dj, weight      # weight -1 marks the origin

``i`` indexes the query and ``j`` the reference.  Rules are listed in
tie-breaking order: diagonal first, then query-advancing, then
reference-advancing moves.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

from ..errors import ConfigurationError

Cell = Tuple[int, int, float]

_ORIGIN = -1


@dataclass(frozen=True)
class StepRule:
    """One production of a step pattern.

    ``cells`` are ordered from the cell after the origin up to ``(0, 0)``,
    the cell being filled.
    """

    origin: Tuple[int, int]
    cells: Tuple[Cell, ...]

    def __post_init__(self) -> None:
        if not self.cells or self.cells[-1][:2] != (0, 0):
            raise ConfigurationError("a step rule must end on the cell being filled")
        odi, odj = self.origin
        if odi < 0 or odj < 0 or (odi, odj) == (0, 0):
            raise ConfigurationError(f"invalid rule origin {self.origin}")
        for di, dj, _ in self.cells:
            if not (0 <= di <= odi and 0 <= dj <= odj) or (di, dj) == (odi, odj):
                raise ConfigurationError(f"cell ({di}, {dj}) is not between origin and target")

    @property
    def same_row(self) -> bool:
        """Whether the origin lies on the row being filled."""

        return self.origin[0] == 0

    @property
    def max_cell_di(self) -> int:
        return max(di for di, _, _ in self.cells)

    @property
    def max_cell_dj(self) -> int:
        return max(dj for _, dj, _ in self.cells)

    def transpose(self) -> "StepRule":
        return StepRule(
            (self.origin[1], self.origin[0]),
            tuple((dj, di, w) for di, dj, w in self.cells),
        )


@dataclass(frozen=True)
class StepPattern:
    """Named collection of :class:`StepRule` objects."""

    name: str
    rules: Tuple[StepRule, ...]

    def __post_init__(self) -> None:
        if not self.rules:
            raise ConfigurationError("a step pattern needs at least one rule")
        seen_same_row = False
        for rule in self.rules:
            if rule.same_row:
                seen_same_row = True
            elif seen_same_row:
                # The engine resolves same-row rules after all others.
                raise ConfigurationError("same-row rules must be listed last")

    @classmethod
    def from_table(cls, name: str, rows: Sequence[Sequence[float]]) -> "StepPattern":
        """Build a pattern from ``(rule, di, dj, weight)`` rows."""

        grouped: Dict[int, list] = {}
        for rule_id, di, dj, weight in rows:
            grouped.setdefault(int(rule_id), []).append((int(di), int(dj), float(weight)))
        rules = []
        for rule_id in sorted(grouped):
            steps = grouped[rule_id]
            origin = steps[0]
            if origin[2] != _ORIGIN:
                raise ConfigurationError(f"rule {rule_id} of {name!r} does not start with its origin")
            rules.append(StepRule((origin[0], origin[1]), tuple(steps[1:])))
        return cls(name, tuple(rules))

    def transpose(self) -> "StepPattern":
        """Swap the roles of query and reference."""

        rules = tuple(rule.transpose() for rule in self.rules)
        ordered = tuple(r for r in rules if not r.same_row) + tuple(r for r in rules if r.same_row)
        return StepPattern(f"{self.name}.T", ordered)

    def __str__(self) -> str:
        lines = [f"Step pattern {self.name!r}:"]
        for rule in self.rules:
            terms = " + ".join(f"{w:g}*d[i-{di},j-{dj}]" for di, dj, w in rule.cells)
            lines.append(f"  g[i-{rule.origin[0]},j-{rule.origin[1]}] + {terms}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

SYMMETRIC = StepPattern.from_table(
    "symmetric",
    (
        (1, 1, 1, -1),
        (1, 0, 0, 1),
        (2, 1, 0, -1),
        (2, 0, 0, 1),
        (3, 0, 1, -1),
        (3, 0, 0, 1),
    ),
)

# Query advances by one cell per step; the reference by 0, 1 or 2.
ASYMMETRIC = StepPattern.from_table(
    "asymmetric",
    (
        (1, 1, 1, -1),
        (1, 0, 0, 1),
        (2, 1, 0, -1),
        (2, 0, 0, 1),
        (3, 1, 2, -1),
        (3, 0, 0, 1),
    ),
)

# Sakoe-Chiba slope constraint P = 1/2, asymmetric weighting.
ASYMMETRIC_P05 = StepPattern.from_table(
    "asymmetricP05",
    (
        (1, 1, 1, -1),
        (1, 0, 0, 1),
        (2, 2, 1, -1),
        (2, 1, 0, 1),
        (2, 0, 0, 1),
        (3, 3, 1, -1),
        (3, 2, 0, 1),
        (3, 1, 0, 1),
        (3, 0, 0, 1),
        (4, 1, 2, -1),
        (4, 0, 1, 0.5),
        (4, 0, 0, 0.5),
        (5, 1, 3, -1),
        (5, 0, 2, 1 / 3),
        (5, 0, 1, 1 / 3),
        (5, 0, 0, 1 / 3),
    ),
)

STEP_PATTERNS: Dict[str, StepPattern] = {
    p.name: p for p in (SYMMETRIC, ASYMMETRIC, ASYMMETRIC_P05)
}


def get_step_pattern(pattern: StepPattern | str) -> StepPattern:
    """Return ``pattern`` itself or the registered pattern of that name."""

    if isinstance(pattern, StepPattern):
        return pattern
    try:
        return STEP_PATTERNS[str(pattern)]
    except KeyError:
        raise ConfigurationError(
            f"unknown step pattern {pattern!r}; expected one of {sorted(STEP_PATTERNS)}"
        ) from None


__all__ = [
    "StepRule",
    "StepPattern",
    "SYMMETRIC",
    "ASYMMETRIC",
    "ASYMMETRIC_P05",
    "STEP_PATTERNS",
    "get_step_pattern",
]
