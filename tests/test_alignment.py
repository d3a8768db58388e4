import numpy as np
import pytest

from curvewarp.config import Settings
from curvewarp.core import STEP_PATTERNS, StepPattern, align, get_step_pattern, pairwise_distances
from curvewarp.core.steps import ASYMMETRIC, SYMMETRIC, StepRule
from curvewarp.errors import ConfigurationError


def _series(seed, n):
    return np.random.default_rng(seed).normal(size=n)


@pytest.mark.parametrize("pattern", sorted(STEP_PATTERNS))
def test_identity_has_zero_distance(pattern):
    x = np.sin(np.linspace(0.0, 3.0, 15))
    result = align(x, x, pattern)
    assert result.distance == 0.0
    assert result.normalized_distance == 0.0
    np.testing.assert_array_equal(result.index1, np.arange(15))
    np.testing.assert_array_equal(result.index2, np.arange(15))
    assert result.step_pattern == pattern


def test_symmetric_pattern_is_symmetric():
    a, b = _series(1, 12), _series(2, 17)
    ab = align(a, b, "symmetric")
    ba = align(b, a, "symmetric")
    assert ab.normalized_distance == pytest.approx(ba.normalized_distance, rel=1e-9)


@pytest.mark.parametrize("pattern", sorted(STEP_PATTERNS))
def test_opening_boundaries_never_increases_distance(pattern):
    q, r = _series(3, 15), _series(4, 20)
    closed = align(q, r, pattern).normalized_distance
    begin = align(q, r, pattern, open_begin=True).normalized_distance
    end = align(q, r, pattern, open_end=True).normalized_distance
    both = align(q, r, pattern, open_begin=True, open_end=True).normalized_distance
    tol = 1e-9
    assert begin <= closed + tol
    assert end <= closed + tol
    assert both <= begin + tol
    assert both <= end + tol


def test_padded_reference_open_alignment():
    x = np.sin(np.linspace(0.0, 2 * np.pi, 20))
    rng = np.random.default_rng(9)
    reference = np.concatenate([rng.uniform(2.0, 3.0, 7), x, rng.uniform(2.0, 3.0, 9)])
    result = align(x, reference, "symmetric", open_begin=True, open_end=True)
    assert result.normalized_distance == pytest.approx(0.0, abs=1e-12)
    assert result.index2[0] == 7
    assert result.index2[-1] == 26
    assert result.path_length == 20
    closed = align(x, reference, "symmetric")
    assert closed.normalized_distance > 0.1


def test_closed_path_spans_both_series():
    q, r = _series(5, 8), _series(6, 11)
    result = align(q, r)
    assert (result.index1[0], result.index2[0]) == (0, 0)
    assert (result.index1[-1], result.index2[-1]) == (7, 10)
    assert np.all(np.diff(result.index1) >= 0)
    assert np.all(np.diff(result.index2) >= 0)
    assert result.path_length == result.index1.size
    local = np.abs(q[result.index1] - r[result.index2])
    assert result.distance == pytest.approx(local.sum())
    assert result.normalized_distance == pytest.approx(result.distance / result.path_length)


def test_cost_matrix_layout():
    q, r = _series(7, 4), _series(8, 6)
    closed = align(q, r)
    assert closed.cost_matrix.shape == (5, 7)
    assert np.all(np.isinf(closed.cost_matrix[0]))
    assert closed.cost_matrix[1, 1] == pytest.approx(abs(q[0] - r[0]))
    opened = align(q, r, open_begin=True)
    np.testing.assert_array_equal(opened.cost_matrix[0], 0.0)


def test_asymmetric_path_length_is_query_length():
    q, r = _series(10, 10), _series(11, 14)
    result = align(q, r, "asymmetric")
    assert result.path_length == 10
    np.testing.assert_array_equal(result.index1, np.arange(10))
    assert np.all(np.diff(result.index2) <= 2)


def test_no_admissible_path():
    with pytest.raises(ConfigurationError):
        align(_series(12, 3), _series(13, 10), "asymmetric")


@pytest.mark.parametrize(
    "query, reference",
    [
        ([], [1.0, 2.0]),
        ([1.0, 2.0], []),
        ([[1.0, 2.0]], [1.0, 2.0]),
        ([1.0, np.nan], [1.0, 2.0]),
        (["a", "b"], [1.0, 2.0]),
    ],
)
def test_invalid_series(query, reference):
    with pytest.raises(ConfigurationError):
        align(query, reference)


def test_unknown_step_pattern():
    with pytest.raises(ConfigurationError):
        align([1.0], [1.0], "rabinerJuangStepPattern")
    with pytest.raises(ConfigurationError):
        get_step_pattern("nope")


def test_transpose():
    t = ASYMMETRIC.transpose()
    assert t.name == "asymmetric.T"
    assert [rule.origin for rule in t.rules] == [(1, 1), (2, 1), (0, 1)]
    assert {rule.origin for rule in SYMMETRIC.transpose().rules} == {(1, 1), (1, 0), (0, 1)}
    q, r = _series(14, 14), _series(15, 10)
    forward = align(q, r, t)
    backward = align(r, q, "asymmetric")
    assert forward.normalized_distance == pytest.approx(backward.normalized_distance, rel=1e-9)


def test_pattern_validation():
    diagonal = StepRule((1, 1), ((0, 0, 1.0),))
    across = StepRule((0, 1), ((0, 0, 1.0),))
    with pytest.raises(ConfigurationError):
        StepPattern("bad", (across, diagonal))
    with pytest.raises(ConfigurationError):
        StepRule((1, 1), ((0, 1, 1.0),))
    with pytest.raises(ConfigurationError):
        StepPattern.from_table("bad", [(1, 0, 0, 1.0), (1, 1, 1, -1)])
    assert "symmetric" in str(SYMMETRIC)


def test_defaults_from_settings():
    x = np.sin(np.linspace(0.0, 2 * np.pi, 20))
    reference = np.concatenate([x, np.full(5, 4.0)])
    settings = Settings()
    settings.alignment.open_end = True
    result = align(x, reference, settings=settings)
    assert result.open_end
    assert result.normalized_distance == pytest.approx(0.0, abs=1e-12)
    closed = align(x, reference, open_end=False, settings=settings)
    assert not closed.open_end
    assert closed.normalized_distance > 0.0


def test_pairwise_distances():
    series = [_series(20, 8), _series(21, 10), _series(22, 9)]
    matrix = pairwise_distances(series)
    assert matrix.shape == (3, 3)
    np.testing.assert_array_equal(np.diag(matrix), 0.0)
    np.testing.assert_allclose(matrix, matrix.T, rtol=1e-9)
    assert matrix[0, 2] == pytest.approx(align(series[0], series[2]).normalized_distance)


def test_closed_alignment_reports_min_cost_path():
    result = align([0.0, 1.0, 0.0], [0.0, 0.0, 0.0], "symmetric")
    assert result.distance == 1.0
    assert result.path_length == 3
    assert result.normalized_distance == pytest.approx(1.0 / 3.0)
    np.testing.assert_array_equal(result.index1, [0, 1, 2])
    np.testing.assert_array_equal(result.index2, [0, 1, 2])
    assert result.shift == 0.0
    assert result.cost_matrix[-1, -1] == result.distance


@pytest.mark.parametrize("pattern", sorted(STEP_PATTERNS))
def test_closed_distance_matches_cost_matrix(pattern):
    q, r = _series(30, 9), _series(31, 12)
    result = align(q, r, pattern)
    assert result.shift == 0.0
    assert result.distance == pytest.approx(result.cost_matrix[-1, -1])


def test_open_cost_matrix_describes_reported_path():
    q, r = _series(32, 10), _series(33, 16)
    result = align(q, r, "symmetric", open_begin=True, open_end=True)
    end = result.cost_matrix[len(q), result.index2[-1] + 1]
    assert end == pytest.approx(result.distance - result.shift * result.path_length)


def test_tie_prefers_diagonal():
    result = align([0.0, 0.0], [0.0, 0.0, 0.0])
    np.testing.assert_array_equal(result.index1, [0, 0, 1])
    np.testing.assert_array_equal(result.index2, [0, 1, 2])


def test_tie_prefers_query_advance_over_reference_advance():
    # paths through (1, 2) and (2, 1) both cost 13
    result = align([0.0, 5.0, -3.0], [0.0, -5.0, 3.0])
    assert result.distance == 13.0
    np.testing.assert_array_equal(result.index1, [0, 0, 1, 2])
    np.testing.assert_array_equal(result.index2, [0, 1, 2, 2])


def test_tie_between_end_columns_takes_smallest():
    result = align([0.0, 0.0], [0.0, 0.0, 5.0], open_end=True)
    assert result.distance == 0.0
    np.testing.assert_array_equal(result.index1, [0, 1])
    np.testing.assert_array_equal(result.index2, [0, 0])


def test_open_begin_can_start_at_first_reference_sample():
    x = np.sin(np.linspace(0.0, 3.0, 15))
    result = align(x, x, "asymmetricP05", open_begin=True)
    assert result.normalized_distance == 0.0
    assert result.index2[0] == 0


def test_defaults_ignore_environment(monkeypatch):
    monkeypatch.setenv("CURVEWARP_ALIGNMENT__OPEN_END", "true")
    monkeypatch.setenv("CURVEWARP_ALIGNMENT__STEP_PATTERN", "asymmetric")
    result = align([0.0, 1.0, 2.0], [0.0, 1.0, 2.0, 9.0, 9.0])
    assert not result.open_end
    assert result.step_pattern == "symmetric"
    assert result.normalized_distance > 0.0
