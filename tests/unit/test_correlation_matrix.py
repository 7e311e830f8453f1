from __future__ import annotations

import numpy as np
import pytest

from mapping_acceptance.errors import ConfigError, ConstructionError
from mapping_acceptance.synthetic import (
    assemble_block_matrix,
    build_correlation_matrix,
    validate_correlation_matrix,
)

pytestmark = pytest.mark.unit


def test_block_layout(rng: np.random.Generator) -> None:
    m = build_correlation_matrix(4, ((0.3, 0.5), (0.2, 0.4)), -0.25, rng=rng)
    assert m.shape == (8, 8)
    assert np.array_equal(m, m.T)
    assert np.all(np.diag(m) == 1.0)
    assert np.all(m[:4, 4:] == -0.25)
    assert np.all(m[4:, :4] == -0.25)
    upper_a = m[:4, :4][np.triu_indices(4, k=1)]
    upper_b = m[4:, 4:][np.triu_indices(4, k=1)]
    assert np.all((upper_a >= 0.3) & (upper_a <= 0.5))
    assert np.all((upper_b >= 0.2) & (upper_b <= 0.4))
    assert np.linalg.eigvalsh(m).min() >= -1e-8


def test_never_returns_unvalidated_matrix(rng: np.random.Generator) -> None:
    outcomes = {"valid": 0, "failed": 0}
    for _ in range(100):
        n = int(rng.integers(5, 21))
        low = float(rng.uniform(0.0, 0.6))
        ranges = ((low, low + 0.3), (low, low + 0.3))
        try:
            m = build_correlation_matrix(n, ranges, -0.3, max_attempts=3, rng=rng)
        except ConstructionError as exc:
            assert exc.attempts == 3
            assert exc.matrix.shape == (2 * n, 2 * n)
            assert exc.min_eigenvalue < 0
            outcomes["failed"] += 1
            continue
        assert validate_correlation_matrix(m)
        outcomes["valid"] += 1
    assert outcomes["valid"] + outcomes["failed"] == 100


def test_impossible_structure_exhausts_attempts(rng: np.random.Generator) -> None:
    # ten mutually uncorrelated topics cannot all correlate -0.9 with the other block
    with pytest.raises(ConstructionError) as info:
        build_correlation_matrix(10, ((0.0, 0.0), (0.0, 0.0)), -0.9, max_attempts=4, rng=rng)
    assert info.value.attempts == 4
    assert "4 attempts" in str(info.value)


def test_seeded_builds_are_reproducible() -> None:
    a = build_correlation_matrix(6, rng=11)
    b = build_correlation_matrix(6, rng=11)
    assert np.array_equal(a, b)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"n": 0},
        {"n": 3, "within_block_ranges": ((0.5, 0.2), (0.1, 0.2))},
        {"n": 3, "within_block_ranges": ((0.1, 1.5), (0.1, 0.2))},
        {"n": 3, "within_block_ranges": ((0.1, 0.2),)},
        {"n": 3, "cross_block_constant": -1.2},
        {"n": 3, "max_attempts": 0},
    ],
)
def test_invalid_arguments(kwargs) -> None:
    with pytest.raises(ConfigError):
        build_correlation_matrix(**kwargs)


def test_validation_rejects_broken_matrices() -> None:
    good = assemble_block_matrix(np.eye(2), np.eye(2), 0.0)
    assert validate_correlation_matrix(good)
    asym = good.copy()
    asym[0, 1] = 0.2
    assert not validate_correlation_matrix(asym)
    not_psd = assemble_block_matrix(np.eye(2), np.eye(2), 0.9)
    not_psd[0, 1] = not_psd[1, 0] = -0.9
    assert not validate_correlation_matrix(not_psd)
    off_diag = good.copy()
    off_diag[0, 0] = 2.0
    assert not validate_correlation_matrix(off_diag)
