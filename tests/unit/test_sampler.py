from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from mapping_acceptance import synthetic
from mapping_acceptance.errors import ConfigError, NumericError
from mapping_acceptance.synthetic import (
    add_correlated_covariate,
    build_correlation_matrix,
    discretize,
    generate_dataset,
    generate_topics,
    participant_ids,
    sample_responses,
)
from mapping_acceptance.transform import parse_column_name

pytestmark = pytest.mark.unit


def test_discretize_scenario() -> None:
    out = discretize(np.array([-1.0, -0.5, 0.0, 0.5, 1.0]))
    assert out.tolist() == [1, 2, 4, 6, 7]


def test_discretize_clamps() -> None:
    assert discretize(np.array([-3.2, 2.5])).tolist() == [1, 7]


def test_sample_shape_and_schema(rng: np.random.Generator) -> None:
    corr = build_correlation_matrix(3, rng=rng)
    wide = sample_responses(3, 50, 0.0, 0.4, corr, rng=rng)
    assert wide.shape == (50, 7)
    assert wide.columns[0] == "participant_id"
    assert wide["participant_id"].is_unique
    keys = [parse_column_name(c) for c in wide.columns[1:]]
    assert all(k is not None for k in keys)
    assert {k.dimension_id for k in keys} == {1, 2}
    values = wide.iloc[:, 1:].to_numpy()
    assert values.min() >= 1 and values.max() <= 7
    assert np.issubdtype(values.dtype, np.integer)


def test_sample_tracks_means(rng: np.random.Generator) -> None:
    corr = np.eye(4)
    means = [-0.6, 0.6, 0.0, 0.3]
    wide = sample_responses(2, 4000, means, 0.2, corr, rng=rng)
    observed = wide.iloc[:, 1:].mean().to_numpy()
    expected = 4 + 3 * np.asarray(means)
    assert np.allclose(observed, expected, atol=0.15)


def test_non_decomposable_matrix_is_numeric_error(rng: np.random.Generator) -> None:
    bad = np.array([
        [1.0, 0.9, -0.9, 0.0],
        [0.9, 1.0, 0.9, 0.0],
        [-0.9, 0.9, 1.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])
    with pytest.raises(NumericError):
        sample_responses(2, 10, 0.0, 0.4, bad, rng=rng)


def test_matrix_size_must_match_topics(rng: np.random.Generator) -> None:
    with pytest.raises(ConfigError):
        sample_responses(3, 10, 0.0, 0.4, np.eye(4), rng=rng)


def test_covariate_correlation(rng: np.random.Generator) -> None:
    corr = build_correlation_matrix(2, rng=rng)
    wide = sample_responses(2, 5000, 0.0, 0.5, corr, rng=rng)
    out = add_correlated_covariate(wide, ["a1_matrix_1", "a1_matrix_2"], 0.3, mean=3.5, sd=1.0, name="kut", rng=rng)
    assert "kut" in out.columns and "kut" not in wide.columns
    assert out["kut"].mean() == pytest.approx(3.5, abs=0.1)
    for col in ("a1_matrix_1", "a1_matrix_2"):
        assert np.corrcoef(out["kut"], out[col])[0, 1] == pytest.approx(0.3, abs=0.06)


def test_unattainable_covariate_correlation() -> None:
    x = np.arange(1, 8, dtype=float)
    wide = pd.DataFrame({"a": x, "b": -x + np.array([0, 0.1, 0, 0.1, 0, 0.1, 0])})
    with pytest.raises(NumericError):
        add_correlated_covariate(wide, ["a", "b"], 0.9, rng=1)


def test_participant_ids_sort_numerically() -> None:
    ids = participant_ids(12)
    assert ids[0] == "01" and ids[-1] == "12"
    assert sorted(ids) == ids


def test_generate_dataset_is_reproducible() -> None:
    a, corr_a = generate_dataset(n_topics=4, n_participants=30, seed=5)
    b, corr_b = generate_dataset(n_topics=4, n_participants=30, seed=5)
    pd.testing.assert_frame_equal(a, b)
    assert np.array_equal(corr_a, corr_b)
    assert "tech_commitment" in a.columns
    assert corr_a.shape == (8, 8)


def test_generate_topics() -> None:
    topics = generate_topics(3)
    assert topics["topic_id"].tolist() == [1, 2, 3]
    assert topics["short_label"].tolist() == ["T1", "T2", "T3"]


def test_covariate_noise_comes_from_multivariate_draw(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def fake_draw(n_rows, means, sds, correlation_matrix, rng):
        calls.append((n_rows, np.asarray(correlation_matrix).shape))
        return np.zeros((n_rows, 1))

    monkeypatch.setattr(synthetic, "draw_multivariate", fake_draw)
    wide = pd.DataFrame({"a": [1.0, 2.0, 3.0, 4.0], "b": [2.0, 1.0, 4.0, 3.0]})
    out = add_correlated_covariate(wide, ["a", "b"], 0.3, mean=2.0, sd=1.0, name="cov", rng=3)
    assert calls == [(4, (1, 1))]
    # with the noise term zeroed the covariate is the fitted part only
    assert out["cov"].mean() == pytest.approx(2.0)
