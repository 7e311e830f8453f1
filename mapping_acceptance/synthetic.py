"""Synthetic micro-scenario responses for demonstrating the analysis.

Latent evaluations are drawn from a multivariate normal whose correlation
matrix has two blocks (one per dimension): topics correlate positively within
a dimension and by a constant (usually negative) amount across dimensions.
Random within-block draws do not always give a valid correlation matrix, so
the builder regenerates until the matrix is positive semi-definite, up to a
fixed number of attempts.

Latent values live on [-1, 1] and are mapped onto the ordinal answer scale
(-1 -> 1, +1 -> 7 on the default scale) before rounding.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .config import (
    COLUMN_BLOCK,
    COLUMN_PREFIX,
    ID_COLUMN,
    SCALE_MAX,
    SCALE_MIN,
    SYNTHETIC_DEFAULTS,
    DimensionTable,
    dimension_names,
)
from .errors import ConfigError, ConstructionError, NumericError

RangePair = Tuple[float, float]
SeedLike = Union[None, int, np.random.Generator]


def make_rng(seed: SeedLike = None) -> np.random.Generator:
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def _random_block(n: int, low: float, high: float, rng: np.random.Generator) -> np.ndarray:
    draws = rng.uniform(low, high, size=(n, n))
    upper = np.triu(draws, k=1)
    block = upper + upper.T
    np.fill_diagonal(block, 1.0)
    return block


def assemble_block_matrix(block_a: np.ndarray, block_b: np.ndarray, cross_block_constant: float) -> np.ndarray:
    n = block_a.shape[0]
    cross = np.full((n, n), float(cross_block_constant))
    return np.block([[block_a, cross], [cross.T, block_b]])


def min_eigenvalue(matrix: np.ndarray) -> float:
    return float(np.min(np.linalg.eigvalsh(matrix)))


def validate_correlation_matrix(matrix: np.ndarray, tol: float = 1e-8) -> bool:
    m = np.asarray(matrix, dtype=float)
    if m.ndim != 2 or m.shape[0] != m.shape[1] or m.size == 0:
        return False
    if not np.all(np.isfinite(m)):
        return False
    if not np.array_equal(m, m.T):
        return False
    if not np.allclose(np.diag(m), 1.0):
        return False
    if np.any(m < -1.0) or np.any(m > 1.0):
        return False
    return min_eigenvalue(m) >= -tol


def _check_builder_args(
    n: int,
    within_block_ranges: Sequence[RangePair],
    cross_block_constant: float,
    max_attempts: int,
) -> None:
    if int(n) != n or n < 1:
        raise ConfigError(f"n must be a positive integer, got {n!r}.")
    if len(within_block_ranges) != 2:
        raise ConfigError(f"Expected two within-block ranges, got {len(within_block_ranges)}.")
    for low, high in within_block_ranges:
        if low > high or low < -1.0 or high > 1.0:
            raise ConfigError(f"Within-block range ({low}, {high}) must satisfy -1 <= low <= high <= 1.")
    if not -1.0 <= cross_block_constant <= 1.0:
        raise ConfigError(f"cross_block_constant {cross_block_constant} outside [-1, 1].")
    if max_attempts < 1:
        raise ConfigError(f"max_attempts must be at least 1, got {max_attempts}.")


def build_correlation_matrix(
    n: int,
    within_block_ranges: Sequence[RangePair] = SYNTHETIC_DEFAULTS["within_block_ranges"],
    cross_block_constant: float = SYNTHETIC_DEFAULTS["cross_block_constant"],
    max_attempts: int = SYNTHETIC_DEFAULTS["max_attempts"],
    rng: SeedLike = None,
    tol: float = 1e-8,
) -> np.ndarray:
    _check_builder_args(n, within_block_ranges, cross_block_constant, max_attempts)
    gen = make_rng(rng)
    (low_a, high_a), (low_b, high_b) = within_block_ranges

    matrix: Optional[np.ndarray] = None
    smallest = float("nan")
    for _ in range(max_attempts):
        matrix = assemble_block_matrix(
            _random_block(int(n), low_a, high_a, gen),
            _random_block(int(n), low_b, high_b, gen),
            cross_block_constant,
        )
        if validate_correlation_matrix(matrix, tol=tol):
            return matrix
        smallest = min_eigenvalue(matrix)

    raise ConstructionError(
        f"No positive semi-definite {2 * n}x{2 * n} correlation matrix after {max_attempts} attempts "
        f"(ranges={list(within_block_ranges)}, cross={cross_block_constant}, "
        f"last min eigenvalue={smallest:.4g}).",
        attempts=max_attempts,
        matrix=matrix,
        min_eigenvalue=smallest,
    )


def _broadcast(values: Union[float, Iterable[float]], k: int, name: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim == 0:
        return np.full(k, float(arr))
    arr = arr.ravel()
    if arr.size != k:
        raise ConfigError(f"{name} must be a scalar or have {k} entries, got {arr.size}.")
    return arr


def draw_multivariate(
    n_rows: int,
    means: np.ndarray,
    sds: np.ndarray,
    correlation_matrix: np.ndarray,
    rng: np.random.Generator,
) -> np.ndarray:
    corr = np.asarray(correlation_matrix, dtype=float)
    try:
        chol = np.linalg.cholesky(corr)
    except np.linalg.LinAlgError as exc:
        raise NumericError(
            f"Correlation matrix ({corr.shape[0]}x{corr.shape[1]}) has no Cholesky factor "
            f"(min eigenvalue {min_eigenvalue(corr):.4g})."
        ) from exc
    z = rng.standard_normal(size=(n_rows, corr.shape[0]))
    return means + (z @ chol.T) * sds


def discretize(values, scale_min: int = SCALE_MIN, scale_max: int = SCALE_MAX) -> np.ndarray:
    clipped = np.clip(np.asarray(values, dtype=float), -1.0, 1.0)
    mid = (scale_min + scale_max) / 2.0
    half = (scale_max - scale_min) / 2.0
    # np.round rounds halves to even: -0.5 -> 2.5 -> 2, 0.5 -> 5.5 -> 6 on a 1..7 scale
    return np.round(mid + half * clipped).astype(int)


def response_columns(
    n_topics: int,
    dimensions: Optional[DimensionTable] = None,
    prefix: str = COLUMN_PREFIX,
    block: str = COLUMN_BLOCK,
) -> List[str]:
    n_dims = len(dimension_names(dimensions))
    return [
        f"{prefix}{topic}_{block}_{dim}"
        for dim in range(1, n_dims + 1)
        for topic in range(1, n_topics + 1)
    ]


def participant_ids(n_participants: int) -> List[str]:
    width = len(str(n_participants))
    return [f"{i:0{width}d}" for i in range(1, n_participants + 1)]


def sample_responses(
    n_topics: int,
    n_participants: int,
    target_means: Union[float, Iterable[float]],
    target_sd: Union[float, Iterable[float]],
    correlation_matrix: np.ndarray,
    rng: SeedLike = None,
    dimensions: Optional[DimensionTable] = None,
    id_column: str = ID_COLUMN,
    scale_min: int = SCALE_MIN,
    scale_max: int = SCALE_MAX,
) -> pd.DataFrame:
    if n_topics < 1 or n_participants < 1:
        raise ConfigError("n_topics and n_participants must be positive.")
    columns = response_columns(n_topics, dimensions)
    k = len(columns)
    corr = np.asarray(correlation_matrix, dtype=float)
    if corr.shape != (k, k):
        raise ConfigError(f"Correlation matrix must be {k}x{k} for {n_topics} topics, got {corr.shape}.")
    means = _broadcast(target_means, k, "target_means")
    sds = _broadcast(target_sd, k, "target_sd")
    if np.any(sds <= 0):
        raise ConfigError("target_sd must be positive.")

    latent = draw_multivariate(n_participants, means, sds, corr, make_rng(rng))
    responses = pd.DataFrame(discretize(latent, scale_min, scale_max), columns=columns)
    responses.insert(0, id_column, participant_ids(n_participants))
    return responses


def add_correlated_covariate(
    wide_df: pd.DataFrame,
    columns: Sequence[str],
    target_r: Union[float, Iterable[float]],
    mean: float = 0.0,
    sd: float = 1.0,
    name: str = SYNTHETIC_DEFAULTS["covariate_name"],
    rng: SeedLike = None,
) -> pd.DataFrame:
    missing = [c for c in columns if c not in wide_df.columns]
    if missing:
        raise ConfigError(f"Covariate anchor columns not in table: {missing}")
    if sd <= 0:
        raise ConfigError("Covariate sd must be positive.")

    anchors = wide_df[list(columns)].astype(float).to_numpy()
    if np.isnan(anchors).any():
        raise NumericError(f"Covariate anchor columns {list(columns)} contain missing values.")
    spread = anchors.std(axis=0, ddof=1)
    if anchors.shape[0] < 3 or np.any(spread == 0):
        raise NumericError(f"Covariate anchor columns {list(columns)} have no variance to correlate with.")
    z = (anchors - anchors.mean(axis=0)) / spread

    r = _broadcast(target_r, len(columns), "target_r")
    anchor_corr = np.atleast_2d(np.corrcoef(z, rowvar=False))
    try:
        beta = np.linalg.solve(anchor_corr, r)
    except np.linalg.LinAlgError as exc:
        raise NumericError(f"Covariate anchor columns {list(columns)} are collinear.") from exc
    residual = 1.0 - float(r @ beta)
    if residual <= 0:
        raise NumericError(
            f"Target correlations {r.tolist()} are not attainable given the anchor columns "
            f"(residual variance {residual:.4g})."
        )

    # the covariate is the one extra variable conditioned on the anchors
    noise = draw_multivariate(z.shape[0], np.zeros(1), np.array([np.sqrt(residual)]), np.eye(1), make_rng(rng))
    latent = z @ beta + noise[:, 0]
    out = wide_df.copy()
    out[name] = mean + sd * latent
    return out


def generate_dataset(
    n_topics: int = SYNTHETIC_DEFAULTS["n_topics"],
    n_participants: int = SYNTHETIC_DEFAULTS["n_participants"],
    seed: SeedLike = None,
    within_block_ranges: Sequence[RangePair] = SYNTHETIC_DEFAULTS["within_block_ranges"],
    cross_block_constant: float = SYNTHETIC_DEFAULTS["cross_block_constant"],
    max_attempts: int = SYNTHETIC_DEFAULTS["max_attempts"],
    target_sd: float = SYNTHETIC_DEFAULTS["target_sd"],
    mean_range: RangePair = SYNTHETIC_DEFAULTS["mean_range"],
    covariate_columns: Optional[Sequence[str]] = SYNTHETIC_DEFAULTS["covariate_columns"],
    covariate_r: float = SYNTHETIC_DEFAULTS["covariate_r"],
    covariate_mean: float = SYNTHETIC_DEFAULTS["covariate_mean"],
    covariate_sd: float = SYNTHETIC_DEFAULTS["covariate_sd"],
    covariate_name: str = SYNTHETIC_DEFAULTS["covariate_name"],
) -> Tuple[pd.DataFrame, np.ndarray]:
    rng = make_rng(seed)
    corr = build_correlation_matrix(
        n_topics,
        within_block_ranges=within_block_ranges,
        cross_block_constant=cross_block_constant,
        max_attempts=max_attempts,
        rng=rng,
    )
    means = rng.uniform(mean_range[0], mean_range[1], size=corr.shape[0])
    wide = sample_responses(n_topics, n_participants, means, target_sd, corr, rng=rng)
    if covariate_columns:
        wide = add_correlated_covariate(
            wide,
            covariate_columns,
            covariate_r,
            mean=covariate_mean,
            sd=covariate_sd,
            name=covariate_name,
            rng=rng,
        )
    return wide, corr


def generate_topics(n_topics: int) -> pd.DataFrame:
    return pd.DataFrame({
        "topic_id": list(range(1, n_topics + 1)),
        "label": [f"Topic {i}" for i in range(1, n_topics + 1)],
        "short_label": [f"T{i}" for i in range(1, n_topics + 1)],
    })
