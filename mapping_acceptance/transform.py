from __future__ import annotations

import math
import re
from functools import lru_cache
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

import numpy as np
import pandas as pd

from .config import (
    COLUMN_BLOCK,
    COLUMN_PREFIX,
    ID_COLUMN,
    SCALE_MAX,
    SCALE_MIN,
    DimensionTable,
    dimension_for_id,
    inverted_dimensions,
)
from .errors import ConfigError, DomainError

LONG_COLUMNS = [ID_COLUMN, "topic_id", "dimension_id", "dimension", "raw", "value"]


class ColumnKey(NamedTuple):
    topic_id: int
    dimension_id: int


@lru_cache(maxsize=32)
def _column_pattern(prefix: str, block: str) -> "re.Pattern[str]":
    return re.compile(rf"^{re.escape(prefix)}(\d+)_{re.escape(block)}_(\d+)$")


def parse_column_name(name: str, prefix: str = COLUMN_PREFIX, block: str = COLUMN_BLOCK) -> Optional[ColumnKey]:
    match = _column_pattern(prefix, block).match(str(name))
    if not match:
        return None
    topic_id, dimension_id = (int(g) for g in match.groups())
    if topic_id < 1 or dimension_id < 1:
        return None
    return ColumnKey(topic_id, dimension_id)


def matched_columns(
    columns: Iterable[Any],
    prefix: str = COLUMN_PREFIX,
    block: str = COLUMN_BLOCK,
) -> Dict[str, ColumnKey]:
    out: Dict[str, ColumnKey] = {}
    for col in columns:
        key = parse_column_name(str(col), prefix, block)
        if key is not None:
            out[str(col)] = key
    return out


def to_numeric(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        if isinstance(value, (float, np.floating)) and math.isnan(value):
            return None
        return float(value)
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return float(s)
        except ValueError:
            return None
    return None


def _check_bounds(scale_min: float, scale_max: float) -> None:
    if scale_min >= scale_max:
        raise ConfigError(f"scale_min ({scale_min}) must be lower than scale_max ({scale_max}).")


def rescale(raw: Any, scale_min: int = SCALE_MIN, scale_max: int = SCALE_MAX, invert: bool = False) -> float:
    _check_bounds(scale_min, scale_max)
    if raw is None or (not isinstance(raw, str) and pd.isna(raw)):
        return float("nan")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise DomainError(f"Raw value {raw!r} is not numeric.") from exc
    if value < scale_min or value > scale_max:
        raise DomainError(f"Raw value {raw!r} outside scale [{scale_min}, {scale_max}].")
    if value == scale_min:
        scaled = 1.0
    elif value == scale_max:
        scaled = -1.0
    else:
        scaled = 1.0 - 2.0 * (value - scale_min) / (scale_max - scale_min)
    return -scaled if invert else scaled


def rescale_series(
    series: pd.Series,
    scale_min: int = SCALE_MIN,
    scale_max: int = SCALE_MAX,
    invert: bool = False,
) -> pd.Series:
    _check_bounds(scale_min, scale_max)
    values = pd.to_numeric(series, errors="coerce").astype(float)
    bad = values.notna() & ((values < scale_min) | (values > scale_max))
    if bad.any():
        first = bad[bad].index[0]
        raise DomainError(
            f"Column {series.name!r}: value {values[first]!r} at row {first!r} "
            f"outside scale [{scale_min}, {scale_max}] ({int(bad.sum())} offending rows)."
        )
    scaled = 1.0 - 2.0 * (values - scale_min) / (scale_max - scale_min)
    return -scaled if invert else scaled


def split_covariates(
    wide_df: pd.DataFrame,
    id_column: str = ID_COLUMN,
    prefix: str = COLUMN_PREFIX,
    block: str = COLUMN_BLOCK,
) -> pd.DataFrame:
    matched = matched_columns(wide_df.columns, prefix, block)
    cols = [c for c in wide_df.columns if str(c) not in matched]
    if id_column in cols:
        cols = [id_column] + [c for c in cols if c != id_column]
    return wide_df[cols].copy()


def to_long(
    wide_df: pd.DataFrame,
    dimensions: Optional[DimensionTable] = None,
    id_column: str = ID_COLUMN,
    prefix: str = COLUMN_PREFIX,
    block: str = COLUMN_BLOCK,
    scale_min: int = SCALE_MIN,
    scale_max: int = SCALE_MAX,
) -> pd.DataFrame:
    if id_column not in wide_df.columns:
        raise ValueError(f"Wide table has no {id_column!r} column.")
    if wide_df.columns.duplicated().any():
        dupes = wide_df.columns[wide_df.columns.duplicated()].tolist()
        raise ValueError(f"Wide table has duplicate column names: {dupes}")

    keys = matched_columns(wide_df.columns, prefix, block)
    inverted = inverted_dimensions(dimensions)
    seen: Dict[ColumnKey, str] = {}
    dim_of: Dict[str, str] = {}
    for col, key in keys.items():
        if key in seen:
            raise ValueError(f"Columns {seen[key]!r} and {col!r} both encode topic {key.topic_id}, "
                             f"dimension {key.dimension_id}.")
        seen[key] = col
        try:
            dim_of[col] = dimension_for_id(key.dimension_id, dimensions)
        except ConfigError as exc:
            raise ConfigError(f"Column {col!r}: {exc}") from exc

    out_columns = [id_column] + LONG_COLUMNS[1:]
    if not keys:
        return pd.DataFrame(columns=out_columns)

    pids = wide_df[id_column].astype(str).to_numpy()
    frames: List[pd.DataFrame] = []
    for col, key in keys.items():
        dim = dim_of[col]
        raw = pd.to_numeric(wide_df[col], errors="coerce").astype(float)
        raw.name = col
        value = rescale_series(raw, scale_min, scale_max, invert=dim in inverted)
        frames.append(pd.DataFrame({
            id_column: pids,
            "topic_id": key.topic_id,
            "dimension_id": key.dimension_id,
            "dimension": dim,
            "raw": raw.to_numpy(),
            "value": value.to_numpy(),
        }))

    long_df = pd.concat(frames, ignore_index=True)
    long_df = long_df.sort_values([id_column, "topic_id", "dimension_id"], kind="mergesort")
    return long_df[out_columns].reset_index(drop=True)


def detect_non_numeric(
    wide_df: pd.DataFrame,
    id_column: str = ID_COLUMN,
    prefix: str = COLUMN_PREFIX,
    block: str = COLUMN_BLOCK,
) -> List[str]:
    warnings: List[str] = []
    for col in matched_columns(wide_df.columns, prefix, block):
        for pid, raw in zip(wide_df[id_column], wide_df[col]):
            if raw is None or (not isinstance(raw, str) and pd.isna(raw)):
                continue
            if isinstance(raw, str) and not raw.strip():
                continue
            if to_numeric(raw) is None:
                warnings.append(f"Non-numeric response: {pid} {col}={raw!r}")
    return warnings


def build_missingness_report(long_df: pd.DataFrame) -> pd.DataFrame:
    if long_df.empty:
        return pd.DataFrame(columns=["topic_id", "dimension", "n_missing", "n_total"])
    df = long_df.copy()
    df["is_missing"] = df["value"].isna()
    report = df.groupby(["topic_id", "dimension_id", "dimension"]).agg(
        n_missing=("is_missing", "sum"),
        n_total=("is_missing", "count"),
    ).reset_index()
    report["n_missing"] = report["n_missing"].astype(int)
    return report.drop(columns="dimension_id")
