"""Grouped statistics over the long table.

Two views are produced from the same long table:

* the user factor, one row per participant, used to relate individual
  differences (covariates) to how a person rates the topics overall;
* the topic factor, one row per topic, used to rank and map the topics.

Both report ``mean_<dimension>`` and ``sd_<dimension>`` for every configured
dimension. Missing values are excluded from the statistics; a group with no
observed value gets NaN for both.
"""
from __future__ import annotations

from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .config import ID_COLUMN, DimensionTable, dimension_names

GROUP_KEYS: Dict[str, str] = {
    "participant": ID_COLUMN,
    "topic": "topic_id",
}


def stat_columns(dimensions: Optional[DimensionTable] = None) -> List[str]:
    cols: List[str] = []
    for name in dimension_names(dimensions):
        cols.extend([f"mean_{name}", f"sd_{name}"])
    return cols


def _grouped_stats(long_df: pd.DataFrame, key: str, names: List[str]) -> pd.DataFrame:
    grouped = long_df.groupby([key, "dimension"])["value"].agg(
        mean="mean",
        sd=lambda s: s.std(ddof=1),
    )
    # all-missing groups: mean and sd stay NaN
    wide = grouped[["mean", "sd"]].unstack("dimension")

    out = pd.DataFrame(index=wide.index)
    for name in names:
        for stat in ("mean", "sd"):
            col = (stat, name)
            out[f"{stat}_{name}"] = wide[col].astype(float) if col in wide.columns else np.nan
    return out.reset_index()


def aggregate(
    long_df: pd.DataFrame,
    group_key: str,
    covariates: Optional[pd.DataFrame] = None,
    topics: Optional[pd.DataFrame] = None,
    dimensions: Optional[DimensionTable] = None,
) -> pd.DataFrame:
    if group_key not in GROUP_KEYS:
        raise ValueError(f"group_key must be one of {sorted(GROUP_KEYS)}, got {group_key!r}")
    key = GROUP_KEYS[group_key]
    names = dimension_names(dimensions)

    if long_df.empty:
        stats = pd.DataFrame(columns=[key] + stat_columns(dimensions))
    else:
        stats = _grouped_stats(long_df, key, names)

    if group_key == "participant":
        if covariates is not None:
            base = covariates.copy()
            base[key] = base[key].astype(str)
            stats[key] = stats[key].astype(str)
            result = base[[key]].merge(stats, on=key, how="left")
            extra = [c for c in base.columns if c != key]
            if extra:
                result = result.merge(base, on=key, how="left")
        else:
            result = stats
    else:
        stats[key] = stats[key].astype(int)
        if topics is not None:
            lookup = topics[[c for c in ("topic_id", "label", "short_label") if c in topics.columns]].copy()
            lookup["topic_id"] = lookup["topic_id"].astype(int)
            result = stats.merge(lookup, on="topic_id", how="left")
        else:
            result = stats.copy()
        for col in ("label", "short_label"):
            if col not in result.columns:
                result[col] = None

    return result.sort_values(key, kind="mergesort").reset_index(drop=True)


def user_factor(
    long_df: pd.DataFrame,
    covariates: Optional[pd.DataFrame] = None,
    dimensions: Optional[DimensionTable] = None,
) -> pd.DataFrame:
    return aggregate(long_df, "participant", covariates=covariates, dimensions=dimensions)


def topic_factor(
    long_df: pd.DataFrame,
    topics: Optional[pd.DataFrame] = None,
    dimensions: Optional[DimensionTable] = None,
) -> pd.DataFrame:
    return aggregate(long_df, "topic", topics=topics, dimensions=dimensions)


def factor_to_long(factor_df: pd.DataFrame, group_key: str, dimensions: Optional[DimensionTable] = None) -> pd.DataFrame:
    """Turn the means of an aggregate back into long observations (one per key and dimension)."""
    key = GROUP_KEYS[group_key]
    rows = []
    for name in dimension_names(dimensions):
        part = factor_df[[key, f"mean_{name}"]].rename(columns={f"mean_{name}": "value"})
        part["dimension"] = name
        rows.append(part)
    return pd.concat(rows, ignore_index=True)[[key, "dimension", "value"]]
