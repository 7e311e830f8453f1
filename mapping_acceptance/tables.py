from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from scipy import stats

from .config import ID_COLUMN, DimensionTable, dimension_label, dimension_names
from .export import save_figure

MIN_PAIRS = 3


def _format_label(label: str) -> str:
    text = label.replace("_", " ").strip()
    if not text:
        return label
    return text[:1].upper() + text[1:]


def _apply_column_labels(df: pd.DataFrame) -> pd.DataFrame:
    return df.rename(columns={c: _format_label(str(c)) for c in df.columns})


def _mean_sd(mean: float, sd: float) -> str:
    if pd.isna(mean):
        return "NA"
    if pd.isna(sd):
        return f"{mean:.2f}"
    return f"{mean:.2f} ({sd:.2f})"


def _wrap_header(text: str) -> str:
    if " (" in text:
        return text.replace(" (", "\n(")
    if " " in text and len(text) > 12:
        return text.replace(" ", "\n")
    return text


def _render_table_figure(df: pd.DataFrame, out_base: str, font_size: int = 9) -> List[str]:
    headers = [_wrap_header(str(c)) for c in df.columns]
    cells = [[str(v) for v in row] for row in df.itertuples(index=False)] or [[""] * len(headers)]
    widths = [
        max(len(text) for text in headers[i].split("\n") + [row[i] for row in cells]) + 2
        for i in range(len(headers))
    ]
    header_lines = max(h.count("\n") + 1 for h in headers)

    fig, ax = plt.subplots(figsize=(6.9, max(2.0, 0.28 * (len(cells) + header_lines + 1))))
    ax.axis("off")
    table = ax.table(
        cellText=cells,
        colLabels=headers,
        colWidths=[w / sum(widths) for w in widths],
        cellLoc="left",
        colLoc="left",
        loc="upper center",
        edges="horizontal",
    )
    table.auto_set_font_size(False)
    table.set_fontsize(font_size)
    for (row, _), cell in table.get_celld().items():
        cell.get_text().set_fontfamily("serif")
        if row == 0:
            cell.get_text().set_fontweight("bold")
            cell.set_height(cell.get_height() * header_lines)

    paths = save_figure(fig, out_base, size_key=None)
    plt.close(fig)
    return paths


def topic_ranking(topic_df: pd.DataFrame, dimensions: Optional[DimensionTable] = None) -> pd.DataFrame:
    names = dimension_names(dimensions)
    rank_by = f"mean_{names[-1]}"
    ranked = topic_df.sort_values([rank_by, "topic_id"], ascending=[False, True], na_position="last")
    table = pd.DataFrame({
        "topic": ranked["topic_id"].astype(int).to_numpy(),
        "label": [
            lbl if lbl is not None and not pd.isna(lbl) else ""
            for lbl in ranked.get("label", pd.Series([None] * len(ranked)))
        ],
    })
    for name in names:
        heading = f"{dimension_label(name, dimensions)} (SD)"
        table[heading] = [
            _mean_sd(m, s) for m, s in zip(ranked[f"mean_{name}"], ranked[f"sd_{name}"])
        ]
    return table.reset_index(drop=True)


def make_topic_table(topic_df: pd.DataFrame, outdir: str, dimensions: Optional[DimensionTable] = None) -> str:
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)
    csv_path = out / "TopicFactor.csv"
    topic_df.to_csv(csv_path, index=False)
    if topic_df.empty:
        return str(csv_path)
    ranking = _apply_column_labels(topic_ranking(topic_df, dimensions))
    ranking.to_csv(out / "TopicRanking.csv", index=False)
    _render_table_figure(ranking, str(out / "TopicRanking"))
    return str(csv_path)


def make_user_table(user_df: pd.DataFrame, outdir: str) -> str:
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)
    csv_path = out / "UserFactor.csv"
    user_df.to_csv(csv_path, index=False)
    return str(csv_path)


def describe_user_factor(user_df: pd.DataFrame, dimensions: Optional[DimensionTable] = None) -> pd.DataFrame:
    rows = []
    for name in dimension_names(dimensions):
        vals = user_df[f"mean_{name}"].dropna() if f"mean_{name}" in user_df.columns else pd.Series(dtype=float)
        rows.append({
            "dimension": name,
            "n": int(vals.shape[0]),
            "mean": float(vals.mean()) if not vals.empty else None,
            "sd": float(vals.std(ddof=1)) if vals.shape[0] > 1 else None,
            "min": float(vals.min()) if not vals.empty else None,
            "max": float(vals.max()) if not vals.empty else None,
        })
    return pd.DataFrame(rows)


def topic_dimension_relationship(
    topic_df: pd.DataFrame,
    x_dim: Optional[str] = None,
    y_dim: Optional[str] = None,
    dimensions: Optional[DimensionTable] = None,
) -> Dict[str, object]:
    names = dimension_names(dimensions)
    x_dim = x_dim or names[0]
    y_dim = y_dim or names[1]
    data = topic_df[[f"mean_{x_dim}", f"mean_{y_dim}"]].dropna()
    result: Dict[str, object] = {"x": x_dim, "y": y_dim, "n": int(data.shape[0])}
    if data.shape[0] < MIN_PAIRS or data.iloc[:, 0].nunique() < 2:
        result.update({"slope": np.nan, "intercept": np.nan, "r": np.nan, "r_squared": np.nan, "p": np.nan})
        return result
    fit = stats.linregress(data.iloc[:, 0].to_numpy(), data.iloc[:, 1].to_numpy())
    result.update({
        "slope": float(fit.slope),
        "intercept": float(fit.intercept),
        "r": float(fit.rvalue),
        "r_squared": float(fit.rvalue ** 2),
        "p": float(fit.pvalue),
    })
    return result


def numeric_covariates(user_df: pd.DataFrame, dimensions: Optional[DimensionTable] = None) -> List[str]:
    stat_cols = {f"{s}_{n}" for n in dimension_names(dimensions) for s in ("mean", "sd")}
    return [
        c for c in user_df.columns
        if c != ID_COLUMN and c not in stat_cols and pd.api.types.is_numeric_dtype(user_df[c])
    ]


def covariate_correlations(
    user_df: pd.DataFrame,
    covariates: Optional[Sequence[str]] = None,
    dimensions: Optional[DimensionTable] = None,
) -> pd.DataFrame:
    covariates = list(covariates) if covariates is not None else numeric_covariates(user_df, dimensions)
    rows = []
    for cov in covariates:
        for name in dimension_names(dimensions):
            pair = user_df[[cov, f"mean_{name}"]].apply(pd.to_numeric, errors="coerce").dropna()
            r, p = np.nan, np.nan
            if pair.shape[0] >= MIN_PAIRS and pair[cov].nunique() > 1 and pair[f"mean_{name}"].nunique() > 1:
                res = stats.pearsonr(pair[cov].to_numpy(), pair[f"mean_{name}"].to_numpy())
                r, p = float(res[0]), float(res[1])
            rows.append({"covariate": cov, "dimension": name, "n": int(pair.shape[0]), "r": r, "p": p})
    return pd.DataFrame(rows, columns=["covariate", "dimension", "n", "r", "p"])


def make_statistics_tables(
    user_df: pd.DataFrame,
    topic_df: pd.DataFrame,
    outdir: str,
    dimensions: Optional[DimensionTable] = None,
) -> Dict[str, str]:
    out = Path(outdir)
    out.mkdir(parents=True, exist_ok=True)
    paths = {
        "user_descriptives": str(out / "UserFactor_descriptives.csv"),
        "covariate_correlations": str(out / "Covariate_correlations.csv"),
        "topic_relationship": str(out / "Topic_relationship.csv"),
    }
    describe_user_factor(user_df, dimensions).to_csv(paths["user_descriptives"], index=False)
    covariate_correlations(user_df, dimensions=dimensions).to_csv(paths["covariate_correlations"], index=False)
    if len(dimension_names(dimensions)) >= 2 and not topic_df.empty:
        pd.DataFrame([topic_dimension_relationship(topic_df, dimensions=dimensions)]).to_csv(
            paths["topic_relationship"], index=False
        )
    else:
        del paths["topic_relationship"]
    return paths
