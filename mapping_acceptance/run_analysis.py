#!/usr/bin/env python3
from __future__ import annotations

import argparse
import hashlib
import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd

from .aggregate import topic_factor, user_factor
from .config import COLUMN_BLOCK, COLUMN_PREFIX, ID_COLUMN, SCALE_MAX, SCALE_MIN, dimension_names, load_study_config
from .export import save_figure
from .io_ingest import load_responses, load_topics
from .plots_topics import plot_topic_map
from .schemas import StudyConfig
from .tables import make_statistics_tables, make_topic_table, make_user_table
from .transform import (
    build_missingness_report,
    detect_non_numeric,
    matched_columns,
    split_covariates,
    to_long,
)


def compute_file_hash(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def git_commit_hash(cwd: Path) -> str:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=cwd,
            check=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError:
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout.decode("utf-8").strip()


def analyse(
    wide_df: pd.DataFrame,
    topics: Optional[pd.DataFrame] = None,
    study: Optional[StudyConfig] = None,
) -> Dict[str, pd.DataFrame]:
    dims = study.dimension_table() if study else None
    id_column = study.id_column if study else ID_COLUMN
    prefix = study.column_prefix if study else COLUMN_PREFIX
    block = study.column_block if study else COLUMN_BLOCK
    scale_min = study.scale_min if study else SCALE_MIN
    scale_max = study.scale_max if study else SCALE_MAX

    long_df = to_long(wide_df, dims, id_column=id_column, prefix=prefix, block=block,
                      scale_min=scale_min, scale_max=scale_max)
    if id_column != ID_COLUMN:
        long_df = long_df.rename(columns={id_column: ID_COLUMN})
    covariates = split_covariates(wide_df, id_column=id_column, prefix=prefix, block=block)
    covariates = covariates.rename(columns={id_column: ID_COLUMN})

    return {
        "long": long_df,
        "user": user_factor(long_df, covariates, dims),
        "topic": topic_factor(long_df, topics, dims),
        "missingness": build_missingness_report(long_df),
    }


def collect_warnings(
    wide_df: pd.DataFrame,
    results: Dict[str, pd.DataFrame],
    topics: Optional[pd.DataFrame],
    study: Optional[StudyConfig] = None,
) -> List[str]:
    id_column = study.id_column if study else ID_COLUMN
    prefix = study.column_prefix if study else COLUMN_PREFIX
    block = study.column_block if study else COLUMN_BLOCK

    warnings: List[str] = []
    if not matched_columns(wide_df.columns, prefix, block):
        warnings.append(f"No evaluation columns matching {prefix}<topic>_{block}_<dimension> found.")
    warnings.extend(detect_non_numeric(wide_df, id_column=id_column, prefix=prefix, block=block))

    missing_df = results["missingness"]
    missing_total = int(missing_df["n_missing"].sum()) if not missing_df.empty else 0
    if missing_total:
        warnings.append(f"Missingness detected: {missing_total} missing values.")

    topic_df = results["topic"]
    if topics is not None:
        unlabeled = topic_df.loc[topic_df["label"].isna(), "topic_id"].tolist()
        if unlabeled:
            warnings.append(f"Topics without label: {unlabeled}")
        unused = sorted(int(t) for t in set(topics["topic_id"]) - set(topic_df["topic_id"]))
        if unused:
            warnings.append(f"Labelled topics without responses: {unused}")
    return warnings


def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Analyse micro-scenario survey responses (user and topic factors).")
    ap.add_argument("--responses", required=True, help="Wide response table (CSV, JSON records or pickle).")
    ap.add_argument("--topics", default=None, help="Topic lookup CSV (topic_id, label, short_label).")
    ap.add_argument("--config", default=None, help="Study configuration JSON (dimensions, column scheme, scale).")
    ap.add_argument("--outdir", default="outputs", help="Output directory.")
    ap.add_argument("--title", default=None, help="Title of the topic map.")
    ap.add_argument("--no-png", dest="make_png", action="store_false", help="Skip PNG previews.")
    ap.set_defaults(make_png=True)
    args = ap.parse_args(argv)

    input_path = Path(args.responses).resolve()
    outdir = Path(args.outdir).resolve()
    figs_dir = outdir / "figures"
    tables_dir = outdir / "tables"
    figs_dir.mkdir(parents=True, exist_ok=True)
    tables_dir.mkdir(parents=True, exist_ok=True)

    study = load_study_config(args.config) if args.config else None
    dims = study.dimension_table() if study else None
    wide_df = load_responses(input_path, id_column=study.id_column if study else ID_COLUMN)
    topics = load_topics(args.topics) if args.topics else None

    results = analyse(wide_df, topics, study)
    print(f"Participants: {wide_df.shape[0]}  Long rows: {results['long'].shape[0]}  "
          f"Topics: {results['topic'].shape[0]}")

    # --- audit outputs
    results["long"].to_csv(tables_dir / "Audit_long.csv", index=False)
    results["missingness"].to_csv(tables_dir / "Audit_missingness_report.csv", index=False)

    # --- tables
    make_user_table(results["user"], str(tables_dir))
    make_topic_table(results["topic"], str(tables_dir), dims)
    make_statistics_tables(results["user"], results["topic"], str(tables_dir), dims)

    # --- figure
    figure_paths: List[str] = []
    if len(dimension_names(dims)) >= 2 and not results["topic"].empty:
        fig = plot_topic_map(results["topic"], dimensions=dims, title=args.title)
        figure_paths = save_figure(fig, str(figs_dir / "TopicMap"), size_key=None, make_png=args.make_png)
        plt.close(fig)

    # --- logging
    warnings = collect_warnings(wide_df, results, topics, study)
    input_hash = compute_file_hash(input_path)
    log_lines = [
        f"Run timestamp: {datetime.now(timezone.utc).isoformat()}",
        f"Input: {input_path}",
        f"Topics: {Path(args.topics).resolve() if args.topics else '(none)'}",
        f"Participants: {wide_df.shape[0]}",
        f"Long rows: {results['long'].shape[0]}",
        f"Topics analysed: {results['topic'].shape[0]}",
        f"Input hash: {input_hash}",
    ]
    git_hash = git_commit_hash(Path.cwd())
    if git_hash:
        log_lines.append(f"Git commit: {git_hash}")
    if warnings:
        log_lines.append("Warnings:")
        log_lines.extend([f"- {w}" for w in warnings])
    (outdir / "log.txt").write_text("\n".join(log_lines))

    summary = {
        "participants": int(wide_df.shape[0]),
        "topics": int(results["topic"].shape[0]),
        "observations": int(results["long"].shape[0]),
        "missing": int(results["missingness"]["n_missing"].sum()) if not results["missingness"].empty else 0,
        "figures": figure_paths,
        "input_hash": input_hash,
        "git_commit": git_hash,
    }
    (outdir / "summary_numbers.json").write_text(json.dumps(summary, indent=2))
    for w in warnings:
        print(f"WARNING: {w}")


if __name__ == "__main__":
    main()
