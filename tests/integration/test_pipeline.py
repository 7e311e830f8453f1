from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from mapping_acceptance import make_demo_data, run_analysis
from mapping_acceptance.run_analysis import analyse, collect_warnings
from mapping_acceptance.synthetic import generate_dataset, generate_topics

pytestmark = pytest.mark.integration


def test_synthetic_data_feeds_analysis() -> None:
    wide, _ = generate_dataset(n_topics=5, n_participants=40, seed=3)
    results = analyse(wide, generate_topics(5))
    assert results["long"].shape[0] == 40 * 10
    assert results["user"].shape[0] == 40
    assert "tech_commitment" in results["user"].columns
    topic_df = results["topic"]
    assert topic_df["topic_id"].tolist() == [1, 2, 3, 4, 5]
    assert topic_df["label"].notna().all()
    for col in ("mean_risk", "mean_utility"):
        assert topic_df[col].between(-1, 1).all()


def test_warnings_for_lookup_mismatch(wide_responses: pd.DataFrame, topics: pd.DataFrame) -> None:
    results = analyse(wide_responses, topics)
    warnings = collect_warnings(wide_responses, results, topics)
    assert any("Topics without label: [2]" in w for w in warnings)
    assert any("without responses: [3]" in w for w in warnings)
    assert any("Missingness detected: 1" in w for w in warnings)


def test_cli_end_to_end(tmp_path: Path) -> None:
    demo_dir = tmp_path / "demo"
    make_demo_data.main([
        "--outdir", str(demo_dir),
        "--topics", "6",
        "--participants", "30",
        "--seed", "42",
        "--write-topics",
    ])
    for name in ("demo_responses.csv", "demo_responses.pkl", "demo_topics.csv", "correlation_matrix.csv", "log.txt"):
        assert (demo_dir / name).exists()
    corr = pd.read_csv(demo_dir / "correlation_matrix.csv", index_col=0).to_numpy()
    assert corr.shape == (12, 12)
    assert np.allclose(corr, corr.T)

    out_dir = tmp_path / "out"
    run_analysis.main([
        "--responses", str(demo_dir / "demo_responses.csv"),
        "--topics", str(demo_dir / "demo_topics.csv"),
        "--outdir", str(out_dir),
        "--no-png",
    ])
    tables = out_dir / "tables"
    for name in (
        "UserFactor.csv",
        "TopicFactor.csv",
        "TopicRanking.csv",
        "Audit_long.csv",
        "Audit_missingness_report.csv",
        "Covariate_correlations.csv",
        "Topic_relationship.csv",
        "UserFactor_descriptives.csv",
    ):
        assert (tables / name).exists(), name
    assert (out_dir / "figures" / "TopicMap.svg").exists()
    assert (out_dir / "figures" / "TopicMap.pdf").exists()
    assert not (out_dir / "figures" / "TopicMap.png").exists()

    topic_df = pd.read_csv(tables / "TopicFactor.csv")
    assert len(topic_df) == 6
    user_df = pd.read_csv(tables / "UserFactor.csv")
    assert len(user_df) == 30

    summary = json.loads((out_dir / "summary_numbers.json").read_text())
    assert summary["participants"] == 30
    assert summary["topics"] == 6
    assert summary["observations"] == 30 * 12
    assert "Input hash:" in (out_dir / "log.txt").read_text()


def test_cli_with_study_config(tmp_path: Path) -> None:
    responses = tmp_path / "responses.csv"
    responses.write_text(
        "respondent,q1_grid_1,q1_grid_2,q2_grid_1,q2_grid_2\n"
        "r1,1,5,3,3\n"
        "r2,5,1,3,3\n"
    )
    config = tmp_path / "study.json"
    config.write_text(json.dumps({
        "dimensions": [{"name": "fear", "inverted": True}, {"name": "benefit"}],
        "id_column": "respondent",
        "column_prefix": "q",
        "column_block": "grid",
        "scale_max": 5,
    }))
    out_dir = tmp_path / "out"
    run_analysis.main(["--responses", str(responses), "--config", str(config), "--outdir", str(out_dir), "--no-png"])
    topic_df = pd.read_csv(out_dir / "tables" / "TopicFactor.csv").set_index("topic_id")
    assert topic_df.loc[1, "mean_fear"] == pytest.approx(0.0)
    assert topic_df.loc[2, "mean_benefit"] == pytest.approx(0.0)
    assert topic_df.loc[2, "sd_benefit"] == pytest.approx(0.0)
    user_df = pd.read_csv(out_dir / "tables" / "UserFactor.csv", dtype={"participant_id": str})
    assert user_df["participant_id"].tolist() == ["r1", "r2"]
    assert user_df.loc[0, "mean_fear"] == pytest.approx(-0.5)
