from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .config import ID_COLUMN

PID_KEYS = ["participant_id", "participantId", "participant_code", "participantCode", "pid", "id", "code"]
TOPIC_ID_KEYS = ["topic_id", "topicId", "topic", "id"]
LABEL_KEYS = ["label", "text", "description", "topic_label"]
SHORT_LABEL_KEYS = ["short_label", "shortLabel", "short", "short_text"]

PathLike = Union[str, Path]


def _find_first(columns: List[str], keys: List[str]) -> Optional[str]:
    for k in keys:
        if k in columns:
            return k
    return None


def _require_file(path: PathLike) -> Path:
    in_path = Path(path)
    if not in_path.exists():
        raise FileNotFoundError(f"Input not found: {in_path}")
    return in_path


def load_topics(path: PathLike) -> pd.DataFrame:
    in_path = _require_file(path)
    raw = pd.read_csv(in_path)
    return normalize_topics(raw, source=str(in_path))


def normalize_topics(raw: pd.DataFrame, source: str = "topic lookup") -> pd.DataFrame:
    columns = [str(c) for c in raw.columns]
    id_col = _find_first(columns, TOPIC_ID_KEYS)
    if id_col is None:
        raise ValueError(f"{source}: no topic identifier column (tried {TOPIC_ID_KEYS}).")
    label_col = _find_first(columns, LABEL_KEYS)
    short_col = _find_first(columns, SHORT_LABEL_KEYS)

    topics = pd.DataFrame({
        "topic_id": pd.to_numeric(raw[id_col], errors="coerce"),
        "label": raw[label_col] if label_col else None,
        "short_label": raw[short_col] if short_col else None,
    })
    topics = topics.dropna(subset=["topic_id"])
    topics["topic_id"] = topics["topic_id"].astype(int)
    if topics["topic_id"].duplicated().any():
        dupes = sorted(topics.loc[topics["topic_id"].duplicated(), "topic_id"].unique().tolist())
        raise ValueError(f"{source}: duplicate topic ids {dupes}.")
    return topics.sort_values("topic_id").reset_index(drop=True)


def _records_from_json(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        for key in ("data", "records", "rows"):
            if key in data and isinstance(data[key], list):
                data = data[key]
                break
    if not isinstance(data, list):
        raise ValueError("Input JSON must be a list of records.")
    return [rec for rec in data if isinstance(rec, dict)]


def load_responses(path: PathLike, id_column: str = ID_COLUMN) -> pd.DataFrame:
    in_path = _require_file(path)
    suffix = in_path.suffix.lower()
    if suffix in (".csv", ".txt", ".tsv"):
        sep = "\t" if suffix == ".tsv" else ","
        header = [str(c) for c in pd.read_csv(in_path, sep=sep, nrows=0).columns]
        # ids like "007" must stay strings
        pid_col = id_column if id_column in header else _find_first(header, PID_KEYS)
        raw = pd.read_csv(in_path, sep=sep, dtype={pid_col: str} if pid_col else None)
    elif suffix == ".json":
        raw = pd.DataFrame(_records_from_json(json.loads(in_path.read_text())))
    elif suffix in (".pkl", ".pickle"):
        raw = pd.read_pickle(in_path)
        if not isinstance(raw, pd.DataFrame):
            raise ValueError(f"{in_path}: pickle does not contain a DataFrame.")
    else:
        raise ValueError(f"Unsupported response format: {in_path.suffix}")
    return normalize_responses(raw, id_column=id_column, source=str(in_path))


def normalize_responses(raw: pd.DataFrame, id_column: str = ID_COLUMN, source: str = "responses") -> pd.DataFrame:
    columns = [str(c) for c in raw.columns]
    pid_col = id_column if id_column in columns else _find_first(columns, PID_KEYS)
    if pid_col is None:
        raise ValueError(f"{source}: no participant identifier column (tried {[id_column] + PID_KEYS}).")
    df = raw.copy()
    df.columns = columns
    if pid_col != id_column:
        df = df.rename(columns={pid_col: id_column})
    df = df[df[id_column].notna()].copy()
    df[id_column] = df[id_column].astype(str)
    dupes = df.loc[df[id_column].duplicated(), id_column].unique().tolist()
    if dupes:
        raise ValueError(f"{source}: duplicate participant ids {sorted(dupes)}.")
    ordered = [id_column] + [c for c in df.columns if c != id_column]
    return df[ordered].reset_index(drop=True)
