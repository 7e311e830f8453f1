from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set, Tuple, Union

from pydantic import ValidationError

from .errors import ConfigError
from .schemas import StudyConfig

ID_COLUMN = "participant_id"

# Evaluation columns look like a12_matrix_2 (topic 12, dimension 2).
COLUMN_PREFIX = "a"
COLUMN_BLOCK = "matrix"

LIKERT_SCALE: List[int] = [1, 2, 3, 4, 5, 6, 7]
SCALE_MIN = LIKERT_SCALE[0]
SCALE_MAX = LIKERT_SCALE[-1]

# Positional: the first entry is dimension_id 1, the second dimension_id 2, ...
# "inverted" flips the sign after rescaling so that every dimension reads "more = better".
DIMENSIONS: Dict[str, Dict[str, object]] = {
    "risk": {"label": "Perceived risk", "inverted": True},
    "utility": {"label": "Perceived utility", "inverted": False},
}

# Side of each axis a quadrant lies on; +1 is the "more = better" end after rescaling.
QUADRANT_SIDES: Dict[str, Tuple[int, int]] = {
    "upper_left": (-1, 1),
    "upper_right": (1, 1),
    "lower_left": (-1, -1),
    "lower_right": (1, -1),
}

SYNTHETIC_DEFAULTS: Dict[str, object] = {
    "n_topics": 12,
    "n_participants": 100,
    "within_block_ranges": ((0.3, 0.5), (0.3, 0.5)),
    "cross_block_constant": -0.3,
    "max_attempts": 25,
    "target_sd": 0.4,
    "mean_range": (-0.6, 0.6),
    "covariate_name": "tech_commitment",
    "covariate_columns": ("a1_matrix_1", "a1_matrix_2"),
    "covariate_r": 0.3,
    "covariate_mean": 3.5,
    "covariate_sd": 1.0,
}

DimensionTable = Mapping[str, Mapping[str, object]]


def dimension_names(dimensions: Optional[DimensionTable] = None) -> List[str]:
    dims = DIMENSIONS if dimensions is None else dimensions
    names = [str(name) for name in dims.keys()]
    if not names:
        raise ConfigError("Dimension configuration is empty.")
    if len(set(names)) != len(names):
        raise ConfigError(f"Duplicate dimension names: {names}")
    for name, meta in dims.items():
        if not isinstance(meta, Mapping):
            raise ConfigError(f"Dimension {name!r} must map to a settings dict, got {type(meta).__name__}.")
    return names


def inverted_dimensions(dimensions: Optional[DimensionTable] = None) -> Set[str]:
    dims = DIMENSIONS if dimensions is None else dimensions
    dimension_names(dims)
    return {str(name) for name, meta in dims.items() if bool(meta.get("inverted", False))}


def dimension_label(name: str, dimensions: Optional[DimensionTable] = None) -> str:
    dims = DIMENSIONS if dimensions is None else dimensions
    meta = dims.get(name) or {}
    return str(meta.get("label") or name)


def dimension_for_id(dimension_id: int, dimensions: Optional[DimensionTable] = None) -> str:
    names = dimension_names(dimensions)
    if dimension_id < 1 or dimension_id > len(names):
        raise ConfigError(
            f"dimension_id {dimension_id} has no configured name (configured: {names})."
        )
    return names[dimension_id - 1]


def load_study_config(path: Union[str, Path]) -> StudyConfig:
    in_path = Path(path)
    try:
        data = json.loads(in_path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Study configuration {in_path} is not valid JSON: {exc}") from exc
    try:
        return StudyConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid study configuration {in_path}:\n{exc}") from exc


def scale_bounds(study: Optional[StudyConfig] = None) -> Tuple[int, int]:
    if study is None:
        return SCALE_MIN, SCALE_MAX
    return study.scale_min, study.scale_max
