from __future__ import annotations

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def wide_responses() -> pd.DataFrame:
    return pd.DataFrame({
        "participant_id": ["p1", "p2"],
        "age": [34, 51],
        "a1_matrix_1": [1, 7],
        "a1_matrix_2": [7, 4],
        "a2_matrix_1": [4, np.nan],
        "a2_matrix_2": [2, 6],
        "submitdate": ["2023-01-01", "2023-01-02"],
    })


@pytest.fixture
def topics() -> pd.DataFrame:
    return pd.DataFrame({
        "topic_id": [1, 3],
        "label": ["Autonomous driving", "Smart home"],
        "short_label": ["cars", "home"],
    })


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(20240611)
