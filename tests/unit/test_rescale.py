from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from mapping_acceptance.errors import ConfigError, DomainError
from mapping_acceptance.transform import rescale, rescale_series

pytestmark = pytest.mark.unit


def test_endpoints_and_midpoint() -> None:
    assert rescale(1) == 1.0
    assert rescale(7) == -1.0
    assert rescale(4) == 0.0


@pytest.mark.parametrize("raw", [1, 2, 3, 4, 5, 6, 7])
def test_invert_negates(raw: int) -> None:
    assert rescale(raw, invert=True) == pytest.approx(-rescale(raw, invert=False))


def test_matches_seven_point_formula() -> None:
    for raw in range(1, 8):
        assert rescale(raw) == pytest.approx(-(((raw - 1) / 3) - 1))


@pytest.mark.parametrize("raw", [0, 8, -3, 7.5, 0.99])
def test_out_of_range_raises(raw: float) -> None:
    with pytest.raises(DomainError):
        rescale(raw)


def test_missing_propagates() -> None:
    assert math.isnan(rescale(None))
    assert math.isnan(rescale(np.nan))
    assert math.isnan(rescale(None, invert=True))


def test_other_scale_bounds() -> None:
    assert rescale(1, scale_min=1, scale_max=5) == 1.0
    assert rescale(3, scale_min=1, scale_max=5) == 0.0
    assert rescale(5, scale_min=1, scale_max=5) == -1.0
    with pytest.raises(DomainError):
        rescale(6, scale_min=1, scale_max=5)


def test_degenerate_scale_is_config_error() -> None:
    with pytest.raises(ConfigError):
        rescale(3, scale_min=5, scale_max=5)


def test_series_names_offending_column() -> None:
    with pytest.raises(DomainError, match="a1_matrix_1"):
        rescale_series(pd.Series([1, 9, 4], name="a1_matrix_1"))


def test_series_keeps_missing() -> None:
    out = rescale_series(pd.Series([1, None, 7], name="a1_matrix_1"), invert=True)
    assert out.iloc[0] == -1.0
    assert np.isnan(out.iloc[1])
    assert out.iloc[2] == 1.0
