from __future__ import annotations

from typing import Optional

import numpy as np


class MappingAcceptanceError(Exception):
    """Base class for pipeline failures that abort a run."""


class DomainError(MappingAcceptanceError, ValueError):
    """A raw response lies outside the declared scale bounds."""


class ConfigError(MappingAcceptanceError, ValueError):
    """Dimension or study configuration is missing, malformed or inconsistent."""


class ConstructionError(MappingAcceptanceError, RuntimeError):
    """No valid correlation matrix could be built within the attempt limit."""

    def __init__(
        self,
        message: str,
        attempts: int,
        matrix: Optional[np.ndarray] = None,
        min_eigenvalue: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.matrix = matrix
        self.min_eigenvalue = min_eigenvalue


class NumericError(MappingAcceptanceError, ArithmeticError):
    """Sampling failed on numerical grounds (e.g. no Cholesky factor)."""
