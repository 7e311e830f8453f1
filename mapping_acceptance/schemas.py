from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Optional


class DimensionSpec(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    label: Optional[str] = None
    inverted: bool = False


class StudyConfig(BaseModel):
    dimensions: List[DimensionSpec] = Field(min_length=1)
    id_column: str = Field(default="participant_id", min_length=1)
    column_prefix: str = Field(default="a", min_length=1)
    column_block: str = Field(default="matrix", min_length=1)
    scale_min: int = 1
    scale_max: int = 7

    @model_validator(mode="after")
    def _check_consistency(self) -> "StudyConfig":
        names = [d.name for d in self.dimensions]
        if len(set(names)) != len(names):
            raise ValueError(f"dimension names must be unique, got {names}")
        if self.scale_min >= self.scale_max:
            raise ValueError("scale_min must be lower than scale_max")
        return self

    def dimension_table(self) -> Dict[str, Dict[str, object]]:
        return {
            d.name: {"label": d.label or d.name, "inverted": d.inverted}
            for d in self.dimensions
        }
