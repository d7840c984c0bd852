from pydantic import BaseModel, ConfigDict, computed_field
from typing import Optional
from enum import Enum


class TrimField(str, Enum):
    START = "start"
    END = "end"


class Direction(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class ClipRecord(BaseModel):
    """A trimmed reference to a source media asset on the timeline.

    Records are immutable; the timeline controller replaces them with
    updated copies.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    source_url: str
    source_duration: float  # Full length of the source media (seconds)
    trim_start: float = 0.0  # Start of the used window in the source (seconds)
    trim_end: float  # End of the used window in the source (seconds)

    @computed_field
    @property
    def clip_duration(self) -> float:
        return self.trim_end - self.trim_start


class ClipAppend(BaseModel):
    """Request to place an asset on the timeline."""
    source_url: str
    source_duration: float
    default_duration: Optional[float] = None  # Render duration used to produce the asset


class TrimUpdate(BaseModel):
    field: TrimField
    value: float


class MoveRequest(BaseModel):
    direction: Direction
