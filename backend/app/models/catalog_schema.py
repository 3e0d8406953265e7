from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ArchetypeId(str, Enum):
    SLIDING = "sliding"
    CASEMENT = "casement"
    BAY = "bay"
    AWNING = "awning"
    FIXED = "fixed"
    PICTURE = "picture"
    DOUBLE_HUNG = "double-hung"
    SINGLE_HUNG = "single-hung"
    PIVOT = "pivot"


class PanelRole(str, Enum):
    FIXED = "Fixed"
    SLIDING = "Sliding"
    CASEMENT = "Casement"
    AWNING = "Awning"
    PICTURE = "Picture"
    TILT_IN = "Tilt-In"
    SPLIT = "Split"
    PIVOT = "Pivot"


class WindowArchetype(BaseModel):
    """
    One of the nine fixed window categories.
    Enforces a positive per-sq-ft base rate; immutable once defined.
    """
    model_config = ConfigDict(frozen=True)

    id: ArchetypeId = Field(..., description="Stable identifier, e.g. 'double-hung'")
    name: str = Field(..., description="Display name, e.g. 'Double Hung Windows'")
    description: str = ""
    base_rate: float = Field(..., gt=0, description="INR per sq ft before multipliers")


class ConfigurationPattern(BaseModel):
    """
    Named, ordered sequence of panel roles valid for one archetype class and panel count.
    Catalog key: (archetype_class, panel_count, pattern_id).
    """
    model_config = ConfigDict(frozen=True)

    archetype_class: ArchetypeId
    panel_count: int = Field(..., ge=1)
    pattern_id: str
    name: str
    roles: Tuple[PanelRole, ...]

    @model_validator(mode="after")
    def _roles_match_panel_count(self):
        if len(self.roles) != self.panel_count:
            raise ValueError(
                f"pattern {self.pattern_id!r} has {len(self.roles)} roles "
                f"for panel_count={self.panel_count}"
            )
        return self
