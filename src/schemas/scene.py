"""Production script schemas produced by the Script Explainer."""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Scene(BaseModel):
    """One narrated beat of the production script.

    ``panel_indices`` are 0-based indices into the global page sequence once
    the orchestrator has processed the batch that produced the scene.
    """

    id: int = Field(..., ge=1, description="1-based sequential beat identifier")
    title: str = Field(..., description="Action-oriented beat title")
    pages_label: str = Field(
        default="Active Panels",
        alias="pagesLabel",
        description="Human-readable list of panels active during the beat"
    )
    panel_indices: List[int] = Field(
        default_factory=list,
        alias="panelIndices",
        description="0-based indices of the panels narrated by this beat"
    )
    duration_label: str = Field(
        default="15 sec",
        alias="durationLabel",
        description="Free-form narration duration, e.g. '15 sec'"
    )
    voice_over: str = Field(
        default="",
        alias="voiceOver",
        description="Narration body"
    )

    @field_validator('panel_indices')
    @classmethod
    def validate_panel_indices(cls, v: List[int]) -> List[int]:
        """Panel indices are never negative."""
        if any(index < 0 for index in v):
            raise ValueError(f"panel_indices cannot contain negative values, got {v}")
        return v

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "The Silent Rooftop",
                "pagesLabel": "Panels 1, 2",
                "panelIndices": [0, 1],
                "durationLabel": "18 sec",
                "voiceOver": "Raat gehri thi..."
            }
        }
    )


class ProductionScript(BaseModel):
    """Complete explainer result for one run."""

    scenes: List[Scene] = Field(default_factory=list, description="Globally indexed beats in order")
    summary: str = Field(default="", description="Story context after the last batch")
    page_count: int = Field(default=0, ge=0, description="Number of pages narrated")

    @field_validator('scenes')
    @classmethod
    def validate_sequential_ids(cls, v: List[Scene]) -> List[Scene]:
        """Scene ids must run 1..N without gaps or repeats."""
        ids = [scene.id for scene in v]
        if ids != list(range(1, len(v) + 1)):
            raise ValueError(f"scene ids must be sequential starting at 1, got {ids}")
        return v

    @property
    def total_panels_referenced(self) -> int:
        return len({index for scene in self.scenes for index in scene.panel_indices})
