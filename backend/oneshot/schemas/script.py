"""Pydantic schemas for the generated plan-sequence script.

The script is persisted as script.json with camelCase keys, which is also the
shape returned by GET /api/projects/{id}/script.
"""

from pydantic import BaseModel, ConfigDict, Field

MIN_SEGMENTS = 3
MAX_SEGMENTS = 6


class SegmentSchema(BaseModel):
    """One generated clip between two keyframes."""

    script: str = Field(description="What happens in this segment of the long take")


class Script(BaseModel):
    """Complete script for a plan-sequence.

    For N segments there are N+1 keyframes: keyframes[0] is the opening,
    keyframes[N] the ending and keyframes[i] for 0 < i < N the transition
    between segment i-1 and segment i.
    """

    model_config = ConfigDict(populate_by_name=True)

    main_character_description: str = Field(
        alias="mainCharacterDescription",
        description="Detailed physical description of the main character for an AI model "
        "to generate. It will be used as reference image for generating subsequent images. "
        "Make sure the character is shown full-body (not a close-up)",
    )
    keyframes: list[str] = Field(
        description="N+1 vivid visual descriptions of keyframe images. keyframes[0] is the "
        "opening, keyframes[N] is the ending, and keyframes[i] for 0 < i < N are the "
        "transition points between segments."
    )
    segments: list[SegmentSchema]

    @property
    def segment_count(self) -> int:
        return len(self.segments)

    def to_json_dict(self) -> dict:
        """Dump with the persisted camelCase keys."""
        return self.model_dump(by_alias=True)
