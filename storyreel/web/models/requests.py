"""Pydantic request models for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class CreateProjectRequest(BaseModel):
    """Request to create a new project.

    Language and duration are validated by the workflow so that every
    surface reports them with the same error.
    """

    topic: str = Field(..., max_length=500, description="Topic of the video")
    language: str = Field(..., description="Narration language (zh, en, fr)")
    duration: int = Field(..., description="Target duration in seconds (30, 60, 90)")
    is_premium: bool = Field(default=False)


class ApproveRequest(BaseModel):
    """Request to approve or reject a reviewed stage."""

    approved: bool = Field(..., description="False rejects the stage")
    revisions: list[dict[str, Any]] | None = Field(
        default=None,
        description="Scene revisions (script/storyboard) or asset prompts, applied on approval",
    )
    notes: str | None = Field(default=None, description="Revision notes kept for the next generate")
