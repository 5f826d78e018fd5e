"""Project workflow router."""

from typing import Any

from fastapi import APIRouter, status

from ...models import dump_artifact
from ..dependencies import WorkflowDep
from ..models.requests import ApproveRequest, CreateProjectRequest

router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
def list_projects(workflow: WorkflowDep) -> list[dict[str, Any]]:
    """List all projects."""
    return [p.model_dump(mode="json") for p in workflow.list_projects()]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(request: CreateProjectRequest, workflow: WorkflowDep) -> dict[str, Any]:
    """Create a new project in draft."""
    project = workflow.create_project(
        request.topic,
        request.language,
        request.duration,
        is_premium=request.is_premium,
    )
    return project.model_dump(mode="json")


@router.get("/{project_id}")
def get_project(project_id: str, workflow: WorkflowDep) -> dict[str, Any]:
    """Project record with the current version of every stage artifact."""
    return workflow.describe(project_id)


@router.get("/{project_id}/{stage}")
def get_artifact(project_id: str, stage: str, workflow: WorkflowDep) -> dict[str, Any] | None:
    """Current artifact of one stage (null when it has none)."""
    artifact = workflow.get_artifact(project_id, stage)
    return dump_artifact(artifact) if artifact is not None else None


@router.post("/{project_id}/{stage}/generate")
async def generate_stage(project_id: str, stage: str, workflow: WorkflowDep) -> dict[str, Any]:
    """Generate (or regenerate) a stage."""
    project = await workflow.generate(project_id, stage)
    return project.model_dump(mode="json")


@router.post("/{project_id}/{stage}/approve")
def approve_stage(
    project_id: str,
    stage: str,
    request: ApproveRequest,
    workflow: WorkflowDep,
) -> dict[str, Any]:
    """Approve or reject a reviewed stage."""
    project = workflow.approve(
        project_id,
        stage,
        approved=request.approved,
        revisions=request.revisions,
        notes=request.notes,
    )
    return project.model_dump(mode="json")


@router.post("/{project_id}/render")
async def render_video(project_id: str, workflow: WorkflowDep) -> dict[str, Any]:
    """Render the final video."""
    video = await workflow.render(project_id)
    return dump_artifact(video)
