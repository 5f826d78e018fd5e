"""
Artifact Store - Versioned storage for every stage artifact of a project.

Regeneration never deletes. Each generate writes a new version, then a
single index write repoints the stage's ``current`` pointer and clears the
pointers of every downstream stage. A crash before that write leaves the
old pointers (and the project status) exactly as they were.

Key concepts:
- Version: Immutable snapshot of a stage artifact (audit trail)
- Current: The one live version per stage, or none after invalidation
- Approved: Version accepted at a checkpoint
"""

import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal, Optional
from uuid import uuid4

from storyreel.errors import NotFoundError, ValidationError
from storyreel.models import STAGE_ORDER, Project, Stage


def _write_json_atomic(path: Path, data: dict) -> None:
    """Write JSON to a sibling temp file, then rename over ``path``."""
    tmp_path = path.with_name(f".{path.name}.{uuid4().hex[:6]}.tmp")
    with open(tmp_path, "w") as f:
        json.dump(data, f, indent=2)
    os.replace(tmp_path, path)


@dataclass
class ArtifactVersion:
    """
    A single stored version of a stage artifact.

    Versions are never mutated after creation except for approval.
    """

    id: str
    stage: Stage
    data: dict[str, Any]
    version: int = 1

    status: Literal["draft", "approved"] = "draft"

    created_at: datetime = field(default_factory=datetime.now)
    created_by: str = "unknown"
    approved_at: Optional[datetime] = None

    previous_version_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "stage": self.stage.value,
            "data": self.data,
            "version": self.version,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "created_by": self.created_by,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "previous_version_id": self.previous_version_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ArtifactVersion":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            stage=Stage(data["stage"]),
            data=data.get("data", {}),
            version=data.get("version", 1),
            status=data.get("status", "draft"),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else datetime.now(),
            created_by=data.get("created_by", "unknown"),
            approved_at=datetime.fromisoformat(data["approved_at"]) if data.get("approved_at") else None,
            previous_version_id=data.get("previous_version_id"),
        )


class ArtifactStore:
    """
    Versioned artifact store for one project.

    Features:
    - Create-then-swap regeneration with downstream invalidation
    - Version history per stage
    - Atomic JSON persistence of the index
    """

    def __init__(self, project_dir: Path | str):
        """
        Initialize the artifact store.

        Args:
            project_dir: Root directory for this project's artifacts.
        """
        self.project_dir = Path(project_dir)
        self.project_dir.mkdir(parents=True, exist_ok=True)

        self._versions: dict[str, ArtifactVersion] = {}
        self._current: dict[Stage, Optional[str]] = {stage: None for stage in STAGE_ORDER}
        self._index_path = self.project_dir / "artifact_index.json"

        self._load_index()

    def _load_index(self) -> None:
        """Load artifact index from disk."""
        if not self._index_path.exists():
            return
        with open(self._index_path) as f:
            data = json.load(f)
        for version_data in data.get("versions", []):
            version = ArtifactVersion.from_dict(version_data)
            self._versions[version.id] = version
        for stage_name, version_id in data.get("current", {}).items():
            self._current[Stage(stage_name)] = version_id

    def _save_index(self) -> None:
        """Persist versions and pointers in one write."""
        data = {
            "versions": [v.to_dict() for v in self._versions.values()],
            "current": {stage.value: vid for stage, vid in self._current.items()},
            "updated_at": datetime.now().isoformat(),
        }
        _write_json_atomic(self._index_path, data)

    def _next_version(self, stage: Stage) -> int:
        versions = [v.version for v in self._versions.values() if v.stage == stage]
        return max(versions, default=0) + 1

    def commit(
        self,
        stage: Stage,
        data: dict[str, Any],
        created_by: str = "unknown",
        invalidate_downstream: bool = True,
    ) -> ArtifactVersion:
        """
        Store a new version and make it current.

        Args:
            stage: Stage the artifact belongs to
            data: Structured data (JSON-serializable)
            created_by: Component that produced the artifact
            invalidate_downstream: Clear the current pointer of every later stage

        Returns:
            The new current version.
        """
        previous_id = self._current.get(stage)
        version = ArtifactVersion(
            id=f"{stage.value}_{uuid4().hex[:8]}",
            stage=stage,
            data=data,
            version=self._next_version(stage),
            created_by=created_by,
            previous_version_id=previous_id,
        )

        self._versions[version.id] = version
        self._current[stage] = version.id
        if invalidate_downstream:
            for later in STAGE_ORDER[STAGE_ORDER.index(stage) + 1:]:
                self._current[later] = None
        self._save_index()

        return version

    def revise(
        self,
        stage: Stage,
        data: dict[str, Any],
        updated_by: str = "user",
    ) -> ArtifactVersion:
        """
        Replace the current version's data with an edited copy.

        Downstream stages stay current; revisions are applied at approval,
        before anything downstream is generated from them.

        Raises:
            NotFoundError: If the stage has no current version.
        """
        if self.current(stage) is None:
            raise NotFoundError(f"No current {stage.value} to revise")
        return self.commit(stage, data, created_by=updated_by, invalidate_downstream=False)

    def approve(self, stage: Stage) -> ArtifactVersion:
        """Mark the current version of a stage as approved."""
        version = self.current(stage)
        if version is None:
            raise NotFoundError(f"No current {stage.value} to approve")
        if version.status != "approved":
            version.status = "approved"
            version.approved_at = datetime.now()
            self._save_index()
        return version

    def current(self, stage: Stage) -> Optional[ArtifactVersion]:
        """Get the live version of a stage, if any."""
        version_id = self._current.get(stage)
        if version_id is None:
            return None
        return self._versions.get(version_id)

    def get(self, version_id: str) -> Optional[ArtifactVersion]:
        """Get a version by ID."""
        return self._versions.get(version_id)

    def history(self, stage: Stage) -> list[ArtifactVersion]:
        """All versions of a stage, oldest first."""
        versions = [v for v in self._versions.values() if v.stage == stage]
        return sorted(versions, key=lambda v: v.version)

    def summary(self) -> dict:
        """Get a summary of the store state."""
        return {
            "project_dir": str(self.project_dir),
            "total_versions": len(self._versions),
            "current": {
                stage.value: (self.current(stage).version if self.current(stage) else None)
                for stage in STAGE_ORDER
            },
        }


class ProjectRepository:
    """Filesystem persistence for projects, one directory per project id."""

    PROJECT_FILE = "project.json"

    def __init__(self, projects_dir: Path | str):
        self.projects_dir = Path(projects_dir)
        self.projects_dir.mkdir(parents=True, exist_ok=True)

    def project_dir(self, project_id: str) -> Path:
        if not project_id or "/" in project_id or project_id.startswith("."):
            raise ValidationError(f"Invalid project id: {project_id!r}")
        return self.projects_dir / project_id

    def exists(self, project_id: str) -> bool:
        return (self.project_dir(project_id) / self.PROJECT_FILE).exists()

    def save(self, project: Project) -> Project:
        """Persist the project record (status is the durable cursor)."""
        project_dir = self.project_dir(project.id)
        project_dir.mkdir(parents=True, exist_ok=True)
        _write_json_atomic(project_dir / self.PROJECT_FILE, project.model_dump(mode="json"))
        return project

    def load(self, project_id: str) -> Project:
        """Load a project.

        Raises:
            NotFoundError: If the project does not exist.
        """
        path = self.project_dir(project_id) / self.PROJECT_FILE
        if not path.exists():
            raise NotFoundError(f"Project not found: {project_id}")
        with open(path) as f:
            return Project.model_validate(json.load(f))

    def list_projects(self) -> list[Project]:
        projects = []
        for path in sorted(self.projects_dir.glob(f"*/{self.PROJECT_FILE}")):
            with open(path) as f:
                projects.append(Project.model_validate(json.load(f)))
        return projects

    def artifacts(self, project_id: str) -> ArtifactStore:
        """Artifact store scoped to one project."""
        return ArtifactStore(self.project_dir(project_id))
