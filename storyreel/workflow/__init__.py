"""
Workflow - Project status machine, versioned artifacts and stage operations.

- ProjectRepository / ArtifactStore: Durable projects and versioned artifacts
- Workflow: generate / approve / render over a project's status

Architecture:
    Generate → Review → Approve (or reject one checkpoint back) → ... → Render
"""

from pathlib import Path

from storyreel.assets.orchestrator import AssetOrchestrator
from storyreel.compositor.assembler import VideoAssembler
from storyreel.config import Config
from storyreel.generators import build_generators
from storyreel.storage import LocalStorage
from storyreel.workflow.engine import Workflow
from storyreel.workflow.store import ArtifactStore, ArtifactVersion, ProjectRepository


def build_workflow(config: Config, mock: bool = False) -> Workflow:
    """Wire a Workflow from configuration."""
    storage = LocalStorage.from_config(config.paths)
    generators = build_generators(config, storage, mock=mock)
    return Workflow(
        repository=ProjectRepository(Path(config.paths.projects_dir)),
        generators=generators,
        assets=AssetOrchestrator(generators.images, config, animator=generators.animator),
        assembler=VideoAssembler(config, storage, generators.speech),
        config=config,
    )


__all__ = [
    "ArtifactStore",
    "ArtifactVersion",
    "ProjectRepository",
    "Workflow",
    "build_workflow",
]
