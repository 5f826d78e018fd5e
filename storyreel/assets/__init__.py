"""Per-scene asset generation."""

from .orchestrator import (
    AssetOrchestrator,
    SceneFailure,
    bounded_gather,
    estimate_animation_cost,
    estimate_image_cost,
)

__all__ = [
    "AssetOrchestrator",
    "SceneFailure",
    "bounded_gather",
    "estimate_animation_cost",
    "estimate_image_cost",
]
