"""Dependency injection for FastAPI."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from ..config import Config, load_config
from ..storage import LocalStorage
from ..workflow import Workflow, build_workflow
from .config import WebConfig


@lru_cache
def get_config() -> WebConfig:
    """Get the web configuration (cached)."""
    return WebConfig()


@lru_cache
def get_app_config() -> Config:
    """Application config with web overrides applied (cached)."""
    web = get_config()
    config = load_config(web.config_path)
    if web.projects_dir is not None:
        config.paths.projects_dir = str(web.projects_dir)
    if web.storage_dir is not None:
        config.paths.storage_dir = str(web.storage_dir)
    return config


@lru_cache
def get_workflow() -> Workflow:
    """Get the workflow (cached singleton)."""
    return build_workflow(get_app_config(), mock=get_config().mock)


def get_storage(config: Annotated[Config, Depends(get_app_config)]) -> LocalStorage:
    """Get the media storage."""
    return LocalStorage.from_config(config.paths)


# Type aliases for cleaner router signatures
WorkflowDep = Annotated[Workflow, Depends(get_workflow)]
StorageDep = Annotated[LocalStorage, Depends(get_storage)]
