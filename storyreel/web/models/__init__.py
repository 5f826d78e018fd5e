"""Request models for the web API."""

from .requests import ApproveRequest, CreateProjectRequest

__all__ = ["ApproveRequest", "CreateProjectRequest"]
