"""
Pydantic models for hosted sites and per-project deployment configs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Site(BaseModel):
    """A site as returned by the hosted API."""

    model_config = ConfigDict(extra="allow")

    id: str
    domain: str
    cid: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SiteVersion(BaseModel):
    """A previously deployed revision of a site."""

    model_config = ConfigDict(extra="allow")

    cid: str
    created_at: Optional[datetime] = None
    version: Optional[int] = None


class _ProjectConfig(BaseModel):
    """Base for the camelCase ``orbiter.json`` documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


class DeploymentConfig(_ProjectConfig):
    """Static site deployment settings stored in ``orbiter.json``."""

    site_id: Optional[str] = None
    domain: str = Field(..., min_length=1)
    build_command: str = "npm run build"
    build_dir: str = "dist"


class ServerDeploymentConfig(_ProjectConfig):
    """Server function deployment settings stored in ``orbiter.json``."""

    site_id: str = Field(..., min_length=1)
    entry_path: str = "src/index.ts"
    build_command: str = "npm run build"
    build_dir: str = "dist"
    runtime: str = "node"


class FunctionDeployment(BaseModel):
    """Body sent when deploying a server bundle."""

    script: str
    runtime: str = "node"
    env: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "DeploymentConfig",
    "FunctionDeployment",
    "ServerDeploymentConfig",
    "Site",
    "SiteVersion",
]
