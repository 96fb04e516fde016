"""Schemas describing cached project templates."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TemplateCacheMeta(BaseModel):
    """Sidecar written next to a cached template."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    fetched_at: datetime
    template_name: str
    source: str


class TemplateMetadata(BaseModel):
    """Contents of a template's ``template.json``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    name: str
    display_name: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)


__all__ = ["TemplateCacheMeta", "TemplateMetadata"]
