"""Pydantic models for configuration validation."""

from typing import Any
from pydantic import BaseModel, Field


class ProjectConfig(BaseModel):
    """Main project configuration."""
    
    name: str = Field(..., description="Project name")
    version: str = Field("1.0.0", description="Project version")
    description: str | None = Field(None, description="Project description")

    mapping_dirs: dict[str, str] = Field(
        default_factory=dict,
        description="Mapping directories by reference prefix (user, module, base...)",
    )
    vocabulary: str | None = Field(None, description="Path to a yaml vocabulary file")
    field_map: dict[str, str] = Field(
        default_factory=dict,
        description="Fields checked before the vocabulary when resolving destinations",
    )
    variables: dict[str, Any] = Field(
        default_factory=dict,
        description="Variables passed to every conversion",
    )
    
    # Additional settings
    settings: dict[str, Any] = Field(default_factory=dict, description="Additional settings")
