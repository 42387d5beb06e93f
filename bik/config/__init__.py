"""Configuration management for Bulk Import Kit."""

from .manager import ConfigManager
from .models import ProjectConfig
from .settings import Settings

__all__ = ["ConfigManager", "ProjectConfig", "Settings"]
