"""Configuration manager for loading and validating project settings."""

import yaml
from pathlib import Path
from typing import Any

from ..backend.static import StaticBackend
from ..mapping.store import MappingStore
from .models import ProjectConfig
from .settings import Settings


class ConfigManager:
    """Manages project configuration loading and validation."""
    
    def __init__(self, config_path: str, settings: Settings | None = None) -> None:
        """Initialize configuration manager.
        
        Args:
            config_path: Path to the project configuration file
            settings: Environment settings, used for what the project file does not set
        """
        self.config_path = Path(config_path)
        self.settings = settings or Settings()
        self._config: ProjectConfig | None = None
        self._vocabulary: StaticBackend | None = None
    
    def load_config(self) -> ProjectConfig:
        """Load and validate project configuration.
        
        Returns:
            Validated project configuration
            
        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If config file is invalid YAML
            ValidationError: If config doesn't match schema
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        
        with open(self.config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}
        
        self._config = ProjectConfig(**config_data)
        return self._config
    
    @property
    def config(self) -> ProjectConfig:
        """Get the loaded configuration.
        
        Returns:
            Project configuration (loads if not already loaded)
        """
        if self._config is None:
            self._config = self.load_config()
        return self._config
    
    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a setting from the configuration.
        
        Args:
            key: Setting key (supports dot notation)
            default: Default value if key not found
            
        Returns:
            Setting value or default
        """
        config = self.config
        
        # Handle dot notation for nested settings
        keys = key.split('.')
        value = config.settings
        
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        
        return value

    def _relative(self, path: str) -> Path:
        """Resolve a path of the project file from its directory."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.config_path.parent / candidate
    
    def get_vocabulary(self) -> StaticBackend:
        """Get the vocabulary backend of the project.

        Returns:
            Backend built from the project vocabulary file, or Dublin Core only
        """
        if self._vocabulary is None:
            path = self.config.vocabulary or self.settings.vocabulary_path
            self._vocabulary = StaticBackend.from_file(self._relative(path) if path else None)
        return self._vocabulary

    def get_store(self) -> MappingStore:
        """Get a mapping store over the directories of the project and the settings."""
        directories: dict[str, Path] = {
            prefix: Path(path) for prefix, path in self.settings.mapping_dirs().items()
        }
        for prefix, path in self.config.mapping_dirs.items():
            directories[prefix] = self._relative(path)
        return MappingStore(directories)
