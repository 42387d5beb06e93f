from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Project-wide settings sourced from .env and environment variables."""

    log_level: str = "WARNING"

    user_mapping_dir: str = "mapping"
    module_mapping_dir: str | None = None
    base_mapping_dir: str | None = None

    check_field: bool = False
    max_include_depth: int = 20

    vocabulary_path: str | None = None

    class Config:
        env_prefix = "BIK_"
        env_file = ".env", ".env.local"
        env_file_encoding = "utf-8"
        extra = "ignore"

    def mapping_dirs(self) -> dict[str, str]:
        """Directories of the mapping store, by reference prefix."""
        directories = {
            "user": self.user_mapping_dir,
            "module": self.module_mapping_dir,
            "base": self.base_mapping_dir,
        }
        return {prefix: path for prefix, path in directories.items() if path}

settings = Settings()
