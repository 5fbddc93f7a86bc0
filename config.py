from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, ValidatorFunctionWrapHandler, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STATS_FILE = Path("/data/claude/stats-cache.json")
DEFAULT_CLAUDE_DIR = Path("/data/claude")
DEFAULT_PORT = 9101


class Settings(BaseSettings):
    stats_file: Path = Field(DEFAULT_STATS_FILE, validation_alias="CLAUDE_STATS_FILE")
    claude_dir: Path = Field(DEFAULT_CLAUDE_DIR, validation_alias="CLAUDE_DIR")
    exporter_port: int = Field(DEFAULT_PORT, validation_alias="EXPORTER_PORT")

    model_config = SettingsConfigDict(env_ignore_empty=True, populate_by_name=True)

    @field_validator("exporter_port", mode="wrap")
    @classmethod
    def _port_or_default(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> int:
        try:
            return handler(value)
        except ValidationError:
            return DEFAULT_PORT

    @property
    def projects_dir(self) -> Path:
        return self.claude_dir / "projects"


def get_settings() -> Settings:
    return Settings()
