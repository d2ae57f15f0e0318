"""
Mod Studio - Configuration Settings
Compiler output conventions, editor versioning, and default build options.
"""

import logging
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Mod Studio compiler settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Versioning ────────────────────────────────────────────────────
    editor_version: str = Field(default="0.1.0", alias="MODSTUDIO_EDITOR_VERSION")
    project_format_version: str = Field(default="1.0.0", alias="MODSTUDIO_PROJECT_FORMAT_VERSION")

    # ── Code Generation ───────────────────────────────────────────────
    script_extension: str = Field(default=".nut", alias="MODSTUDIO_SCRIPT_EXTENSION")
    indent_width: int = Field(default=4, alias="MODSTUDIO_INDENT_WIDTH")

    # ── Build Output ──────────────────────────────────────────────────
    default_output_dir: Optional[str] = Field(default=None, alias="MODSTUDIO_OUTPUT_DIR")
    embed_project_data: bool = Field(default=False, alias="MODSTUDIO_EMBED_PROJECT_DATA")
    project_data_chunk_size: int = 80

    # ── Logging ───────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="MODSTUDIO_LOG_LEVEL")

    @field_validator("script_extension")
    @classmethod
    def validate_script_extension(cls, v: str) -> str:
        allowed = [".nut", ".gnut"]
        if v.lower() not in allowed:
            raise ValueError(f"script extension '{v}' not in {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            logging.getLogger(__name__).warning(f"[SETTINGS] Unknown log level '{v}', using INFO")
            return "INFO"
        return level

    @property
    def indent(self) -> str:
        return " " * self.indent_width


settings = Settings()
