"""Service settings, read from ``PDFSHRINK_*`` environment variables or ``.env``."""

import json
import sys
from pathlib import Path
from typing import Any, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pdfshrink.core.options import COMPATIBILITY_LEVELS, PRESETS, CompressionOptions

MiB = 1024 * 1024


def default_ghostscript() -> str:
    """Name of the Ghostscript console binary for this platform."""
    if sys.platform == "win32":
        return "gswin64c"
    return "gs"


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from a JSON list or a comma-separated string."""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [origin.strip() for origin in v.split(",") if origin.strip()]
    return []


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PDFSHRINK_",
        env_file=".env",
        extra="ignore",
    )

    # Storage
    upload_dir: Path = Path("uploads")
    max_upload_bytes: int = 20 * MiB

    # Ghostscript
    ghostscript: str = default_ghostscript()
    pdf_preset: str = "ebook"
    compatibility_level: str = "1.4"
    timeout_seconds: float = 120.0

    # Server
    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: str = "*"
    log_level: str = "INFO"

    @field_validator("pdf_preset")
    @classmethod
    def validate_preset(cls, v: str) -> str:
        v = v.lstrip("/").lower()
        if v not in PRESETS:
            raise ValueError(f"pdf_preset must be one of: {', '.join(PRESETS)}")
        return v

    @field_validator("compatibility_level")
    @classmethod
    def validate_compatibility_level(cls, v: str) -> str:
        if v not in COMPATIBILITY_LEVELS:
            raise ValueError(
                f"compatibility_level must be one of: {', '.join(COMPATIBILITY_LEVELS)}"
            )
        return v

    @field_validator("max_upload_bytes")
    @classmethod
    def validate_max_upload_bytes(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_upload_bytes must be positive")
        return v

    @property
    def cors_origin_list(self) -> List[str]:
        return parse_cors_origins(self.cors_origins)

    @property
    def upload_path(self) -> Path:
        """The upload directory as an absolute path."""
        return self.upload_dir.expanduser().resolve()

    def compression_options(self) -> CompressionOptions:
        return CompressionOptions(
            preset=self.pdf_preset,
            compatibility_level=self.compatibility_level,
            timeout=self.timeout_seconds,
        )
