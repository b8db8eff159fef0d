"""
Configuration module - loads settings from environment variables and .env.
"""
import json
import logging
from functools import lru_cache
from typing import Annotated, Optional, List, Any

from pydantic_settings import BaseSettings, NoDecode
from pydantic import Field, model_validator, field_validator

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Overlay service settings."""

    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Input limits (callers bound sizes before the engine runs)
    max_document_bytes: int = Field(
        default=10 * 1024 * 1024,
        alias="MAX_DOCUMENT_BYTES",
        description="Largest accepted source PDF (default 10 MiB)",
    )
    max_image_bytes: int = Field(
        default=5 * 1024 * 1024,
        alias="MAX_IMAGE_BYTES",
        description="Largest decoded signature/image payload (default 5 MiB)",
    )

    # Fonts - explicit files win over the system font search
    font_regular_path: Optional[str] = Field(default=None, alias="FONT_REGULAR_PATH")
    font_bold_path: Optional[str] = Field(default=None, alias="FONT_BOLD_PATH")

    # Serialization
    pdf_garbage_level: int = Field(default=4, ge=0, le=4, alias="PDF_GARBAGE_LEVEL")
    pdf_deflate: bool = Field(default=True, alias="PDF_DEFLATE")
    pdf_producer: str = Field(default="fieldstamp overlay service", alias="PDF_PRODUCER")

    # CORS (raw env string is parsed by _parse_allowed_origins)
    allowed_origins: Annotated[List[str], NoDecode] = Field(default=[], alias="ALLOWED_ORIGINS")

    @field_validator("allowed_origins", mode='before')
    @classmethod
    def _parse_allowed_origins(cls, v: Any) -> List[str]:
        """Parse ALLOWED_ORIGINS from JSON list, CSV, semicolon-separated string, or list."""
        if v is None:
            return []
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    return json.loads(s)
                except json.JSONDecodeError:
                    pass  # Fall through to delimiter parsing
            parts = [p.strip() for p in s.replace(",", ";").split(";")]
            return [p for p in parts if p]
        return []

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    @model_validator(mode='after')
    def validate_environment(self) -> 'Settings':
        """Warn about settings that do not belong in production."""
        if self.environment == "production" and self.debug:
            logger.warning(
                "Configuration Warning: DEBUG is enabled in a 'production' environment."
            )
        if self.pdf_garbage_level < 3:
            logger.debug(
                f"PDF_GARBAGE_LEVEL={self.pdf_garbage_level}: duplicate objects will not be merged on save"
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
