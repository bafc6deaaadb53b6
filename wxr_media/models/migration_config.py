from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from wxr_media.utils.errors import ConfigurationError
from wxr_media.utils.url_map import normalize_new_base, normalize_old_host


class MediaSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    old_host: str = Field(..., min_length=1)
    new_base: str = Field(..., min_length=1)
    download_dir: str = "./assets"
    # False means unreferenced attachment items ARE removed from the output.
    keep_attachments: bool = False
    inline_directive: str = "wpbbe/svg-inline"
    thumbnail_meta_key: str = "_thumbnail_id"

    @field_validator("old_host", mode="before")
    @classmethod
    def _normalize_host(cls, v: Any):
        if isinstance(v, str):
            return normalize_old_host(v)
        return v

    @field_validator("new_base", mode="before")
    @classmethod
    def _normalize_base(cls, v: Any):
        if isinstance(v, str):
            try:
                return normalize_new_base(v)
            except ConfigurationError as e:
                raise ValueError(str(e)) from e
        return v


class DownloadSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    max_attempts: int = Field(3, ge=1)
    retry_delay: float = Field(2.0, ge=0)
    timeout: float = Field(30.0, gt=0)
    workers: int = Field(4, ge=1)
    user_agent: Optional[str] = "wxr-media/0.1"


class PathSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    logs_dir: str = "./build/logs"
    tmp_dir: str = "./build/tmp"


class MigrationConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    media: MediaSettings
    download: DownloadSettings = Field(default_factory=DownloadSettings)
    paths: PathSettings = Field(default_factory=PathSettings)

    @classmethod
    def from_dict(cls, data: dict) -> "MigrationConfig":
        """Validate ``data``, turning pydantic errors into :class:`ConfigurationError`."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
