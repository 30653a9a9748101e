"""Configuration management for Hodor."""

import json
from pathlib import Path
from typing import Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hodor.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Runtime configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HODOR_",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    host: str = Field("0.0.0.0", description="Server host")
    port: int = Field(3333, description="Server port")

    # Files
    config_path: str = Field("config.json", description="Release mapping file (JSON or YAML)")
    db_path: str = Field("hodor.db", description="Status database file")

    # Engine
    queue_size: int = Field(50, ge=1, description="Maximum number of pending jobs")
    fetch_timeout_seconds: float = Field(60.0, gt=0, description="Network timeout when fetching a release")
    shutdown_timeout_seconds: float = Field(30.0, ge=0, description="How long to wait for a running job at shutdown")
    max_release_size_mb: int = Field(512, ge=1, description="Largest archive accepted")

    # AWS, for s3:// release URLs
    aws_region: Optional[str] = Field(None)
    s3_endpoint_url: Optional[str] = Field(None)

    # Observability
    log_level: str = Field("INFO")
    log_format: str = Field("console")
    metrics_enabled: bool = Field(True)

    @property
    def listen(self) -> str:
        return f"{self.host}:{self.port}"


class ReleaseConfig(BaseModel):
    """Maps each release id to the folder it is deployed into."""

    entries: Dict[str, str] = Field(default_factory=dict)

    @field_validator("entries")
    @classmethod
    def absolute_targets(cls, v: Dict[str, str]) -> Dict[str, str]:
        resolved = {}
        for release_id, target in v.items():
            if not target:
                raise ValueError(f"empty target folder for release {release_id!r}")
            resolved[release_id] = str(Path(target).expanduser().absolute())
        return resolved

    def target_for(self, release_id: str) -> Optional[str]:
        return self.entries.get(release_id)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ReleaseConfig":
        """Load the mapping from a JSON or YAML file.

        The file holds an ``entries`` object whose keys are release ids and
        whose values are target folders. YAML is tried for ``.yaml``/``.yml``
        files, JSON otherwise.
        """
        path = Path(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"failed to open file: {exc}") from exc

        try:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(raw)
            else:
                data = json.loads(raw)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"failed to decode file: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError("failed to decode file: expected a mapping at top level")

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid release config: {exc}") from exc
