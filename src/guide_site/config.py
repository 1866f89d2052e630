"""
Site settings.

``SiteSettings`` is environment-driven (``GUIDES_`` prefix, ``.env``
support) and can also be loaded from a YAML file whose keys are the
field names. Explicit values win over the environment, which wins over
defaults.

Examples:
    >>> settings = SiteSettings(source_dir="docs/src/main/asciidoc")
    >>> settings.generated_path.name
    '_generated'

    >>> settings = SiteSettings.from_yaml(Path("guide-site.yaml"))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from guide_site.errors import Location, SettingsError


class SiteSettings(BaseSettings):
    """Settings for loading, rendering and validating a guide site."""

    model_config = SettingsConfigDict(
        env_prefix="GUIDES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Inputs ───────────────────────────────────────────────────
    source_dir: Path = Path("docs/src/main/asciidoc")
    catalog_file: Path | None = None
    config_metadata_dir: Path | None = None
    generated_dir: Path = Path("_generated")
    images_dir: Path = Path("images")

    # ── Output ───────────────────────────────────────────────────
    output_dir: Path = Path("target/site")
    site_title: str = "Guides"
    base_url: str = "/guides"

    # ── Processing ───────────────────────────────────────────────
    attributes: dict[str, str] = Field(default_factory=dict)
    attribute_missing: Literal["skip", "drop", "warn"] = "skip"
    max_include_depth: int = Field(default=64, ge=1)
    strict: bool = False

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    @field_validator("attributes", mode="before")
    @classmethod
    def _stringify_attributes(cls, value: Any) -> Any:
        # YAML happily produces ints/bools/None for attribute values
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def generated_path(self) -> Path:
        """Directory that receives generated include files."""
        if self.generated_dir.is_absolute():
            return self.generated_dir
        return self.source_dir / self.generated_dir

    @property
    def images_path(self) -> Path:
        if self.images_dir.is_absolute():
            return self.images_dir
        return self.source_dir / self.images_dir

    @classmethod
    def from_yaml(cls, yaml_path: Path, **overrides: Any) -> SiteSettings:
        """Load settings from a YAML file.

        Relative paths in the file resolve against the file's directory.

        Args:
            yaml_path: Path to YAML settings file
            **overrides: Values that take precedence over the file

        Returns:
            SiteSettings instance

        Raises:
            SettingsError: If the file is missing, unparsable or invalid
        """
        yaml_path = Path(yaml_path)
        location = Location.of(yaml_path)
        if not yaml_path.is_file():
            raise SettingsError(f"settings file not found: {yaml_path}", location=location)

        try:
            with open(yaml_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise SettingsError(f"invalid YAML in settings file: {e}", location=location, cause=e) from e

        if not isinstance(data, dict):
            raise SettingsError("settings file must contain a mapping", location=location)

        base = yaml_path.parent
        for key in ("source_dir", "output_dir", "catalog_file", "config_metadata_dir"):
            value = data.get(key)
            if value is not None and not Path(value).is_absolute():
                data[key] = base / value

        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**data)
        except ValidationError as e:
            raise SettingsError(f"invalid settings: {e}", location=location, cause=e) from e

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
