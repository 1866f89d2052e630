"""
Configuration reference records.

A ``ConfigProperty`` is one row of a generated reference table: key,
type, default, and whether the value is fixed at build time. Properties
are grouped per extension in a ``ConfigRoot``; optional
``ConfigSection`` groups render as sub-headers inside the same table.

Records are frozen. Metadata is read once per build and never edited.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ENV_VAR_RE = re.compile(r"[^A-Za-z0-9]")


def env_var_name(key: str) -> str:
    """Environment variable for a property key.

    Examples:
        >>> env_var_name("quarkus.grpc.server.port")
        'QUARKUS_GRPC_SERVER_PORT'
        >>> env_var_name('quarkus.log.category."io.netty".level')
        'QUARKUS_LOG_CATEGORY__IO_NETTY__LEVEL'
    """
    return ENV_VAR_RE.sub("_", key).upper()


class ConfigProperty(BaseModel):
    """One configuration property."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    key: str = Field(min_length=1, description="Full property key, e.g. quarkus.grpc.server.port")
    type: str = Field(default="string", description="Value type as shown to readers")
    default: str | None = Field(default=None, description="Default value, None when there is none")
    description: str = Field(default="", description="AsciiDoc description")
    fixed_at_build_time: bool = Field(default=False, alias="build-time")
    env_var: str = Field(default="", description="Environment variable name")
    allowed_values: tuple[str, ...] = Field(default=(), alias="allowed-values")
    deprecated: bool = False
    optional: bool = False

    @field_validator("key")
    @classmethod
    def _no_blank_segments(cls, value: str) -> str:
        value = value.strip()
        if value.startswith(".") or value.endswith(".") or ".." in value:
            raise ValueError(f"malformed property key: {value!r}")
        return value

    @field_validator("default", mode="before")
    @classmethod
    def _stringify_default(cls, value: object) -> object:
        # YAML turns `default: 9000` into an int and `default: true` into a bool
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("allowed_values", mode="before")
    @classmethod
    def _stringify_allowed(cls, value: object) -> object:
        if isinstance(value, (list, tuple)):
            return tuple(str(v) for v in value)
        return value

    @model_validator(mode="before")
    @classmethod
    def _derive_env_var(cls, data: object) -> object:
        if isinstance(data, dict) and not data.get("env_var") and isinstance(data.get("key"), str):
            data = {**data, "env_var": env_var_name(data["key"].strip())}
        return data

    @property
    def required(self) -> bool:
        return self.default is None and not self.optional

    @property
    def anchor(self) -> str:
        return re.sub(r"[^\w-]+", "-", self.key.replace('"', "")).strip("-")


class ConfigSection(BaseModel):
    """A titled group of properties inside one root."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = Field(min_length=1)
    properties: tuple[ConfigProperty, ...] = ()


class ConfigRoot(BaseModel):
    """All properties of one extension."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    extension: str = Field(min_length=1, pattern=r"^[\w.-]+$")
    name: str = ""
    properties: tuple[ConfigProperty, ...] = ()
    sections: tuple[ConfigSection, ...] = ()

    @property
    def title(self) -> str:
        return self.name or self.extension

    def all_properties(self) -> list[ConfigProperty]:
        """Every property, section members included, sorted by key."""
        found = list(self.properties)
        for section in self.sections:
            found.extend(section.properties)
        return sorted(found, key=lambda p: p.key)
