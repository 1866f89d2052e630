"""
Read configuration metadata files.

A metadata file is YAML (``.yaml``/``.yml``) or JSON (``.json``) and
holds one root mapping or a list of them::

    extension: quarkus-grpc
    name: gRPC
    properties:
      - key: quarkus.grpc.server.port
        type: int
        default: 9000
        description: The gRPC server port.
      - key: quarkus.grpc.codegen.skip
        type: boolean
        default: false
        build-time: true
    sections:
      - title: TLS
        properties:
          - key: quarkus.grpc.server.ssl.certificate
            type: path
            optional: true
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from guide_site.config_reference.model import ConfigRoot
from guide_site.errors import ConfigReferenceError, Location
from guide_site.logging import get_logger

log = get_logger(__name__)

METADATA_SUFFIXES = (".yaml", ".yml", ".json")


def _describe_entry(index: int, raw: Any, error: ValidationError) -> str:
    first = error.errors()[0]
    where = ".".join(str(part) for part in first["loc"])
    name = raw.get("extension") if isinstance(raw, dict) else None
    label = f"root #{index}" + (f" ({name})" if name else "")
    return f"{label}: {where}: {first['msg']}" if where else f"{label}: {first['msg']}"


def load_metadata(path: str | Path) -> list[ConfigRoot]:
    """Load every root declared in one metadata file.

    Raises:
        ConfigReferenceError: Unreadable, unparsable or invalid metadata
    """
    path = Path(path)
    location = Location.of(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigReferenceError(f"cannot read configuration metadata: {e}", location=location, cause=e) from e

    try:
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigReferenceError(f"invalid configuration metadata: {e}", location=location, cause=e) from e

    if data is None:
        return []
    entries = data if isinstance(data, list) else [data]

    roots = []
    for index, raw in enumerate(entries):
        if not isinstance(raw, dict):
            raise ConfigReferenceError(f"root #{index}: expected a mapping, got {type(raw).__name__}", location=location)
        try:
            roots.append(ConfigRoot.model_validate(raw))
        except ValidationError as e:
            raise ConfigReferenceError(_describe_entry(index, raw, e), location=location, cause=e) from e
    return roots


def load_metadata_dir(directory: str | Path) -> list[ConfigRoot]:
    """Load all metadata files under ``directory``, ordered by extension.

    Two roots for the same extension are merged, later files adding
    properties and sections to earlier ones.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise ConfigReferenceError(
            f"configuration metadata directory not found: {directory}",
            location=Location.of(directory),
        )

    merged: dict[str, ConfigRoot] = {}
    files = sorted(p for p in directory.rglob("*") if p.is_file() and p.suffix in METADATA_SUFFIXES)
    for path in files:
        for root in load_metadata(path):
            existing = merged.get(root.extension)
            if existing is None:
                merged[root.extension] = root
            else:
                merged[root.extension] = existing.model_copy(
                    update={
                        "name": existing.name or root.name,
                        "properties": existing.properties + root.properties,
                        "sections": existing.sections + root.sections,
                    }
                )
    log.debug("config_metadata.loaded", directory=str(directory), files=len(files), roots=len(merged))
    return [merged[name] for name in sorted(merged)]
