"""Configuration models describing a site served by sitekit.

SiteConfig

`base_url` (`str`)
: Prefix of every public asset URL. The fingerprint is appended verbatim,
  so the value must end with `/`. Defaults to `/a/`.

`compress_level` (`int`)
: gzip compression level between 1 and 9 used for pre-compressed bodies.

`mounts` (`list[MountConfig]`)
: Directories registered recursively, in order.

`files` (`list[FileConfig]`)
: Individual files registered after the mounts. A file registered at a
  path already provided by a mount replaces it.

`templates` (`dict[str, list[str]]`)
: Route path to template list mapping used by `sitekit serve`. The last
  template of each list is rendered.

MountConfig

`source` (`Path`)
: Directory to walk. Relative paths are resolved against the directory of
  the configuration file.

`prefix` (`str`)
: Virtual path prefix, starting and ending with `/`.

FileConfig

`source` (`Path`)
: File to register, resolved like mount sources.

`path` (`str`)
: Virtual path, starting with `/`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .exceptions import ConfigError


DEFAULT_BASE_URL = "/a/"


class MountConfig(BaseModel):
    """Directory registered under a virtual prefix."""

    model_config = ConfigDict(extra="forbid")

    source: Path
    prefix: str = "/"

    @field_validator("prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if not value.startswith("/") or not value.endswith("/"):
            raise ValueError("mount prefix must start and end with '/'")
        return value


class FileConfig(BaseModel):
    """Single file registered at a virtual path."""

    model_config = ConfigDict(extra="forbid")

    source: Path
    path: str

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("virtual path must start with '/'")
        return value


class SiteConfig(BaseModel):
    """Top-level site configuration."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = DEFAULT_BASE_URL
    compress_level: int = Field(default=9, ge=1, le=9)
    mounts: list[MountConfig] = Field(default_factory=list)
    files: list[FileConfig] = Field(default_factory=list)
    templates: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        if not value.endswith("/"):
            raise ValueError("base_url must end with '/'")
        return value

    @field_validator("templates")
    @classmethod
    def _check_templates(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        for route, paths in value.items():
            if not route.startswith("/"):
                raise ValueError(f"template route '{route}' must start with '/'")
            if not any(paths):
                raise ValueError(f"template route '{route}' needs at least one template")
        return value

    def resolve_paths(self, root: Path) -> SiteConfig:
        """Return a copy whose relative sources are anchored at ``root``."""

        def _anchor(path: Path) -> Path:
            return path if path.is_absolute() else (root / path).resolve()

        return self.model_copy(
            update={
                "mounts": [
                    mount.model_copy(update={"source": _anchor(mount.source)})
                    for mount in self.mounts
                ],
                "files": [
                    item.model_copy(update={"source": _anchor(item.source)})
                    for item in self.files
                ],
            }
        )


def parse_config(data: Any, *, root: Path | None = None, origin: str = "<config>") -> SiteConfig:
    """Validate raw configuration ``data`` and anchor relative sources at ``root``."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration {origin} must be a mapping.")
    try:
        config = SiteConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration {origin}: {exc}") from exc
    return config.resolve_paths(root or Path.cwd())


def load_config(path: Path | str) -> SiteConfig:
    """Load a YAML site configuration from ``path``."""
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration '{config_path}': {exc}") from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Configuration '{config_path}' is not valid YAML: {exc}") from exc
    return parse_config(data, root=config_path.resolve().parent, origin=f"'{config_path}'")


__all__ = [
    "DEFAULT_BASE_URL",
    "FileConfig",
    "MountConfig",
    "SiteConfig",
    "load_config",
    "parse_config",
]
