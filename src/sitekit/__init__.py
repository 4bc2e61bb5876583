"""Primary public API for sitekit."""

from __future__ import annotations

from sitekit.core import (
    DEFAULT_BASE_URL,
    Asset,
    AssetEntry,
    AssetNotFoundError,
    AssetReadError,
    AssetTraversalError,
    Assets,
    ConfigError,
    PreprocessingError,
    Preprocessor,
    ReferenceCycleError,
    SiteConfig,
    SitekitError,
    TemplateArgumentError,
    TemplateCompileError,
    TemplateError,
    TemplateExecutionError,
    TemplateHTTPError,
    TemplateNamespace,
    create_app,
    css_url_preprocessor,
    load_config,
    source_map_preprocessor,
)
from sitekit.version import get_version


__version__ = get_version()


__all__ = [
    "DEFAULT_BASE_URL",
    "Asset",
    "AssetEntry",
    "AssetNotFoundError",
    "AssetReadError",
    "AssetTraversalError",
    "Assets",
    "ConfigError",
    "PreprocessingError",
    "Preprocessor",
    "ReferenceCycleError",
    "SiteConfig",
    "SitekitError",
    "TemplateArgumentError",
    "TemplateCompileError",
    "TemplateError",
    "TemplateExecutionError",
    "TemplateHTTPError",
    "TemplateNamespace",
    "__version__",
    "create_app",
    "css_url_preprocessor",
    "get_version",
    "load_config",
    "source_map_preprocessor",
]
