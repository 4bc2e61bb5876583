"""Asset registry, reference rewriting and template caching."""

from __future__ import annotations

from .config import FileConfig, MountConfig, SiteConfig, load_config, parse_config
from .exceptions import (
    AssetNotFoundError,
    AssetReadError,
    AssetTraversalError,
    ConfigError,
    PreprocessingError,
    ReferenceCycleError,
    SitekitError,
    TemplateArgumentError,
    TemplateCompileError,
    TemplateError,
    TemplateExecutionError,
)
from .http import TemplateHTTPError, create_app, serve_asset, template_route
from .registry import DEFAULT_BASE_URL, Asset, AssetEntry, Assets, Preprocessor
from .rewriter import css_url_preprocessor, rewrite_references, source_map_preprocessor
from .templates import NamedTemplate, TemplateCache, TemplateNamespace


__all__ = [
    "DEFAULT_BASE_URL",
    "Asset",
    "AssetEntry",
    "AssetNotFoundError",
    "AssetReadError",
    "AssetTraversalError",
    "Assets",
    "ConfigError",
    "FileConfig",
    "MountConfig",
    "NamedTemplate",
    "PreprocessingError",
    "Preprocessor",
    "ReferenceCycleError",
    "SiteConfig",
    "SitekitError",
    "TemplateArgumentError",
    "TemplateCache",
    "TemplateCompileError",
    "TemplateError",
    "TemplateExecutionError",
    "TemplateHTTPError",
    "TemplateNamespace",
    "create_app",
    "css_url_preprocessor",
    "load_config",
    "parse_config",
    "rewrite_references",
    "serve_asset",
    "source_map_preprocessor",
    "template_route",
]
