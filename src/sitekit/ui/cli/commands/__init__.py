"""CLI command implementations exposed via `sitekit.ui.cli`."""

from __future__ import annotations

from .render import render
from .serve import serve
from .urls import urls


__all__ = ["render", "serve", "urls"]
