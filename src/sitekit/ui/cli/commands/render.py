"""Render a merged template namespace to stdout."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
import yaml

from sitekit.core import Assets, SitekitError, load_config

from .._options import ConfigArgument, DataOption, TemplateNameOption, TemplatesArgument
from ..state import emit_error


def _load_data(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise typer.BadParameter(f"Unable to load template data: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise typer.BadParameter("Template data must be a mapping.")
    return data


def render(
    config: ConfigArgument,
    templates: TemplatesArgument,
    name: TemplateNameOption = None,
    data: DataOption = None,
) -> None:
    """Render TEMPLATE... from the assets of CONFIG."""
    context = _load_data(data)
    try:
        assets = Assets.from_config(load_config(config))
        namespace = assets.compiled_template(templates)
        output = namespace.render(name or templates[-1], context)
    except SitekitError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc
    typer.echo(output, nl=False)
