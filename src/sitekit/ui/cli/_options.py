"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


INPUTS_PANEL = "Input Handling"
TEMPLATE_PANEL = "Template"
SERVER_PANEL = "Server"
DIAGNOSTICS_PANEL = "Diagnostics"

ConfigArgument = Annotated[
    Path,
    typer.Argument(
        metavar="CONFIG",
        help="Site configuration file (YAML) listing mounts, files and template routes.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

TemplatesArgument = Annotated[
    list[str],
    typer.Argument(
        metavar="TEMPLATE...",
        help="Virtual paths of the templates to merge, earliest taking precedence.",
        rich_help_panel=TEMPLATE_PANEL,
    ),
]

TemplateNameOption = Annotated[
    str | None,
    typer.Option(
        "--name",
        "-n",
        help="Named template or block to render (defaults to the last template path).",
        rich_help_panel=TEMPLATE_PANEL,
    ),
]

DataOption = Annotated[
    Path | None,
    typer.Option(
        "--data",
        "-d",
        help="JSON or YAML file providing the template data.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=TEMPLATE_PANEL,
    ),
]

HostOption = Annotated[
    str,
    typer.Option("--host", help="Interface to bind.", rich_help_panel=SERVER_PANEL),
]

PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Port to listen on.", rich_help_panel=SERVER_PANEL),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Show full tracebacks when an unexpected error occurs.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]
