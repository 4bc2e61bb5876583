"""List the public URLs of every registered asset."""

from __future__ import annotations

from rich import box
from rich.table import Table
import typer

from sitekit.core import Assets, SitekitError, load_config

from .._options import ConfigArgument
from ..state import emit_error, emit_warning, get_cli_state


def urls(config: ConfigArgument) -> None:
    """Materialize every asset of CONFIG and print its fingerprinted URL."""
    state = get_cli_state()
    try:
        assets = Assets.from_config(load_config(config))
        rows = []
        for virtual_path in assets.virtual_paths():
            entry = assets.resolve(virtual_path)
            rows.append(
                (
                    virtual_path,
                    assets.base_url + entry.fingerprint_hex,
                    entry.content_type,
                    str(len(entry.content)),
                )
            )
    except SitekitError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    if not rows:
        emit_warning("No assets registered.")
        return

    table = Table(
        title="Published Assets",
        box=box.SQUARE,
        show_edge=True,
        header_style="bold cyan",
    )
    table.add_column("Virtual path", style="magenta")
    table.add_column("URL", style="green", overflow="fold")
    table.add_column("Content type")
    table.add_column("Bytes", justify="right")
    for row in rows:
        table.add_row(*row)
    state.console.print(table)
