"""Serve fingerprinted assets and template routes over HTTP."""

from __future__ import annotations

import logging

import typer

from sitekit.core import Assets, SitekitError, create_app, load_config, template_route

from .._options import ConfigArgument, HostOption, PortOption
from ..state import emit_error, get_cli_state


logger = logging.getLogger(__name__)


def serve(
    config: ConfigArgument,
    host: HostOption = "127.0.0.1",
    port: PortOption = 8000,
) -> None:
    """Serve the assets and template routes of CONFIG."""
    import uvicorn

    state = get_cli_state()
    try:
        site = load_config(config)
        assets = Assets.from_config(site)
    except SitekitError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    routes = [template_route(path, assets, templates) for path, templates in site.templates.items()]
    app = create_app(assets, routes=routes, debug=state.show_tracebacks)
    logger.info(
        "Serving %d asset(s) under %s and %d template route(s)",
        len(assets),
        assets.base_url,
        len(routes),
    )
    log_level = "debug" if state.verbosity >= 2 else "info"
    uvicorn.run(app, host=host, port=port, log_level=log_level)
