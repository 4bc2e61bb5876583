"""Starlette adapters serving fingerprinted assets and rendered templates."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, Response
from starlette.routing import BaseRoute, Route

from .exceptions import SitekitError, TemplateExecutionError


if TYPE_CHECKING:  # pragma: no cover - typing only
    from .registry import Assets


logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "404 - File not found"
CACHE_MAX_AGE = 31536000


class TemplateHTTPError(HTTPException):
    """HTTP 500 raised when a template cannot be compiled or rendered."""

    def __init__(self, error: SitekitError) -> None:
        super().__init__(status_code=500, detail=str(error))
        self.error = error

    @property
    def response(self) -> PlainTextResponse:
        """Plain-text error response describing the failure."""
        return http_error(self.status_code, self.detail)


def http_error(status_code: int, message: str) -> PlainTextResponse:
    """Return a plain-text error response."""
    return PlainTextResponse(message + "\n", status_code=status_code)


def one_year_after(moment: datetime) -> datetime:
    """Return the same calendar day one year after ``moment``."""
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:  # February 29th
        return moment + timedelta(days=365)


def accepts_gzip(headers: Mapping[str, str] | None) -> bool:
    """Return whether request ``headers`` advertise gzip support."""
    if not headers:
        return False
    for name, value in headers.items():
        if name.lower() == "accept-encoding" and "gzip" in value:
            return True
    return False


def serve_asset(
    assets: Assets,
    url: str,
    headers: Mapping[str, str] | None = None,
    *,
    now: datetime | None = None,
) -> Response:
    """Build the response for ``url``, a base URL followed by a fingerprint.

    Only fingerprints published by an earlier ``resolve`` are served.
    """
    base_url = assets.base_url
    if not url.startswith(base_url):
        logger.debug("Rejecting %s: outside of %s", url, base_url)
        return http_error(404, NOT_FOUND_MESSAGE)

    entry = assets.lookup_fingerprint(url[len(base_url) :])
    if entry is None or entry.asset is None:
        logger.debug("Unknown fingerprint requested: %s", url)
        return http_error(404, NOT_FOUND_MESSAGE)

    asset = entry.asset
    moment = now or datetime.now(timezone.utc)
    response_headers = {
        "Content-Type": asset.content_type,
        "Expires": format_datetime(one_year_after(moment), usegmt=True),
        "Cache-Control": f"public, max-age={CACHE_MAX_AGE}, immutable",
        "Vary": "Accept-Encoding",
    }
    if accepts_gzip(headers):
        response_headers["Content-Encoding"] = "gzip"
        return Response(asset.compressed_content, headers=response_headers)
    return Response(asset.content, headers=response_headers)


def render_template_response(
    assets: Assets,
    paths: Sequence[str],
    name: str | None,
    data: Mapping[str, Any] | None = None,
) -> HTMLResponse:
    """Render ``name`` from the namespace of ``paths`` as an HTML response.

    ``name`` defaults to the last path. Failures raise :class:`TemplateHTTPError`
    chained to the underlying error.
    """
    try:
        if name is None:
            if not paths:
                raise TemplateExecutionError("template: no template paths given")
            name = paths[-1]
        namespace = assets.compiled_template(paths)
        body = namespace.render(name, data)
    except SitekitError as exc:
        logger.warning("Template rendering failed for %s: %s", list(paths), exc)
        raise TemplateHTTPError(exc) from exc
    return HTMLResponse(body)


def template_route(
    path: str,
    assets: Assets,
    templates: Sequence[str],
    *,
    name: str | None = None,
) -> Route:
    """Return a route rendering ``templates`` with the request query as data."""
    template_paths = tuple(templates)

    async def endpoint(request: Request) -> Response:
        data = {"request": request, "query": dict(request.query_params)}
        try:
            return await run_in_threadpool(
                render_template_response, assets, template_paths, name, data
            )
        except TemplateHTTPError as exc:
            return exc.response

    return Route(path, endpoint, methods=["GET"])


def create_app(
    assets: Assets,
    *,
    routes: Iterable[BaseRoute] = (),
    debug: bool = False,
) -> Starlette:
    """Return an ASGI application serving the fingerprinted assets of ``assets``."""
    prefix = urlsplit(assets.base_url).path or "/"

    async def serve_endpoint(request: Request) -> Response:
        url = assets.base_url + request.path_params["fingerprint"]
        return serve_asset(assets, url, request.headers)

    asset_route = Route(
        prefix + "{fingerprint}", serve_endpoint, methods=["GET", "HEAD"], name="asset"
    )
    return Starlette(debug=debug, routes=[asset_route, *routes])


__all__ = [
    "CACHE_MAX_AGE",
    "NOT_FOUND_MESSAGE",
    "TemplateHTTPError",
    "accepts_gzip",
    "create_app",
    "http_error",
    "one_year_after",
    "render_template_response",
    "serve_asset",
    "template_route",
]
