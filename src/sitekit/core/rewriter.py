"""Preprocessors rewriting relative asset references into fingerprinted URLs."""

from __future__ import annotations

import posixpath
import re
from typing import TYPE_CHECKING

from .exceptions import PreprocessingError, SitekitError


if TYPE_CHECKING:  # pragma: no cover - typing only
    from .registry import Assets


CSS_URL_PATTERN = re.compile(rb"url\([^)]+\)")
SOURCE_MAP_PATTERN = re.compile(rb"sourceMappingURL=\S+")

# Schemes (data:, https:), protocol-relative and fragment-only references.
_EXTERNAL_REFERENCE = re.compile(r"^(?:[A-Za-z][A-Za-z0-9+.\-]*:|//|#)")


def root_reference(from_path: str, reference: str) -> str:
    """Return ``reference`` as an absolute virtual path seen from ``from_path``."""
    if reference.startswith("/"):
        return reference
    return posixpath.normpath(posixpath.join(posixpath.dirname(from_path), reference))


def _split_reference(inner: str) -> tuple[str, str, str]:
    """Split ``inner`` into its quote character, bare path and fragment."""
    quote = ""
    if len(inner) >= 2 and inner[0] in "'\"" and inner[-1] == inner[0]:
        quote = inner[0]
        inner = inner[1:-1].strip()
    path, hash_sign, fragment = inner.partition("#")
    # The query is dropped; the fingerprinted URL replaces any cache buster.
    path = path.partition("?")[0]
    return quote, path, hash_sign + fragment


def rewrite_references(
    assets: Assets,
    virtual_path: str,
    content: bytes,
    pattern: re.Pattern[bytes],
    prefix: bytes,
    suffix: bytes,
) -> bytes:
    """Replace every ``prefix<reference>suffix`` match with its public URL.

    The query string of a reference is dropped since the fingerprint already
    busts caches; a ``#fragment`` is kept. The first failing reference aborts
    the whole rewrite.
    """

    def _replace(match: re.Match[bytes]) -> bytes:
        matched = match.group(0)
        raw = matched[len(prefix) : len(matched) - len(suffix)]
        try:
            inner = raw.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            raise PreprocessingError(
                f"{virtual_path}: reference {raw!r} is not valid UTF-8"
            ) from exc

        quote, reference, fragment = _split_reference(inner)
        if not reference or _EXTERNAL_REFERENCE.match(inner.strip("'\"")):
            return matched

        rooted = root_reference(virtual_path, reference)
        try:
            url = assets.public_url(rooted)
        except PreprocessingError:
            raise
        except SitekitError as exc:
            raise PreprocessingError(
                f"{virtual_path}: unable to resolve reference '{reference}': {exc}"
            ) from exc
        replacement = f"{quote}{url}{fragment}{quote}".encode()
        return prefix + replacement + suffix

    return pattern.sub(_replace, content)


def css_url_preprocessor(assets: Assets, virtual_path: str, content: bytes) -> bytes:
    """Rewrite ``url(...)`` references of a style sheet."""
    return rewrite_references(assets, virtual_path, content, CSS_URL_PATTERN, b"url(", b")")


def source_map_preprocessor(assets: Assets, virtual_path: str, content: bytes) -> bytes:
    """Rewrite ``sourceMappingURL=`` trailers."""
    return rewrite_references(
        assets, virtual_path, content, SOURCE_MAP_PATTERN, b"sourceMappingURL=", b""
    )


__all__ = [
    "CSS_URL_PATTERN",
    "SOURCE_MAP_PATTERN",
    "css_url_preprocessor",
    "rewrite_references",
    "root_reference",
    "source_map_preprocessor",
]
