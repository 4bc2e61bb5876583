"""Content-addressed registry of static assets.

Files are registered under virtual paths and materialized lazily: the first
``resolve`` of a path reads the backing file, runs the preprocessor chain of
its extension, gzips and fingerprints the result and publishes it under its
SHA-1 hex digest. The digest doubles as the public URL, so responses can be
cached forever.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from contextvars import ContextVar
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import threading
from typing import TYPE_CHECKING, Any

from . import content as _content
from .config import DEFAULT_BASE_URL, SiteConfig
from .exceptions import (
    AssetNotFoundError,
    AssetTraversalError,
    PreprocessingError,
    ReferenceCycleError,
    SitekitError,
)
from .rewriter import css_url_preprocessor, source_map_preprocessor
from .templates import TemplateCache, TemplateNamespace, builtin_functions


if TYPE_CHECKING:  # pragma: no cover - typing only
    from starlette.responses import HTMLResponse, Response


logger = logging.getLogger(__name__)

Preprocessor = Callable[["Assets", str, bytes], bytes]

_RESOLVING: ContextVar[tuple[str, ...]] = ContextVar("sitekit_resolving", default=())


@dataclass(frozen=True, slots=True)
class Asset:
    """Final, servable form of a registered file."""

    content: bytes
    compressed_content: bytes
    fingerprint: bytes
    fingerprint_hex: str
    content_type: str


@dataclass(slots=True, eq=False)
class AssetEntry:
    """Registry slot binding a virtual path to its source and content."""

    virtual_path: str
    source: Path
    asset: Asset | None = None
    _gate: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _owner: int | None = field(default=None, init=False, repr=False)

    @property
    def materialized(self) -> bool:
        return self.asset is not None

    def _require(self) -> Asset:
        asset = self.asset
        if asset is None:
            raise SitekitError(f"Asset '{self.virtual_path}' has not been materialized")
        return asset

    @property
    def content(self) -> bytes:
        return self._require().content

    @property
    def compressed_content(self) -> bytes:
        return self._require().compressed_content

    @property
    def fingerprint(self) -> bytes:
        return self._require().fingerprint

    @property
    def fingerprint_hex(self) -> str:
        return self._require().fingerprint_hex

    @property
    def content_type(self) -> str:
        return self._require().content_type


class Assets:
    """Registry of virtual paths, their fingerprints and compiled templates.

    A single re-entrant lock guards the lookup tables, the preprocessor chains,
    the template function table and the template cache. Materialization itself
    runs outside that lock, serialized per entry, so slow reads or nested
    lookups never block unrelated callers.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        compress_level: int = _content.DEFAULT_COMPRESS_LEVEL,
        default_preprocessors: bool = True,
    ) -> None:
        self._base_url = base_url
        self.compress_level = compress_level
        self._lock = threading.RLock()
        self._version = 0
        self._preprocessors: dict[str, list[Preprocessor]] = {}
        self._entries: dict[str, AssetEntry] = {}
        self._fingerprints: dict[str, AssetEntry] = {}
        self._waiting: dict[int, AssetEntry] = {}
        self._template_funcs: dict[str, Callable[..., Any]] = builtin_functions(self)
        self.templates = TemplateCache(self)

        if default_preprocessors:
            self.add_preprocessor(".css", css_url_preprocessor)
            self.add_preprocessor(".css", source_map_preprocessor)

    @classmethod
    def from_config(cls, config: SiteConfig) -> Assets:
        """Build a registry populated with the mounts and files of ``config``."""
        assets = cls(config.base_url, compress_level=config.compress_level)
        for mount in config.mounts:
            assets.register_directory(mount.source, mount.prefix)
        for item in config.files:
            assets.register_file(item.source, item.path)
        return assets

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, virtual_path: object) -> bool:
        with self._lock:
            return virtual_path in self._entries

    def virtual_paths(self) -> list[str]:
        """Return the registered virtual paths in sorted order."""
        with self._lock:
            return sorted(self._entries)

    # Registration -------------------------------------------------------

    def register_file(self, source: Path | str, virtual_path: str) -> None:
        """Register ``source`` under ``virtual_path``, replacing any previous entry."""
        entry = AssetEntry(virtual_path=virtual_path, source=Path(source))
        with self._lock:
            self._entries[virtual_path] = entry
            self._version += 1
            version = self._version
        logger.debug("Registered %s -> %s (version %d)", virtual_path, source, version)

    def register_directory(self, directory: Path | str, virtual_prefix: str) -> int:
        """Register every regular file below ``directory`` under ``virtual_prefix``.

        Nothing is registered when the walk fails. Returns the number of
        registered files.
        """
        root = Path(directory)
        if not root.is_dir():
            raise AssetTraversalError(f"Asset directory does not exist: {root}")

        errors: list[OSError] = []
        found: list[tuple[Path, str]] = []
        for current, dirnames, filenames in os.walk(root, onerror=errors.append):
            if errors:
                break
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(current) / name
                if not path.is_file():
                    continue
                found.append((path, virtual_prefix + path.relative_to(root).as_posix()))

        if errors:
            raise AssetTraversalError(f"Unable to walk '{root}': {errors[0]}") from errors[0]

        for source, virtual_path in found:
            self.register_file(source, virtual_path)
        logger.debug("Registered %d file(s) from %s under %s", len(found), root, virtual_prefix)
        return len(found)

    def add_preprocessor(self, extension: str, processor: Preprocessor) -> None:
        """Append ``processor`` to the chain applied to files ending in ``extension``."""
        with self._lock:
            self._preprocessors.setdefault(extension, []).append(processor)

    def clear_preprocessors(self, extension: str) -> None:
        """Drop every preprocessor registered for ``extension``."""
        with self._lock:
            self._preprocessors.pop(extension, None)

    def preprocessors(self, extension: str) -> tuple[Preprocessor, ...]:
        """Return a snapshot of the chain registered for ``extension``."""
        with self._lock:
            return tuple(self._preprocessors.get(extension, ()))

    def set_template_func(self, name: str, func: Callable[..., Any]) -> None:
        """Expose ``func`` to templates compiled from now on."""
        with self._lock:
            self._template_funcs[name] = func

    def template_functions(self) -> dict[str, Callable[..., Any]]:
        """Return a snapshot of the template function table."""
        with self._lock:
            return dict(self._template_funcs)

    # Resolution ---------------------------------------------------------

    def resolve(self, virtual_path: str) -> AssetEntry:
        """Return the materialized entry registered at ``virtual_path``."""
        with self._lock:
            entry = self._entries.get(virtual_path)
        if entry is None:
            raise AssetNotFoundError(virtual_path)
        if entry.asset is not None:
            return entry

        self._acquire(entry)
        try:
            if entry.asset is None:
                self._materialize(entry)
        finally:
            with self._lock:
                entry._owner = None
            entry._gate.release()
        return entry

    def public_url(self, virtual_path: str) -> str:
        """Return the fingerprinted URL of ``virtual_path``."""
        return self._base_url + self.resolve(virtual_path).fingerprint_hex

    def lookup_fingerprint(self, fingerprint_hex: str) -> AssetEntry | None:
        """Return the entry published under ``fingerprint_hex`` if any."""
        with self._lock:
            return self._fingerprints.get(fingerprint_hex)

    def _acquire(self, entry: AssetEntry) -> None:
        me = threading.get_ident()
        with self._lock:
            self._check_cycle(entry, me)
            self._waiting[me] = entry
        entry._gate.acquire()
        with self._lock:
            del self._waiting[me]
            entry._owner = me

    def _check_cycle(self, entry: AssetEntry, me: int) -> None:
        # Follow owner -> awaited entry -> owner edges; reaching ``me`` closes a cycle.
        chain = [entry.virtual_path]
        owner = entry._owner
        visited: set[int] = set()
        while owner is not None and owner not in visited:
            if owner == me:
                trail = [*_RESOLVING.get(), *chain]
                raise ReferenceCycleError(trail[trail.index(chain[-1]) :])
            visited.add(owner)
            awaited = self._waiting.get(owner)
            if awaited is None:
                return
            chain.append(awaited.virtual_path)
            owner = awaited._owner

    def _materialize(self, entry: AssetEntry) -> None:
        raw = _content.read_source(entry.source)
        chain = self.preprocessors(entry.source.suffix)

        token = _RESOLVING.set((*_RESOLVING.get(), entry.virtual_path))
        try:
            processed = self._preprocess(entry.virtual_path, raw, chain)
        finally:
            _RESOLVING.reset(token)

        digest = _content.fingerprint(processed)
        asset = Asset(
            content=processed,
            compressed_content=_content.compress(processed, self.compress_level),
            fingerprint=digest,
            fingerprint_hex=digest.hex(),
            content_type=_content.detect_content_type(entry.source, raw),
        )
        entry.asset = asset
        with self._lock:
            self._fingerprints[asset.fingerprint_hex] = entry
        logger.debug(
            "Materialized %s (%d bytes, %s)",
            entry.virtual_path,
            len(processed),
            asset.fingerprint_hex,
        )

    def _preprocess(
        self, virtual_path: str, content: bytes, chain: Sequence[Preprocessor]
    ) -> bytes:
        for processor in chain:
            try:
                result = processor(self, virtual_path, content)
            except SitekitError:
                raise
            except Exception as exc:
                name = getattr(processor, "__name__", repr(processor))
                raise PreprocessingError(
                    f"Preprocessor {name} failed on '{virtual_path}': {exc}"
                ) from exc
            if not isinstance(result, (bytes, bytearray, memoryview)):
                raise PreprocessingError(
                    f"Preprocessor returned {type(result).__name__} for '{virtual_path}', "
                    "expected bytes."
                )
            content = bytes(result)
        return content

    # Templates and HTTP -------------------------------------------------

    def compiled_template(self, paths: Sequence[str]) -> TemplateNamespace:
        """Return the merged template namespace compiled from ``paths``."""
        return self.templates.compiled(paths)

    def render_named(
        self,
        paths: Sequence[str],
        name: str | None,
        data: Mapping[str, Any] | None = None,
    ) -> HTMLResponse:
        """Render template ``name`` of ``paths`` into an HTML response."""
        from .http import render_template_response

        return render_template_response(self, paths, name, data)

    def render(self, paths: Sequence[str], data: Mapping[str, Any] | None = None) -> HTMLResponse:
        """Render the last template of ``paths`` into an HTML response."""
        return self.render_named(paths, None, data)

    def serve(self, url: str, headers: Mapping[str, str] | None = None) -> Response:
        """Return the HTTP response for a fingerprinted ``url``."""
        from .http import serve_asset

        return serve_asset(self, url, headers)


__all__ = [
    "DEFAULT_BASE_URL",
    "Asset",
    "AssetEntry",
    "Assets",
    "Preprocessor",
]
