"""Jinja template namespaces compiled from registered assets.

A namespace merges several template files, addressed by their virtual
paths, into one set of named templates: every file is available under its
own path and each of its ``{% block %}`` definitions under the block name.
Names are claimed first-come, so earlier paths shadow later ones. The
merged set is also the scope templates render in: whichever member is
rendered, every block name resolves to its winning definition, and
``{% include "name" %}`` accepts block names as well as virtual paths.

Compiled namespaces are cached by their ordered path list and dropped
wholesale whenever the registry version moves on.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from jinja2 import (
    BaseLoader,
    Environment,
    Template,
    TemplateNotFound,
    TemplateSyntaxError,
    select_autoescape,
)
from jinja2.runtime import Context
from markupsafe import Markup

from .exceptions import (
    AssetNotFoundError,
    SitekitError,
    TemplateArgumentError,
    TemplateCompileError,
    TemplateError,
    TemplateExecutionError,
)


if TYPE_CHECKING:  # pragma: no cover - typing only
    from .registry import Assets


logger = logging.getLogger(__name__)


def _require_rooted(virtual_path: Any) -> str:
    if not isinstance(virtual_path, str) or not virtual_path.startswith("/"):
        raise TemplateArgumentError("path argument must start with '/'")
    return virtual_path


def builtin_functions(assets: Assets) -> dict[str, Callable[..., Any]]:
    """Return the functions every template namespace starts with."""

    def jscode(text: str) -> Markup:
        return Markup(text)

    def asset(virtual_path: str) -> str:
        return assets.public_url(_require_rooted(virtual_path))

    def assetinline(virtual_path: str) -> Markup:
        entry = assets.resolve(_require_rooted(virtual_path))
        return Markup(entry.content.decode("utf-8"))

    return {"jscode": jscode, "asset": asset, "assetinline": assetinline}


class RegistryLoader(BaseLoader):
    """Jinja loader reading template sources from the asset registry."""

    def __init__(self, assets: Assets) -> None:
        self._assets = assets

    def get_source(
        self, environment: Environment, template: str
    ) -> tuple[str, str | None, Callable[[], bool]]:
        namespace = getattr(environment, "namespace", None)
        named = namespace.lookup(template) if namespace is not None else None
        if named is not None and named.block is not None:
            # Stub whose block is swapped for the winning definition at render time.
            return f"{{% block {named.block} %}}{{% endblock %}}", None, lambda: True

        try:
            entry = self._assets.resolve(template)
        except AssetNotFoundError as exc:
            raise TemplateNotFound(template) from exc
        # Namespaces are discarded on registry changes, sources never go stale.
        return entry.content.decode("utf-8"), template, lambda: True


class NamespaceTemplate(Template):
    """Template whose contexts see the block table of its namespace."""

    def new_context(
        self,
        vars: dict[str, Any] | None = None,
        shared: bool = False,
        locals: Mapping[str, Any] | None = None,
    ) -> Context:
        context = super().new_context(vars, shared, locals)
        namespace = getattr(self.environment, "namespace", None)
        if namespace is not None:
            namespace.install_blocks(context)
        return context


class NamespaceEnvironment(Environment):
    """Environment bound to the namespace it compiles templates for."""

    template_class = NamespaceTemplate
    namespace: TemplateNamespace | None = None


def _build_environment(
    assets: Assets, functions: Mapping[str, Callable[..., Any]]
) -> NamespaceEnvironment:
    environment = NamespaceEnvironment(
        loader=RegistryLoader(assets),
        autoescape=select_autoescape(enabled_extensions=("html", "htm", "xml", "svg")),
        keep_trailing_newline=True,
    )
    environment.globals.update(functions)
    return environment


@dataclass(frozen=True, slots=True)
class NamedTemplate:
    """A renderable member of a namespace."""

    name: str
    source_path: str
    template: Template
    block: str | None = None


class TemplateNamespace:
    """Merged set of named templates compiled from an ordered path list."""

    def __init__(
        self,
        paths: Sequence[str],
        environment: Environment,
        functions: Mapping[str, Callable[..., Any]],
    ) -> None:
        self.paths = tuple(paths)
        self.environment = environment
        self.functions = MappingProxyType(dict(functions))
        self._templates: dict[str, NamedTemplate] = {}

    def add(self, name: str, source_path: str, template: Template, block: str | None = None) -> bool:
        """Register ``name`` unless it is already taken; return whether it was added."""
        if name in self._templates:
            return False
        self._templates[name] = NamedTemplate(name, source_path, template, block)
        return True

    def lookup(self, name: str) -> NamedTemplate | None:
        return self._templates.get(name)

    def names(self) -> list[str]:
        return list(self._templates)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __iter__(self) -> Iterator[str]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)

    def install_blocks(self, context: Context) -> None:
        """Put the winning definition of every block name on top of ``context``."""
        for named in self._templates.values():
            if named.block is None:
                continue
            winner = named.template.blocks[named.block]
            stack = context.blocks.get(named.name)
            if not stack:
                context.blocks[named.name] = [winner]
            elif stack[0] is not winner:
                context.blocks[named.name] = [winner, *stack]

    def render(self, name: str, data: Mapping[str, Any] | None = None) -> str:
        """Render the template registered as ``name`` against ``data``."""
        named = self._templates.get(name)
        if named is None:
            raise TemplateExecutionError(f"template: no template {name!r} in namespace")

        variables = dict(data) if data is not None else {}
        try:
            if named.block is None:
                return named.template.render(variables)
            context = named.template.new_context(variables)
            render_block = context.blocks[named.block][0]
            return self.environment.concat(render_block(context))
        except TemplateError:
            raise
        except Exception as exc:
            raise TemplateExecutionError(f"{named.source_path}: {name}: {exc}") from exc


class TemplateCache:
    """Cache of compiled namespaces keyed by their ordered path list."""

    def __init__(self, assets: Assets) -> None:
        self._assets = assets
        self._namespaces: dict[tuple[str, ...], TemplateNamespace] = {}
        self._version = 0

    @property
    def version(self) -> int:
        """Registry version the cached namespaces were built against."""
        with self._assets._lock:
            return self._version

    def __len__(self) -> int:
        with self._assets._lock:
            return len(self._namespaces)

    def compiled(self, paths: Sequence[str]) -> TemplateNamespace:
        """Return the namespace for ``paths``, compiling it on a cache miss."""
        key = tuple(paths)
        with self._assets._lock:
            version = self._assets.version
            if version != self._version:
                if self._namespaces:
                    logger.debug(
                        "Discarding %d compiled namespace(s) (version %d -> %d)",
                        len(self._namespaces),
                        self._version,
                        version,
                    )
                self._namespaces = {}
                self._version = version
            cached = self._namespaces.get(key)
            functions = self._assets.template_functions()
        if cached is not None:
            return cached

        namespace = self._build(key, functions)
        with self._assets._lock:
            if self._version == version == self._assets.version:
                namespace = self._namespaces.setdefault(key, namespace)
        return namespace

    def _build(
        self, paths: tuple[str, ...], functions: Mapping[str, Callable[..., Any]]
    ) -> TemplateNamespace:
        environment = _build_environment(self._assets, functions)
        namespace = TemplateNamespace(paths, environment, functions)
        environment.namespace = namespace
        for path in paths:
            if not path:
                continue
            self._assets.resolve(path)
            try:
                template = environment.get_template(path)
            except TemplateSyntaxError as exc:
                raise TemplateCompileError(f"{path}: {exc}") from exc
            except UnicodeDecodeError as exc:
                raise TemplateCompileError(f"{path}: template is not valid UTF-8") from exc
            except SitekitError:
                raise
            except Exception as exc:
                raise TemplateCompileError(f"{path}: {exc}") from exc

            namespace.add(path, path, template)
            for block_name in template.blocks:
                namespace.add(block_name, path, template, block_name)
        logger.debug("Compiled template namespace %s (%d names)", list(paths), len(namespace))
        return namespace


__all__ = [
    "NamedTemplate",
    "NamespaceEnvironment",
    "NamespaceTemplate",
    "RegistryLoader",
    "TemplateCache",
    "TemplateNamespace",
    "builtin_functions",
]
