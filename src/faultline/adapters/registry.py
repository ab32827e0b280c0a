from __future__ import annotations

import importlib
from collections.abc import Iterable, Iterator
from types import ModuleType
from typing import Any

from faultline.adapters.architecture import madge_adapter
from faultline.adapters.base import Adapter, check_adapter
from faultline.adapters.dependency import npm_audit_adapter
from faultline.adapters.formal import cbmc_adapter
from faultline.adapters.runtime import datadog_adapter
from faultline.adapters.static import (
    bandit_adapter,
    eslint_adapter,
    sarif_adapter,
    semgrep_adapter,
    sonarqube_adapter,
    unified_adapter,
)
from faultline.config import ConfigurationError


class AdapterUnavailable(LookupError):
    """Raised when a run asks for a tool no registered adapter handles."""


class PluginLoadError(RuntimeError):
    """Raised when a configured plugin cannot be imported or doesn't expose adapters."""


def builtin_adapters() -> tuple[Adapter, ...]:
    return (
        unified_adapter(),
        semgrep_adapter(),
        sarif_adapter(),
        sonarqube_adapter(),
        eslint_adapter(),
        bandit_adapter(),
        npm_audit_adapter(),
        datadog_adapter(),
        madge_adapter(),
        cbmc_adapter(),
    )


class AdapterRegistry:
    """Adapters available to one run. Built per core; never shared process-wide."""

    def __init__(self, adapters: Iterable[Adapter] = ()) -> None:
        self._by_name: dict[str, Adapter] = {}
        for adapter in adapters:
            self.register(adapter)

    @classmethod
    def with_builtins(cls, plugin_specs: Iterable[str] = ()) -> AdapterRegistry:
        registry = cls(builtin_adapters())
        for adapter in load_plugin_adapters(tuple(plugin_specs)):
            registry.register(adapter)
        return registry

    def register(self, adapter: Adapter) -> None:
        check_adapter(adapter)
        if adapter.name in self._by_name:
            raise ConfigurationError(f"Duplicate adapter name: {adapter.name}")
        self._by_name[adapter.name] = adapter

    def get(self, name: str) -> Adapter:
        key = name.strip().lower()
        adapter = self._by_name.get(key)
        if adapter is None:
            known = ", ".join(sorted(self._by_name))
            raise AdapterUnavailable(f"No adapter registered for {name!r}. Known adapters: {known}.")
        return adapter

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._by_name

    def __iter__(self) -> Iterator[Adapter]:
        return iter(self._by_name[name] for name in sorted(self._by_name))

    def __len__(self) -> int:
        return len(self._by_name)


def load_plugin_adapters(plugin_specs: tuple[str, ...]) -> list[Adapter]:
    """
    Import adapters from `module` or `module:attribute` specs.

    A module exports `faultline_adapters()` or `ADAPTERS`; an attribute may be
    an adapter, a list of adapters, or a callable returning either.
    """

    adapters: list[Adapter] = []
    for raw_spec in plugin_specs:
        spec = raw_spec.strip()
        if not spec:
            continue
        adapters.extend(_load_one(spec))
    return adapters


def _load_one(spec: str) -> list[Adapter]:
    module_name, sep, attr = spec.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise PluginLoadError(f"Failed to import plugin module {module_name!r}: {exc}") from exc

    if sep:
        try:
            obj: Any = getattr(module, attr)
        except AttributeError as exc:
            raise PluginLoadError(f"Plugin module {module_name!r} has no attribute {attr!r}") from exc
    else:
        obj = module
    return list(_extract_adapters(obj))


def _extract_adapters(obj: Any) -> Iterable[Adapter]:
    if isinstance(obj, Adapter):
        return [obj]

    if isinstance(obj, ModuleType):
        if hasattr(obj, "faultline_adapters"):
            return _extract_adapters(obj.faultline_adapters)
        if hasattr(obj, "ADAPTERS"):
            return _extract_adapters(obj.ADAPTERS)
        raise PluginLoadError("Plugin module must define `faultline_adapters()` or `ADAPTERS`.")

    if callable(obj):
        return _extract_adapters(obj())

    if isinstance(obj, list | tuple):
        out: list[Adapter] = []
        for item in obj:
            if not isinstance(item, Adapter):
                raise PluginLoadError(f"Plugin adapters must be Adapter records, got: {type(item).__name__}")
            out.append(item)
        return out

    raise PluginLoadError(f"Unsupported plugin export type: {type(obj).__name__}")
