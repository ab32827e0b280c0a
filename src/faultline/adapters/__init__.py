from __future__ import annotations

from faultline.adapters.base import (
    CATEGORY_ANALYSIS_TYPES,
    CATEGORY_CONFIDENCE,
    GENERIC_SEVERITY_MAP,
    Adapter,
    check_adapter,
    make_adapter,
)
from faultline.adapters.registry import (
    AdapterRegistry,
    AdapterUnavailable,
    PluginLoadError,
    builtin_adapters,
    load_plugin_adapters,
)

__all__ = [
    "CATEGORY_ANALYSIS_TYPES",
    "CATEGORY_CONFIDENCE",
    "GENERIC_SEVERITY_MAP",
    "Adapter",
    "AdapterRegistry",
    "AdapterUnavailable",
    "PluginLoadError",
    "builtin_adapters",
    "check_adapter",
    "load_plugin_adapters",
    "make_adapter",
]
