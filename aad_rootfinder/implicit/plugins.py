"""
Explicit plugin registry.

Solver variants are looked up by name at construction time. A missing name is
a ConfigurationError raised before any work is done.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class Plugin:
    name: str
    factory: Callable
    doc: str = ""


class PluginRegistry:
    """Maps a plugin name to a factory for one kind of component."""

    def __init__(self, kind: str):
        self.kind = kind
        self._plugins: Dict[str, Plugin] = {}

    def register(self, name: str, factory: Callable, doc: str = "") -> Callable:
        if name in self._plugins:
            raise ConfigurationError(f"{self.kind} plugin '{name}' is already registered")
        self._plugins[name] = Plugin(name=name, factory=factory, doc=doc or (factory.__doc__ or ""))
        return factory

    def has(self, name: str) -> bool:
        return name in self._plugins

    def names(self) -> List[str]:
        return sorted(self._plugins)

    def load(self, name: str) -> Plugin:
        try:
            return self._plugins[name]
        except KeyError:
            raise ConfigurationError(
                f"No {self.kind} plugin named '{name}'. Available: {self.names()}"
            ) from None

    def get(self, name: str) -> Callable:
        return self.load(name).factory

    def doc(self, name: str) -> str:
        return self.load(name).doc

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __repr__(self):
        return f"PluginRegistry({self.kind!r}, {self.names()})"
