"""Bundler plugin declarations."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from monobuild.factory.common import BuildContext, resolve_options
from monobuild.factory.container import EntityContainer
from monobuild.factory.entity import Entity

PluginFactory = Callable[[dict[str, Any], BuildContext], Any]
H = TypeVar("H", bound="PluginHost")


@dataclasses.dataclass(eq=False, repr=False)
class PluginDefinition(Entity):
    """A plugin attached to an input or output.

    The ``factory`` is called with the resolved options and the build context
    when targets are resolved, and returns the object handed to the bundler.
    """

    factory: PluginFactory | None = None

    kind = "Plugin"

    def create(self, context: BuildContext) -> Any:
        """Instantiate the bundler plugin for ``context``."""
        if self.factory is None:
            raise ValueError(f"Plugin '{self.name}' has no factory")
        return self.factory(resolve_options(self.config, context), context)


def define_plugin(name: str, factory: PluginFactory, **options: Any) -> PluginDefinition:
    """Declare a plugin.

    Args:
        name: Unique name of the plugin within its owner.
        factory: Callable ``(options, context) -> plugin``.
        **options: Initial plugin options.

    Returns:
        Draft plugin definition.
    """
    return PluginDefinition(name=name, config=dict(options), factory=factory)


def _plugin_container() -> EntityContainer[PluginDefinition]:
    return EntityContainer(kind=PluginDefinition.kind)


@dataclasses.dataclass(eq=False, repr=False)
class PluginHost(Entity):
    """An entity owning a container of plugins (inputs and outputs)."""

    plugin_container: EntityContainer[PluginDefinition] = dataclasses.field(
        default_factory=_plugin_container
    )

    @property
    def plugins(self) -> Mapping[str, PluginDefinition]:
        return self.plugin_container.entity_map

    def plugin(self: H, plugin: PluginDefinition) -> H:
        """Attach a plugin.

        A draft returns a new entity; a sealed entity registers the plugin in
        place, so references captured before finalization see it.

        Raises:
            DuplicateNameError: If a plugin with the same name is attached.
        """
        return self._update(plugin_container=self.plugin_container.add(plugin))

    def _finalize_parts(self) -> dict[str, Any]:
        return {"plugin_container": self.plugin_container.finalize()}

    def resolve(self, context: BuildContext) -> dict[str, Any]:
        """Resolve the options handed to the bundler, including plugins."""
        options = resolve_options(self.config, context)
        if len(self.plugin_container):
            options["plugins"] = [
                *options.get("plugins", []),
                *(plugin.create(context) for plugin in self.plugin_container),
            ]
        return options


__all__ = ["PluginDefinition", "PluginFactory", "PluginHost", "define_plugin"]
