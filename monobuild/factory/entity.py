"""Named configuration entities.

An entity starts out as a draft: every mutating method returns a structural
copy and leaves the receiver untouched, so declarations can be built up as a
fluent chain. Once finalized, the entity is sealed and mutating methods change
the same object in place. This lets late additions (for instance a plugin
attaching itself to an output captured earlier) take effect without the caller
re-binding its reference.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, TypeVar

E = TypeVar("E", bound="Entity")

ConfigUpdate = Callable[[dict[str, Any]], Mapping[str, Any] | None]


class EntityState(str, Enum):
    """Mutation strategy of an entity or container."""

    DRAFT = "draft"
    SEALED = "sealed"


def _copy_update(target: Any, changes: dict[str, Any]) -> Any:
    return dataclasses.replace(target, **changes)


def _in_place_update(target: Any, changes: dict[str, Any]) -> Any:
    for key, value in changes.items():
        setattr(target, key, value)
    return target


UPDATE_STRATEGIES: dict[EntityState, Callable[[Any, dict[str, Any]], Any]] = {
    EntityState.DRAFT: _copy_update,
    EntityState.SEALED: _in_place_update,
}


@dataclasses.dataclass(eq=False)
class Entity:
    """A named, configurable declaration.

    Attributes:
        name: Identity of the entity within its owning container.
        config: Options understood by the bundler.
        state: Draft (copy-on-write) or sealed (mutate in place).
    """

    name: str
    config: dict[str, Any] = dataclasses.field(default_factory=dict)
    state: EntityState = EntityState.DRAFT

    kind = "Entity"

    @property
    def is_final(self) -> bool:
        return self.state is EntityState.SEALED

    def _update(self: E, **changes: Any) -> E:
        """Apply field changes using the strategy of the current state."""
        return UPDATE_STRATEGIES[self.state](self, changes)

    def configure(self: E, fn: ConfigUpdate) -> E:
        """Apply ``fn`` to the configuration.

        ``fn`` receives a copy of the current config and returns the new
        mapping, or ``None`` to keep the (possibly mutated) copy.
        """
        config = dict(self.config)
        result = fn(config)
        if result is not None:
            config = dict(result)
        return self._update(config=config)

    def configure_values(self: E, **values: Any) -> E:
        """Merge ``values`` into the configuration."""
        return self.configure(lambda config: {**config, **values})

    def finalize(self: E) -> E:
        """Seal the entity.

        A draft yields a new sealed entity; a sealed entity is returned as is.
        """
        if self.is_final:
            return self
        return dataclasses.replace(self, state=EntityState.SEALED, **self._finalize_parts())

    def _finalize_parts(self) -> dict[str, Any]:
        """Return owned parts to replace when sealing (containers)."""
        return {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, state={self.state.value})"


def create_entity(name: str, config: Mapping[str, Any] | None = None) -> Entity:
    """Create a new draft entity."""
    return Entity(name=name, config=dict(config or {}))


__all__ = [
    "ConfigUpdate",
    "Entity",
    "EntityState",
    "UPDATE_STRATEGIES",
    "create_entity",
]
