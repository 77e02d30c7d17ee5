"""Ordered, name-keyed entity containers.

Containers follow the same draft/sealed switch as entities: ``add()`` on a
draft returns a new container, ``add()`` on a sealed container mutates it in
place. Names are unique within a container.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Generic, TypeVar

from monobuild.factory.entity import Entity, EntityState

E = TypeVar("E", bound=Entity)


class DuplicateNameError(Exception):
    """Raised when an entity name is already present in a container."""

    def __init__(self, kind: str, name: str, code: str = "duplicate_name") -> None:
        super().__init__(f"{kind} '{name}' is already declared")
        self.kind = kind
        self.name = name
        self.code = code


@dataclasses.dataclass(eq=False)
class EntityContainer(Generic[E]):
    """Ordered mapping of entity name to entity.

    Attributes:
        kind: Label of the contained entities, used in error messages.
        entities: Entities by name, in insertion order.
        state: Draft (copy-on-write) or sealed (mutate in place).
    """

    kind: str
    entities: dict[str, E] = dataclasses.field(default_factory=dict)
    state: EntityState = EntityState.DRAFT

    @property
    def is_final(self) -> bool:
        return self.state is EntityState.SEALED

    @property
    def entity_map(self) -> Mapping[str, E]:
        """Read-only view of the entities, reflecting later sealed additions."""
        return MappingProxyType(self.entities)

    def add(self, entity: E) -> EntityContainer[E]:
        """Add an entity.

        Raises:
            DuplicateNameError: If an entity with the same name exists. The
                container is left unchanged.
        """
        if entity.name in self.entities:
            raise DuplicateNameError(self.kind, entity.name)

        if self.is_final:
            # Sealed containers keep their dict identity so views stay live.
            self.entities[entity.name] = entity.finalize()
            return self
        return dataclasses.replace(self, entities={**self.entities, entity.name: entity})

    def finalize(self) -> EntityContainer[E]:
        """Seal the container and every contained entity."""
        if self.is_final:
            return self
        return dataclasses.replace(
            self,
            state=EntityState.SEALED,
            entities={name: entity.finalize() for name, entity in self.entities.items()},
        )

    def get(self, name: str) -> E | None:
        return self.entities.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.entities

    def __iter__(self) -> Iterator[E]:
        return iter(list(self.entities.values()))

    def __len__(self) -> int:
        return len(self.entities)

    def __repr__(self) -> str:
        names = ", ".join(self.entities)
        return f"EntityContainer(kind={self.kind!r}, state={self.state.value}, [{names}])"


def create_entity_container(kind: str) -> EntityContainer[E]:
    """Create an empty draft container."""
    return EntityContainer(kind=kind)


__all__ = ["DuplicateNameError", "EntityContainer", "create_entity_container"]
