"""Target declarations and their registration from build-config modules.

A build-config module composes inputs and outputs into targets and registers
them while it is being loaded by the builder::

    from monobuild.factory import define_input, define_output, define_target
    from monobuild.factory import register_targets

    register_targets(
        define_target(
            "main",
            define_input("main", input="src/index.ts"),
            [define_output("esm", dir="dist", format="esm")],
        )
    )
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from monobuild.build.registry import add_build_task
from monobuild.factory.common import BuildContext, BuildTarget, BuildTask
from monobuild.factory.container import EntityContainer
from monobuild.factory.entity import Entity
from monobuild.factory.input import InputDefinition
from monobuild.factory.output import OutputDefinition


def _output_container() -> EntityContainer[OutputDefinition]:
    return EntityContainer(kind=OutputDefinition.kind)


@dataclasses.dataclass(eq=False, repr=False)
class TargetDefinition(Entity):
    """A declared target: one input and a container of outputs."""

    input: InputDefinition | None = None
    output_container: EntityContainer[OutputDefinition] = dataclasses.field(
        default_factory=_output_container
    )

    kind = "Target"

    @property
    def outputs(self) -> Mapping[str, OutputDefinition]:
        return self.output_container.entity_map

    def output(self, output: OutputDefinition) -> TargetDefinition:
        """Add an output; copy-on-write while a draft, in place once sealed."""
        return self._update(output_container=self.output_container.add(output))

    def _finalize_parts(self) -> dict[str, Any]:
        parts: dict[str, Any] = {"output_container": self.output_container.finalize()}
        if self.input is not None:
            parts["input"] = self.input.finalize()
        return parts


def define_target(
    name: str,
    input_definition: InputDefinition,
    outputs: Iterable[OutputDefinition] = (),
) -> TargetDefinition:
    """Declare a target.

    Raises:
        DuplicateNameError: If two outputs share a name.
    """
    target = TargetDefinition(name=name, input=input_definition)
    for output in outputs:
        target = target.output(output)
    return target


def resolve_target(definition: TargetDefinition, context: BuildContext) -> BuildTarget:
    """Seal a target definition and resolve it into bundler options.

    Raises:
        ValueError: If the target has no input or no outputs.
    """
    definition = definition.finalize()
    if definition.input is None:
        raise ValueError(f"Target '{definition.name}' has no input")
    if not definition.outputs:
        raise ValueError(f"Target '{definition.name}' has no outputs")

    return BuildTarget(
        name=definition.name,
        input=definition.input.resolve(context),
        outputs=tuple(output.resolve(context) for output in definition.output_container),
    )


def register_targets(*definitions: TargetDefinition) -> BuildTask:
    """Register a build task producing ``definitions``.

    Raises:
        RegistrationOutsideBuildError: If no build config is being loaded.
    """

    async def task(context: BuildContext) -> Sequence[BuildTarget]:
        return [resolve_target(definition, context) for definition in definitions]

    return add_build_task(task)


def register_glob_targets(
    patterns: str | Sequence[str],
    make_target: Callable[[str], TargetDefinition],
) -> BuildTask:
    """Register a task producing one target per file matching ``patterns``.

    Paths are matched relative to the package directory, and targets keep the
    order in which the file system yields matches.

    Raises:
        RegistrationOutsideBuildError: If no build config is being loaded.
    """

    async def task(context: BuildContext) -> Sequence[BuildTarget]:
        definitions = [
            make_target(path) async for path in context.fs.glob(patterns, cwd=context.cwd)
        ]
        return [resolve_target(definition, context) for definition in definitions]

    return add_build_task(task)


__all__ = [
    "TargetDefinition",
    "define_target",
    "register_glob_targets",
    "register_targets",
    "resolve_target",
]
