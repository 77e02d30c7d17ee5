"""Output declarations."""

from __future__ import annotations

import dataclasses
from typing import Any

from monobuild.factory.plugin import PluginHost


@dataclasses.dataclass(eq=False, repr=False)
class OutputDefinition(PluginHost):
    """An output artifact declaration (directory or file, format, plugins)."""

    kind = "Output"


def define_output(name: str, **options: Any) -> OutputDefinition:
    """Declare an output.

    Example:
        >>> esm = define_output("esm", dir="dist", format="esm").plugin(banner)

    Args:
        name: Unique name of the output within its target.
        **options: Output options understood by the bundler.

    Returns:
        Draft output definition.
    """
    return OutputDefinition(name=name, config=dict(options))


__all__ = ["OutputDefinition", "define_output"]
