"""Input declarations."""

from __future__ import annotations

import dataclasses
from typing import Any

from monobuild.factory.plugin import PluginHost


@dataclasses.dataclass(eq=False, repr=False)
class InputDefinition(PluginHost):
    """An input graph declaration (entry points, bundler options, plugins)."""

    kind = "Input"


def define_input(name: str, **options: Any) -> InputDefinition:
    """Declare an input.

    Args:
        name: Name of the input.
        **options: Input options understood by the bundler, e.g. ``input``
            (entry point path, list of paths or mapping of name to path).

    Returns:
        Draft input definition.
    """
    return InputDefinition(name=name, config=dict(options))


__all__ = ["InputDefinition", "define_input"]
