"""Declaration model for build targets.

This module handles:
- Entities and containers with draft/sealed mutation semantics
- Plugin, input, output and target declarations
- Build context, environments and context-dependent configuration
- Target registration from build-config modules
"""

from monobuild.factory.common import (
    BuildCall,
    BuildContext,
    BuildTarget,
    BuildTask,
    Configurator,
    in_env,
    is_env,
)
from monobuild.factory.container import (
    DuplicateNameError,
    EntityContainer,
    create_entity_container,
)
from monobuild.factory.entity import Entity, EntityState, create_entity
from monobuild.factory.input import InputDefinition, define_input
from monobuild.factory.output import OutputDefinition, define_output
from monobuild.factory.plugin import PluginDefinition, PluginHost, define_plugin
from monobuild.factory.target import (
    TargetDefinition,
    define_target,
    register_glob_targets,
    register_targets,
    resolve_target,
)

__all__ = [
    # Context
    "BuildCall",
    "BuildContext",
    "BuildTarget",
    "BuildTask",
    "Configurator",
    "in_env",
    "is_env",
    # Entities
    "DuplicateNameError",
    "Entity",
    "EntityContainer",
    "EntityState",
    "create_entity",
    "create_entity_container",
    # Declarations
    "InputDefinition",
    "OutputDefinition",
    "PluginDefinition",
    "PluginHost",
    "TargetDefinition",
    "define_input",
    "define_output",
    "define_plugin",
    "define_target",
    "register_glob_targets",
    "register_targets",
    "resolve_target",
]
