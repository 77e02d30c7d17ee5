"""monobuild - Workspace build orchestration around an external bundler.

This package resolves declarative build targets per workspace package,
drives a bundler to produce output artifacts, and keeps file watchers in
sync with the bundler-reported input files in watch mode.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
