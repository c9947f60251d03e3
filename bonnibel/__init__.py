"""Bonnibel - a meta-build generator for Ninja.

This package reads a declarative module/target graph, resolves module
dependencies, and renders Ninja build files from Jinja2 templates. It also
manages a local cache of external source overlays.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
