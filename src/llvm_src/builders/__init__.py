"""Builder contracts and the CMake/Ninja implementation."""

from .base import Builder, marker_matches
from .cmake import BuildInvoker, build_command, configure_command, format_option

__all__ = [
    "BuildInvoker",
    "Builder",
    "build_command",
    "configure_command",
    "format_option",
    "marker_matches",
]
