"""Registry of project editing tools."""

from . import errors, project_tools, tool_registry

__all__ = ["errors", "project_tools", "tool_registry"]
