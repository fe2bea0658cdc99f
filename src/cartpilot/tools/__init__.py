"""
Tool capability and registry for CartPilot.

A tool is a named action the model can invoke.  It describes its arguments with a JSON-Schema
object, so nothing here needs to introspect Python signatures: the registry just maps names to tool
instances and exports the combined function-calling schema sent to the LLM gateway.

The registry is an ordinary object.  Build one at start-up, register every tool on it, and pass it
to whatever needs it:

    registry = ToolRegistry()
    registry.register(GetTimeTool())
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Mapping,
)

logger = logging.getLogger(__name__)


class DuplicateToolError(ValueError):
    """Raised when a tool name is registered twice."""


def format_tool_name(name: str) -> str:
    """Turn a snake_case name into Title Case words: ``search_products`` -> ``Search Products``."""
    return " ".join(word[:1].upper() + word[1:] for word in name.split("_"))


class Tool(ABC):
    """Base class for every capability exposed to the model."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier used in function calls."""

    @property
    @abstractmethod
    def description(self) -> str:
        """What the tool does, written for the model."""

    @property
    @abstractmethod
    def parameters(self) -> Dict[str, Any]:
        """JSON Schema of the arguments object."""

    @property
    def display_name(self) -> str:
        """Short progress label shown while the tool runs."""
        return f"{format_tool_name(self.name)}..."

    @abstractmethod
    async def execute(self, arguments: Mapping[str, Any]) -> str:
        """Run the tool and return text that is fed back to the model."""

    def to_schema(self) -> Dict[str, Any]:
        """Return the function-calling schema for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """Name-keyed collection of tools."""

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> Tool:
        """
        Add *tool* to the registry.

        Parameters
        ----------
        tool:
            The tool instance.  Its ``name`` must not be registered yet.

        Returns
        -------
        Tool
            The same instance, for chaining.

        Raises
        ------
        DuplicateToolError
            If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise DuplicateToolError(f'Tool "{tool.name}" is already registered')
        logger.debug("Registering tool '%s'", tool.name)
        self._tools[tool.name] = tool
        return tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    @property
    def all(self) -> List[Tool]:
        return list(self._tools.values())

    @property
    def tool_schemas(self) -> List[Dict[str, Any]]:
        """Combined schema list in the shape the gateway expects."""
        return [tool.to_schema() for tool in self._tools.values()]

    def display_name(self, name: str) -> str:
        """Progress label for *name*; unknown tools get a formatted fallback."""
        tool = self._tools.get(name)
        if tool is not None:
            return tool.display_name
        return f"{format_tool_name(name)}..."

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self.all)

    def __len__(self) -> int:
        return len(self._tools)
