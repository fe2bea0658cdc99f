"""Dispatches tool calls to a :class:`~cartpilot.tools.ToolRegistry` and wraps errors."""

import logging
from typing import (
    Any,
    Mapping,
)

from cartpilot.tools import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolExecutionError):
    """Raised when the requested tool is not registered."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, f'Tool "{tool_name}" not found')


async def execute_tool(
    registry: ToolRegistry, name: str, args: Mapping[str, Any] | None = None
) -> str:
    """
    Look up *name* in *registry* and invoke it with *args*.

    Parameters
    ----------
    registry:
        The registry to resolve the tool from.
    name:
        The registered tool name.
    args:
        Parsed arguments passed verbatim to ``Tool.execute``.  If *None*, an empty dict is assumed.

    Returns
    -------
    str
        Whatever text the tool returns.

    Raises
    ------
    ToolNotFoundError
        If the tool is missing.
    ToolExecutionError
        If the tool raises an exception.
    """

    if args is None:
        args = {}

    tool = registry.get(name)
    if tool is None:
        raise ToolNotFoundError(name)

    try:
        logger.debug("Executing tool '%s' with args=%s", name, args)
        return await tool.execute(args)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", name)
        raise ToolExecutionError(name, f"Error executing tool: {exc}") from exc
