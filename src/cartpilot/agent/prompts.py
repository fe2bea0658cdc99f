"""System prompt template loading."""

import logging
from functools import lru_cache
from pathlib import Path

from cartpilot.tools import ToolRegistry

logger = logging.getLogger(__name__)

TOOLS_PLACEHOLDER = "{{TOOLS_LIST}}"

DEFAULT_SYSTEM_PROMPT = """\
You are CartPilot, a friendly shopping assistant inside a mobile app.
You help users find products, compare them, and manage their shopping cart.

## Available tools
{{TOOLS_LIST}}

## Guidelines
- Use tools to look up real product data; never invent prices, SKUs or availability.
- When you mention a specific product, show it with [Product(SKU)].
- If the user is holding a product they cannot name, ask them to scan it with request_scan.
- Keep answers short and practical; ask a clarifying question when the request is ambiguous.
"""


@lru_cache(maxsize=8)
def _read_template(path: str) -> str:
    logger.debug("Loading system prompt template from %s", path)
    return Path(path).read_text(encoding="utf-8")


def render_tools_list(registry: ToolRegistry) -> str:
    """Bullet list of ``**name**: description`` entries for every registered tool."""
    if not registry:
        return "- No tools currently available"
    return "\n".join(f"- **{tool.name}**: {tool.description}" for tool in registry)


def load_system_prompt(registry: ToolRegistry, path: str | None = None) -> str:
    """
    Return the system prompt with the tool list filled in.

    Parameters
    ----------
    registry:
        Tools to list in the prompt.
    path:
        Optional template file.  Without one, :data:`DEFAULT_SYSTEM_PROMPT` is used.
    """
    template = _read_template(path) if path else DEFAULT_SYSTEM_PROMPT
    return template.replace(TOOLS_PLACEHOLDER, render_tools_list(registry))
