"""Tests for system prompt rendering."""

from cartpilot.agent.prompts import (
    load_system_prompt,
    render_tools_list,
)
from cartpilot.tools import ToolRegistry
from cartpilot.tools.get_time import GetTimeTool


def test_empty_registry_renders_placeholder_line() -> None:
    assert render_tools_list(ToolRegistry()) == "- No tools currently available"


def test_default_prompt_lists_tools() -> None:
    registry = ToolRegistry()
    registry.register(GetTimeTool())

    prompt = load_system_prompt(registry)

    assert "{{TOOLS_LIST}}" not in prompt
    assert "- **get_current_time**: Get the current date and time." in prompt


def test_prompt_template_from_file(tmp_path) -> None:
    template = tmp_path / "prompt.md"
    template.write_text("Tools:\n{{TOOLS_LIST}}\nBye", encoding="utf-8")

    prompt = load_system_prompt(ToolRegistry(), str(template))

    assert prompt == "Tools:\n- No tools currently available\nBye"
