"""Behavioural tests for :class:`cartpilot.agent.orchestrator.AgentRunner`."""

import asyncio
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Any,
    Dict,
    List,
    Mapping,
)

import pytest
from conftest import (
    ScriptedGateway,
    completion,
)

from cartpilot.agent.gateway import GatewayError
from cartpilot.agent.orchestrator import (
    GATEWAY_FAILURE_REPLY,
    MALFORMED_RESPONSE_REPLY,
    MAX_STEPS_REPLY,
    AgentConfig,
    AgentRunner,
)
from cartpilot.core.schema import (
    Message,
    Role,
)
from cartpilot.tools import (
    Tool,
    ToolRegistry,
)
from cartpilot.tools.get_time import GetTimeTool
from cartpilot.tools.search_products import SearchProductsTool

FIXED_NOW = datetime(2024, 3, 15, 14, 30, 0, tzinfo=timezone.utc)


class ExplodingTool(Tool):
    name = "explode"
    description = "Always fails."
    parameters: Dict[str, Any] = {"type": "object", "properties": {}}

    async def execute(self, arguments: Mapping[str, Any]) -> str:
        raise RuntimeError("kaboom")


@pytest.fixture
def registry() -> ToolRegistry:
    tools = ToolRegistry()
    tools.register(GetTimeTool(clock=lambda: FIXED_NOW))
    tools.register(ExplodingTool())
    return tools


def _run(runner: AgentRunner, user_message: str, history=()) -> List[Message]:
    async def collect() -> List[Message]:
        return [message async for message in runner.run(list(history), user_message)]

    return asyncio.run(collect())


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------
def test_single_tool_round_trip(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway(
        [
            completion("", [("c1", "get_current_time", {})]),
            completion("It's 2:30 PM"),
        ]
    )
    runner = AgentRunner(gateway, registry, AgentConfig(model="test-model"))

    messages = _run(runner, "What time is it?")

    assert len(gateway.calls) == 2
    assert [m.role for m in messages] == [Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
    assert messages[0].tool_calls[0].name == "get_current_time"
    assert messages[1].tool_call_id == "c1"
    assert messages[1].tool_name == "get_current_time"
    assert messages[1].content == "Friday, March 15, 2024 at 14:30:00 (UTC)"
    assert messages[2].content == "It's 2:30 PM"
    assert messages[2].tool_calls is None

    second = gateway.calls[1]
    assert second["model"] == "test-model"
    assert [m["role"] for m in second["messages"]] == ["user", "assistant", "tool"]
    assert second["messages"][2] == {
        "role": "tool",
        "tool_call_id": "c1",
        "content": "Friday, March 15, 2024 at 14:30:00 (UTC)",
    }


def test_plain_answer_needs_one_gateway_call(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway([completion("Hello!")])
    messages = _run(AgentRunner(gateway, registry), "hi")

    assert len(gateway.calls) == 1
    assert len(messages) == 1
    assert messages[0].content == "Hello!"


def test_tool_results_follow_call_order(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway(
        [
            completion(
                "Checking...",
                [
                    ("a", "get_current_time", {"format": "unix"}),
                    ("b", "get_current_time", {"timezone_offset_hours": 5}),
                ],
            ),
            completion("Done"),
        ]
    )
    messages = _run(AgentRunner(gateway, registry), "time twice")

    assert [m.tool_call_id for m in messages if m.role is Role.TOOL] == ["a", "b"]
    assert messages[1].content == str(int(FIXED_NOW.timestamp()))
    assert messages[2].content.endswith("(UTC+5)")
    assert messages[0].content == "Checking..."


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------
def test_unknown_tool_is_reported_to_the_model(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway(
        [
            completion("", [("c1", "nonexistent_tool", {})]),
            completion("Sorry, I can't do that."),
        ]
    )
    messages = _run(AgentRunner(gateway, registry), "do magic")

    assert messages[1].role is Role.TOOL
    assert messages[1].content == 'Tool "nonexistent_tool" not found'
    assert messages[2].content == "Sorry, I can't do that."


def test_tool_exception_becomes_result_text(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway(
        [completion("", [("c1", "explode", {})]), completion("That failed.")]
    )
    messages = _run(AgentRunner(gateway, registry), "explode please")

    assert messages[1].content == "Error executing tool: kaboom"
    assert len(messages) == 3


def test_gateway_failure_ends_run_with_apology(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway([GatewayError("503")])
    messages = _run(AgentRunner(gateway, registry), "hi")

    assert len(messages) == 1
    assert messages[0].role is Role.ASSISTANT
    assert messages[0].content == GATEWAY_FAILURE_REPLY


def test_gateway_failure_after_tool_round(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway(
        [completion("", [("c1", "get_current_time", {})]), GatewayError("boom")]
    )
    messages = _run(AgentRunner(gateway, registry), "hi")

    assert [m.role for m in messages] == [Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
    assert messages[-1].content == GATEWAY_FAILURE_REPLY


@pytest.mark.parametrize("body", [{}, {"choices": []}, {"choices": [{"nope": 1}]}])
def test_malformed_response(registry: ToolRegistry, body) -> None:
    messages = _run(AgentRunner(ScriptedGateway([body]), registry), "hi")

    assert len(messages) == 1
    assert messages[0].content == MALFORMED_RESPONSE_REPLY


def test_null_content_becomes_empty_text(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway(
        [completion(None, [("c1", "get_current_time", {})]), completion("ok")]
    )
    messages = _run(AgentRunner(gateway, registry), "hi")

    assert messages[0].content == ""
    assert gateway.calls[1]["messages"][1]["content"] == ""


def test_unparsable_arguments_run_with_empty_map(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway(
        [completion("", [("c1", "get_current_time", "{not json")]), completion("ok")]
    )
    messages = _run(AgentRunner(gateway, registry), "hi")

    assert messages[0].tool_calls[0].arguments == {}
    assert messages[1].content == "Friday, March 15, 2024 at 14:30:00 (UTC)"


# ---------------------------------------------------------------------------
# Boundedness
# ---------------------------------------------------------------------------
def test_run_is_bounded_by_max_iterations(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway(
        [completion("", [("loop", "get_current_time", {})])], repeat_last=True
    )
    runner = AgentRunner(gateway, registry, AgentConfig(max_iterations=3))
    messages = _run(runner, "loop forever")

    assert len(gateway.calls) == 3
    assert len(messages) == 3 * 2 + 1
    assert messages[-1].role is Role.ASSISTANT
    assert messages[-1].content == MAX_STEPS_REPLY


def test_max_iterations_must_be_positive() -> None:
    with pytest.raises(ValueError):
        AgentConfig(max_iterations=0)


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------
def test_system_prompt_and_history_are_sent(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway([completion("Sure")])
    runner = AgentRunner(gateway, registry, AgentConfig(system_prompt="You are CartPilot."))
    history = [Message.user("earlier"), Message.assistant("earlier reply")]

    _run(runner, "now", history)

    sent = gateway.calls[0]["messages"]
    assert sent == [
        {"role": "system", "content": "You are CartPilot."},
        {"role": "user", "content": "earlier"},
        {"role": "assistant", "content": "earlier reply"},
        {"role": "user", "content": "now"},
    ]
    assert [schema["function"]["name"] for schema in gateway.calls[0]["tools"]] == [
        "get_current_time",
        "explode",
    ]


def test_tools_omitted_for_empty_registry() -> None:
    gateway = ScriptedGateway([completion("Hi")])
    _run(AgentRunner(gateway, ToolRegistry()), "hi")

    assert gateway.calls[0]["tools"] is None
    assert gateway.calls[0]["messages"] == [{"role": "user", "content": "hi"}]


def test_run_turn_marks_tool_calls_completed(registry: ToolRegistry) -> None:
    gateway = ScriptedGateway(
        [
            completion("", [("c1", "get_current_time", {}), ("c2", "explode", {})]),
            completion("All done"),
        ]
    )
    runner = AgentRunner(gateway, registry)

    messages = asyncio.run(runner.run_turn([], "go"))

    assert len(messages) == 4
    assert messages[0].completed_tool_call_ids == frozenset({"c1", "c2"})
    assert messages[0].is_fully_resolved


def test_product_search_round_trip(catalog, laptop) -> None:
    registry = ToolRegistry()
    registry.register(SearchProductsTool(catalog))
    gateway = ScriptedGateway(
        [
            completion(
                "", [("s1", "search_products", {"query": "laptop", "sort_by": "price_low"})]
            ),
            completion(f"The cheapest laptop is [Product({laptop.sku})]."),
        ]
    )

    messages = _run(AgentRunner(gateway, registry), "find a cheap laptop")

    assert len(gateway.calls) == 2
    assert [m.role for m in messages] == [Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
    assert messages[1].tool_name == "search_products"
    assert f"- SKU: {laptop.sku}" in messages[1].content
    assert catalog.searches[0].sort_by == "price_low"
    assert gateway.calls[1]["messages"][-1]["content"] == messages[1].content
    assert messages[2].content == f"The cheapest laptop is [Product({laptop.sku})]."
