"""
Main orchestration loop for CartPilot.

One call to :meth:`AgentRunner.run` handles one user turn:

    system prompt + history + user message
        -> gateway -> assistant message (+ tool calls)
        -> tools, one at a time, in the order the model listed them
        -> gateway -> ... until the model answers without tool calls

The loop is bounded by ``AgentConfig.max_iterations``.  Gateway failures end the run with a single
apology message.  Tool failures become tool-result text and the loop carries on.
"""

from __future__ import annotations

import logging
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Optional,
    Sequence,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
)

from cartpilot.agent.gateway import (
    BaseGateway,
    ChatCompletion,
    GatewayError,
)
from cartpilot.agent.tool_executor import (
    ToolExecutionError,
    execute_tool,
)
from cartpilot.core.conversation import Conversation
from cartpilot.core.schema import (
    Message,
    ToolCall,
)
from cartpilot.tools import ToolRegistry

logger = logging.getLogger(__name__)

GATEWAY_FAILURE_REPLY = "Sorry, I encountered an error communicating with the AI."
MALFORMED_RESPONSE_REPLY = "Sorry, I received an unexpected response."
MAX_STEPS_REPLY = (
    "I reached the maximum number of steps. Please try again with a simpler request."
)


class AgentConfig(BaseModel):
    """Immutable parameters of a run."""

    model_config = ConfigDict(frozen=True)

    model: str = "openai/gpt-4o-mini"
    system_prompt: Optional[str] = None
    max_iterations: int = Field(10, ge=1, le=50)


class AgentRunner:
    """Runs the agentic loop: LLM -> tool calls -> execute -> repeat until done."""

    def __init__(
        self,
        gateway: BaseGateway,
        registry: ToolRegistry,
        config: AgentConfig | None = None,
    ) -> None:
        self.gateway = gateway
        self.registry = registry
        self.config = config or AgentConfig()

    def _initial_messages(
        self, history: Sequence[Message], user_message: str
    ) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if self.config.system_prompt:
            messages.append({"role": "system", "content": self.config.system_prompt})
        messages.extend(msg.to_wire() for msg in history)
        messages.append({"role": "user", "content": user_message})
        return messages

    async def _call_tool(self, call: ToolCall) -> str:
        try:
            return await execute_tool(self.registry, call.name, call.arguments)
        except ToolExecutionError as exc:
            logger.warning("Tool failure: %s", exc)
            return str(exc)

    async def run(self, history: Sequence[Message], user_message: str) -> AsyncIterator[Message]:
        """
        Run the agent for one user turn.

        Parameters
        ----------
        history:
            Earlier messages of the conversation, oldest first.  The system prompt is *not* part
            of the history; it comes from the config.
        user_message:
            The new user text.

        Yields
        ------
        Message
            In causal order: each assistant message, followed by one tool result per tool call
            it made, and finally either the tool-call-free answer, an apology (gateway failure),
            or a max-steps message.
        """
        messages = self._initial_messages(history, user_message)
        tools = self.registry.tool_schemas or None

        for iteration in range(1, self.config.max_iterations + 1):
            logger.info("Agent iteration %d", iteration)

            try:
                body = await self.gateway.complete(self.config.model, messages, tools)
            except GatewayError as exc:
                logger.error("Gateway failure: %s", exc)
                yield Message.assistant(GATEWAY_FAILURE_REPLY)
                return

            try:
                reply = ChatCompletion.model_validate(body).choices[0].message
            except ValidationError as exc:
                logger.error("Malformed gateway response: %s", exc)
                yield Message.assistant(MALFORMED_RESPONSE_REPLY)
                return

            tool_calls = [
                ToolCall.from_wire(call.model_dump()) for call in reply.tool_calls or ()
            ]
            assistant_msg = Message.assistant(reply.content or "", tool_calls=tool_calls)
            yield assistant_msg
            messages.append(assistant_msg.to_wire())

            if not tool_calls:
                logger.info("Agent completed after %d iteration(s)", iteration)
                return

            logger.info(
                "Model requested %d tool call(s): %s",
                len(tool_calls),
                [call.name for call in tool_calls],
            )
            for call in tool_calls:
                result = await self._call_tool(call)
                result_msg = Message.tool_result(call.id, call.name, result)
                yield result_msg
                messages.append(result_msg.to_wire())

        logger.warning("Agent hit max iterations (%d)", self.config.max_iterations)
        yield Message.assistant(MAX_STEPS_REPLY)

    async def run_turn(self, history: Sequence[Message], user_message: str) -> List[Message]:
        """
        Drain :meth:`run` and return the new messages in order.

        Assistant messages in the result have their completed tool-call ids filled in.
        """
        conversation = Conversation()
        async for message in self.run(history, user_message):
            conversation.append(message)
        return list(conversation.messages)
