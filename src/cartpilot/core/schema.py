"""
Schema definitions for the conversation <-> orchestrator <-> gateway contract.

A :class:`Message` is one turn or event of a conversation.  Messages are immutable; the only field
that ever changes is the set of completed tool-call ids, and that change is made by returning a
copy.  ``to_wire()`` produces the OpenAI-compatible chat message sent to the LLM gateway.
"""

import json
import logging
import uuid
from datetime import (
    datetime,
    timezone,
)
from enum import Enum
from typing import (
    Any,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

logger = logging.getLogger(__name__)


def _new_message_id() -> str:
    return f"msg_{uuid.uuid4().hex}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class ToolCall(BaseModel):
    """A call the model wants the orchestrator to execute."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Provider-assigned id, unique within its assistant message")
    name: str = Field(..., description="Registered tool name")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Parsed tool arguments")

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> "ToolCall":
        """
        Build a tool call from the provider's ``{id, function: {name, arguments}}`` object.

        The provider sends ``arguments`` as a JSON string.  Anything that does not decode to a JSON
        object yields an empty argument map instead of failing the whole response.
        """
        function = payload.get("function") or {}
        raw_args = function.get("arguments") or "{}"

        arguments: Dict[str, Any]
        if isinstance(raw_args, Mapping):
            arguments = dict(raw_args)
        else:
            try:
                decoded = json.loads(raw_args)
            except (TypeError, ValueError):
                logger.warning(
                    "Unparsable arguments for tool '%s': %r", function.get("name"), raw_args
                )
                decoded = {}
            arguments = decoded if isinstance(decoded, dict) else {}

        return cls(
            id=str(payload.get("id", "")), name=str(function.get("name", "")), arguments=arguments
        )

    def to_wire(self) -> Dict[str, Any]:
        """Return the provider representation (arguments re-encoded as a JSON string)."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": json.dumps(self.arguments)},
        }


class Message(BaseModel):
    """One unit of a conversation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_message_id)
    role: Role
    content: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)

    # Assistant messages only
    tool_calls: Optional[List[ToolCall]] = None
    completed_tool_call_ids: FrozenSet[str] = Field(default_factory=frozenset)

    # Tool result messages only
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None

    # User messages may reference a product for client-side rendering; never sent on the wire
    attached_product_sku: Optional[int] = None

    @model_validator(mode="after")
    def _check_role_fields(self) -> "Message":
        if self.tool_calls is not None and self.role is not Role.ASSISTANT:
            raise ValueError("only assistant messages may carry tool calls")
        if self.role is Role.TOOL:
            if not self.tool_call_id or not self.tool_name:
                raise ValueError("tool messages require tool_call_id and tool_name")
        elif self.tool_call_id is not None or self.tool_name is not None:
            raise ValueError("only tool messages may carry tool_call_id / tool_name")
        if not self.completed_tool_call_ids <= self.tool_call_ids:
            raise ValueError("completed_tool_call_ids must reference this message's tool calls")
        return self

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    @classmethod
    def user(cls, content: str, attached_product_sku: int | None = None) -> "Message":
        return cls(role=Role.USER, content=content, attached_product_sku=attached_product_sku)

    @classmethod
    def assistant(cls, content: str, tool_calls: List[ToolCall] | None = None) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tool_calls or None)

    @classmethod
    def tool_result(cls, tool_call_id: str, tool_name: str, content: str) -> "Message":
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id, tool_name=tool_name)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    # ------------------------------------------------------------------
    # Tool-call bookkeeping
    # ------------------------------------------------------------------
    @property
    def tool_call_ids(self) -> FrozenSet[str]:
        return frozenset(call.id for call in self.tool_calls or ())

    def is_tool_call_completed(self, tool_call_id: str) -> bool:
        return tool_call_id in self.completed_tool_call_ids

    @property
    def is_fully_resolved(self) -> bool:
        """True once every tool call has a result (vacuously true without tool calls)."""
        return self.tool_call_ids <= self.completed_tool_call_ids

    def mark_tool_call_completed(self, tool_call_id: str) -> "Message":
        """
        Return a copy with *tool_call_id* recorded as completed.

        Idempotent.  Ids that do not belong to this message's tool calls leave it unchanged.
        """
        if tool_call_id not in self.tool_call_ids or tool_call_id in self.completed_tool_call_ids:
            return self
        return self.model_copy(
            update={"completed_tool_call_ids": self.completed_tool_call_ids | {tool_call_id}}
        )

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------
    def to_wire(self) -> Dict[str, Any]:
        """Return the chat-completions representation of this message."""
        if self.role is Role.TOOL:
            return {"role": "tool", "tool_call_id": self.tool_call_id, "content": self.content}

        wire: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.role is Role.ASSISTANT and self.tool_calls:
            wire["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        return wire
