"""
Pydantic models for CartPilot API requests and responses.
This module defines the request and response schemas used by the CartPilot API.
"""

from datetime import datetime
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from cartpilot.cart.store import CartItem
from cartpilot.core.schema import Message
from cartpilot.tools import ToolRegistry


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class SessionResponse(BaseModel):
    """Response with session information."""

    session_id: str


class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User message for CartPilot")
    session_id: Optional[str] = Field(None, description="Session ID for conversation context")
    attached_product_sku: Optional[int] = Field(None, description="Product the user is viewing")


class ToolCallView(BaseModel):
    id: str
    name: str
    arguments: Dict[str, Any]


class MessageView(BaseModel):
    """A conversation message as returned to clients."""

    id: str
    role: str
    content: str
    timestamp: datetime
    tool_calls: Optional[List[ToolCallView]] = None
    completed_tool_call_ids: List[str] = Field(default_factory=list)
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    display_name: Optional[str] = Field(None, description="Progress label for tool results")
    attached_product_sku: Optional[int] = None

    @classmethod
    def from_message(cls, message: Message, registry: ToolRegistry) -> "MessageView":
        return cls(
            id=message.id,
            role=message.role.value,
            content=message.content,
            timestamp=message.timestamp,
            tool_calls=(
                [ToolCallView(**call.model_dump()) for call in message.tool_calls]
                if message.tool_calls
                else None
            ),
            completed_tool_call_ids=sorted(message.completed_tool_call_ids),
            tool_call_id=message.tool_call_id,
            tool_name=message.tool_name,
            display_name=registry.display_name(message.tool_name) if message.tool_name else None,
            attached_product_sku=message.attached_product_sku,
        )


class AgentResponse(BaseModel):
    """Messages produced by one agent turn."""

    session_id: str
    messages: List[MessageView]
    reply: str


class ScanStatus(BaseModel):
    """What the UI needs to know about the scan slot."""

    pending: bool
    request_id: Optional[str] = Field(None, description="Echo back in /scan/resolve")
    description: Optional[str] = None
    remaining_seconds: Optional[float] = None
    timeout_seconds: Optional[float] = None


class ScanResolveRequest(BaseModel):
    """The UI's answer to a pending scan request."""

    action: Literal["scanned", "not_found", "cancelled", "timeout", "error"]
    request_id: Optional[str] = Field(None, description="Pending request this answer is for")
    code: Optional[str] = Field(None, description="Scanned barcode (SKU or UPC)")
    reason: Optional[str] = None
    message: Optional[str] = None


class ScanResolveResponse(BaseModel):
    resolved: bool
    outcome: Optional[str] = None


class CartResponse(BaseModel):
    items: List[CartItem]
    total: float
