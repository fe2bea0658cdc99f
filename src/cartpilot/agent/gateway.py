"""
LLM gateway interface for CartPilot.

This module is the only place that *directly* talks to an LLM.  Everything else (orchestrator,
tools, rendezvous) stays provider-agnostic and speaks the OpenAI chat-completions format.

We support two back-ends out of the box, both OpenAI-compatible HTTP endpoints reached with httpx:

1. **OpenRouter** (default) - any model routed by openrouter.ai.
2. **OpenAI** - the OpenAI API itself, or any compatible server via ``LLM_BASE_URL``.

Additional providers can be added by subclassing :class:`BaseGateway` and registering via
:func:`register_gateway`.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Sequence,
    Type,
)

import httpx
from pydantic import (
    BaseModel,
    Field,
)

from cartpilot.config import settings

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """Raised when the gateway cannot produce a usable response."""


# ---------------------------------------------------------------------------
# Pydantic models for response validation
# ---------------------------------------------------------------------------
class WireFunction(BaseModel):
    name: str
    arguments: Any = "{}"  # JSON string per the protocol; decoded leniently by ToolCall


class WireToolCall(BaseModel):
    id: str
    type: str = "function"
    function: WireFunction


class ChoiceMessage(BaseModel):
    content: Optional[str] = None
    tool_calls: Optional[List[WireToolCall]] = None


class Choice(BaseModel):
    message: ChoiceMessage


class ChatCompletion(BaseModel):
    """Validates the subset of a chat-completions response the orchestrator reads."""

    choices: List[Choice] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_GATEWAY_REGISTRY: Dict[str, Type["BaseGateway"]] = {}


def register_gateway(name: str) -> Callable:
    """Decorator to register a gateway class under *name*."""

    def wrapper(cls: Type["BaseGateway"]) -> Type["BaseGateway"]:
        _GATEWAY_REGISTRY[name] = cls
        return cls

    return wrapper


def load_gateway(name: str | None = None, **kwargs: Any) -> "BaseGateway":
    """
    Factory that returns an instantiated gateway.

    Fallback order:
    1. *name* arg
    2. ``settings.GATEWAY`` env option
    3. default: ``"openrouter"``
    """

    target = name or getattr(settings, "GATEWAY", "openrouter")
    cls = _GATEWAY_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Gateway '{target}' is not registered.")
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseGateway(ABC):
    """Abstract gateway: one chat-completions round trip."""

    @abstractmethod
    async def complete(
        self,
        model: str,
        messages: Sequence[Dict[str, Any]],
        tools: Sequence[Dict[str, Any]] | None = None,
    ) -> Dict[str, Any]:
        """
        Send *messages* (and *tools*, if any) and return the decoded response body.

        Raises
        ------
        GatewayError
            On transport errors, non-200 responses, or a body that is not JSON.
        """

    async def aclose(self) -> None:
        """Release pooled connections, if any."""


# ---------------------------------------------------------------------------
# Concrete gateways
# ---------------------------------------------------------------------------
class ChatCompletionsGateway(BaseGateway):
    """Gateway for OpenAI-compatible ``/chat/completions`` endpoints, built on httpx."""

    DEFAULT_BASE_URL: ClassVar[str] = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else self._default_api_key()
        self.base_url = (base_url or settings.LLM_BASE_URL or self.DEFAULT_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.GATEWAY_TIMEOUT,
            transport=transport,
        )

    def _default_api_key(self) -> str | None:
        return settings.OPENAI_API_KEY

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    async def complete(
        self,
        model: str,
        messages: Sequence[Dict[str, Any]],
        tools: Sequence[Dict[str, Any]] | None = None,
    ) -> Dict[str, Any]:
        if not self.api_key:
            raise GatewayError(f"No API key configured for {type(self).__name__}")

        body: Dict[str, Any] = {"model": model, "messages": list(messages)}
        # Only include tools if we have any registered
        if tools:
            body["tools"] = list(tools)

        logger.debug("Sending %d messages, %d tools to %s", len(messages), len(tools or ()), model)

        try:
            resp = await self._client.post(
                f"{self.base_url}/chat/completions", json=body, headers=self._headers()
            )
        except httpx.HTTPError as e:
            logger.error("Gateway request error: %s", str(e))
            raise GatewayError(f"Error calling gateway: {e}") from e

        if resp.status_code != 200:
            logger.error("Gateway API error: %s %s", resp.status_code, resp.text[:500])
            raise GatewayError(f"Gateway returned HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as e:
            logger.error("Gateway returned a non-JSON body")
            raise GatewayError("Gateway returned a non-JSON body") from e

        if not isinstance(payload, dict):
            raise GatewayError("Gateway returned an unexpected JSON value")
        return payload

    async def aclose(self) -> None:
        await self._client.aclose()


@register_gateway("openai")
class OpenAIGateway(ChatCompletionsGateway):
    """OpenAI (or any compatible server set through ``LLM_BASE_URL``)."""


@register_gateway("openrouter")
class OpenRouterGateway(ChatCompletionsGateway):
    """OpenRouter, with the attribution headers it asks clients to send."""

    DEFAULT_BASE_URL: ClassVar[str] = "https://openrouter.ai/api/v1"

    def _default_api_key(self) -> str | None:
        return settings.OPENROUTER_API_KEY

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["HTTP-Referer"] = settings.APP_REFERER
        headers["X-Title"] = settings.APP_TITLE
        return headers
