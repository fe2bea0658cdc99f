"""
Process-wide service wiring.

Everything the API needs is constructed once, here, and handed around explicitly.  There are no
module-level singletons for the registry, the scan rendezvous or the cart.
"""

import logging
from dataclasses import dataclass

from cartpilot.agent.gateway import (
    BaseGateway,
    load_gateway,
)
from cartpilot.agent.orchestrator import (
    AgentConfig,
    AgentRunner,
)
from cartpilot.agent.prompts import load_system_prompt
from cartpilot.agent.rendezvous import ScanRequestService
from cartpilot.cart.store import CartStore
from cartpilot.catalog.client import (
    BestBuyClient,
    CatalogClient,
)
from cartpilot.config import (
    Settings,
    settings as default_settings,
)
from cartpilot.tools import ToolRegistry
from cartpilot.tools.defaults import create_default_registry

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """The constructed-once services of a running CartPilot process."""

    catalog: CatalogClient
    cart: CartStore
    scans: ScanRequestService
    registry: ToolRegistry
    gateway: BaseGateway
    runner: AgentRunner

    async def aclose(self) -> None:
        await self.gateway.aclose()


def build_runtime(
    config: Settings | None = None,
    gateway: BaseGateway | None = None,
    catalog: CatalogClient | None = None,
) -> Runtime:
    """
    Construct every service from *config*.

    *gateway* and *catalog* can be injected (tests, alternative back-ends); otherwise they are
    created from the settings.
    """
    config = config or default_settings

    catalog = catalog or BestBuyClient(
        api_key=config.BESTBUY_API_KEY, base_url=config.BESTBUY_BASE_URL
    )
    cart = CartStore()
    scans = ScanRequestService(default_timeout=config.SCAN_TIMEOUT)
    registry = create_default_registry(
        catalog, cart, scans, scan_safety_timeout=config.SCAN_SAFETY_TIMEOUT
    )
    if gateway is None:
        api_key = (
            config.OPENROUTER_API_KEY
            if config.GATEWAY.lower() == "openrouter"
            else config.OPENAI_API_KEY
        )
        gateway = load_gateway(
            config.GATEWAY,
            api_key=api_key,
            base_url=config.LLM_BASE_URL,
            timeout=config.GATEWAY_TIMEOUT,
        )

    agent_config = AgentConfig(
        model=config.MODEL,
        system_prompt=load_system_prompt(registry, config.SYSTEM_PROMPT_PATH),
        max_iterations=config.MAX_ITERATIONS,
    )
    logger.info(
        "Runtime ready: %d tools, model=%s, max_iterations=%d",
        len(registry),
        agent_config.model,
        agent_config.max_iterations,
    )
    return Runtime(
        catalog=catalog,
        cart=cart,
        scans=scans,
        registry=registry,
        gateway=gateway,
        runner=AgentRunner(gateway, registry, agent_config),
    )
