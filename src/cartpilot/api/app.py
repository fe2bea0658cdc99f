"""
Core API backend for CartPilot.

This module exposes the agent and the scan rendezvous to UI clients (mobile app, CLI).
It exposes the following endpoints:
- **GET /health**  - liveness probe for health checks.
- **POST /sessions** - create a new session, returns a session ID.
- **GET /sessions** - list all active sessions.
- **GET /sessions/{id}/messages** - conversation log of a session.
- **POST /agent**   - one agent turn: {"message": "...", "session_id": "..."}
- **GET /scan** - is a barcode scan pending?  (The UI polls this.)
- **POST /scan/resolve** - the UI's scan result.
- **GET /cart** - current cart contents.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import (
    AsyncIterator,
    Dict,
    List,
    Optional,
)

from fastapi import (
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.middleware.cors import CORSMiddleware

from cartpilot.api.models import (
    AgentResponse,
    CartResponse,
    MessageRequest,
    MessageView,
    ScanResolveRequest,
    ScanResolveResponse,
    ScanStatus,
    SessionResponse,
)
from cartpilot.agent.rendezvous import ScanRequest
from cartpilot.catalog.client import CatalogError
from cartpilot.common import (
    AnsiColors,
    colored_print,
)
from cartpilot.config import settings
from cartpilot.core.conversation import Conversation
from cartpilot.core.schema import (
    Message,
    Role,
)
from cartpilot.runtime import (
    Runtime,
    build_runtime,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
def _runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def _sessions(request: Request) -> Dict[str, Conversation]:
    return request.app.state.sessions


def get_or_create_session(
    sessions: Dict[str, Conversation], session_id: Optional[str] = None
) -> str:
    """Get existing session or create a new one."""
    if session_id and session_id in sessions:
        return session_id

    new_session_id = str(uuid.uuid4())
    sessions[new_session_id] = Conversation()
    return new_session_id


async def _resolve_scanned_code(runtime: Runtime, code: str, scan: ScanRequest) -> bool:
    """
    Look *code* up and resolve *scan* with whatever the catalog says.

    The lookup can take a while; if *scan* was superseded or timed out in the meantime the result
    is dropped rather than handed to a newer request.
    """
    code = code.strip()
    try:
        # Best Buy SKUs are short numbers; anything longer is treated as a UPC.
        if code.isdigit() and len(code) <= 8:
            product = await runtime.catalog.get_by_sku(int(code))
        else:
            product = await runtime.catalog.get_by_upc(code)
    except CatalogError as exc:
        logger.warning("Lookup for scanned code %s failed: %s", code, exc)
        return runtime.scans.resolve_error(str(exc), request=scan)

    if product is None:
        return runtime.scans.resolve_not_found(code, request=scan)
    return runtime.scans.resolve_success(product, request=scan)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------
def create_app(runtime: Runtime | None = None) -> FastAPI:
    """Build the FastAPI app around *runtime* (constructed from settings when omitted)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.runtime.aclose()

    app = FastAPI(
        title="CartPilot API",
        version="0.1.0",
        description="Agentic shopping assistant API",
        lifespan=lifespan,
    )
    app.state.runtime = runtime or build_runtime()
    app.state.sessions = {}

    # Add CORS middleware to allow requests from local UIs
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.DEBUG else [f"http://localhost:{settings.API_PORT}"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/health", summary="Health check")
    async def health() -> dict[str, str]:
        """Return a simple liveness payload."""
        return {"status": "ok"}

    @app.post("/sessions", response_model=SessionResponse, summary="Create a new session")
    async def create_session(request: Request) -> SessionResponse:
        """Create a new conversation session."""
        session_id = get_or_create_session(_sessions(request))
        return SessionResponse(session_id=session_id)

    @app.get("/sessions", response_model=List[str], summary="List active sessions")
    async def list_sessions(request: Request) -> List[str]:
        """List all active session IDs."""
        return list(_sessions(request).keys())

    @app.get(
        "/sessions/{session_id}/messages",
        response_model=List[MessageView],
        summary="Conversation log of a session",
    )
    async def session_messages(session_id: str, request: Request) -> List[MessageView]:
        conversation = _sessions(request).get(session_id)
        if conversation is None:
            raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
        registry = _runtime(request).registry
        return [MessageView.from_message(m, registry) for m in conversation]

    @app.post("/agent", response_model=AgentResponse, summary="Process a message")
    async def agent_endpoint(req: MessageRequest, request: Request) -> AgentResponse:
        """Run one agent turn for the user message and return the messages it produced."""
        runtime = _runtime(request)
        sessions = _sessions(request)
        session_id = get_or_create_session(sessions, req.session_id)
        conversation = sessions[session_id]

        history = conversation.messages
        user_msg = Message.user(req.message, attached_product_sku=req.attached_product_sku)
        new_messages = await runtime.runner.run_turn(history, req.message)

        conversation.append(user_msg)
        for message in new_messages:
            conversation.append(message)

        reply = next(
            (m.content for m in reversed(new_messages) if m.role is Role.ASSISTANT), ""
        )
        return AgentResponse(
            session_id=session_id,
            messages=[MessageView.from_message(m, runtime.registry) for m in new_messages],
            reply=reply,
        )

    @app.get("/scan", response_model=ScanStatus, summary="Pending scan request")
    async def scan_status(request: Request) -> ScanStatus:
        """Report the pending scan request, timing it out first if the UI deadline passed."""
        scans = _runtime(request).scans
        scans.expire_overdue()
        active = scans.active_request
        if active is None:
            return ScanStatus(pending=False)
        return ScanStatus(
            pending=True,
            request_id=active.id,
            description=active.description,
            remaining_seconds=round(active.remaining_time, 1),
            timeout_seconds=active.timeout,
        )

    @app.post("/scan/resolve", response_model=ScanResolveResponse, summary="Resolve a scan")
    async def scan_resolve(req: ScanResolveRequest, request: Request) -> ScanResolveResponse:
        """
        Deliver the UI's scan result.

        ``resolved`` is false if nothing was pending, the UI deadline had already passed, or
        ``request_id`` names a request that is no longer the pending one.
        """
        if req.action == "scanned" and not req.code:
            raise HTTPException(status_code=422, detail="'code' is required for 'scanned'")

        runtime = _runtime(request)
        scans = runtime.scans
        scans.expire_overdue()
        active = scans.active_request
        if active is None or (req.request_id is not None and req.request_id != active.id):
            logger.info("Ignoring scan result for request %s: not pending", req.request_id)
            return ScanResolveResponse(resolved=False)

        if req.action == "scanned":
            resolved = await _resolve_scanned_code(runtime, req.code or "", active)
        elif req.action == "not_found":
            resolved = scans.resolve_not_found(req.code or "", request=active)
        elif req.action == "cancelled":
            resolved = scans.resolve_cancelled(req.reason or "Cancelled by user", request=active)
        elif req.action == "timeout":
            resolved = scans.resolve_timeout(request=active)
        else:
            resolved = scans.resolve_error(req.message or "Scanner error", request=active)

        outcome = active.outcome.kind if resolved and active.outcome else None
        return ScanResolveResponse(resolved=resolved, outcome=outcome)

    @app.get("/cart", response_model=CartResponse, summary="Cart contents")
    async def cart(request: Request) -> CartResponse:
        store = _runtime(request).cart
        return CartResponse(items=store.items, total=store.total())

    return app


app = create_app()


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful during development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting CartPilot API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    colored_print(f"🛒 CartPilot API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)

    uvicorn.run(
        "cartpilot.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m cartpilot.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
