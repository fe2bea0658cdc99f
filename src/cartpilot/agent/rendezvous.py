"""
Single-slot rendezvous between the ``request_scan`` tool and the UI.

The tool asks for a barcode scan and suspends; the UI notices the pending request, opens the
camera, and eventually calls exactly one of the ``resolve_*`` methods.  Only one request can be
pending at a time.  Asking for a new scan cancels the previous request first.

Every transition goes through one lock-guarded compare-and-set, so when several actors race to
resolve the same request (UI timeout, tool safety timeout, a late scan result) the first one wins
and the others become no-ops returning ``False``.  Resolvers may be called from a thread other
than the event loop's; the outcome is then handed over with ``call_soon_threadsafe``.

Usage:
    request = scans.request("the USB cable")   # inside the event loop
    outcome = await request                     # suspends until resolved
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from datetime import (
    datetime,
    timezone,
)
from typing import (
    Annotated,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    Field,
)

from cartpilot.catalog.models import Product
from cartpilot.config import settings

logger = logging.getLogger(__name__)

SUPERSEDED_REASON = "superseded by new request"


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------
class ScanSuccess(BaseModel):
    """The user scanned a product that was found in the catalog."""

    kind: Literal["success"] = "success"
    product: Product


class ScanTimeout(BaseModel):
    """Nobody resolved the request in time."""

    kind: Literal["timeout"] = "timeout"


class ScanCancelled(BaseModel):
    """The user backed out, or a newer request replaced this one."""

    kind: Literal["cancelled"] = "cancelled"
    reason: str


class ScanNotFound(BaseModel):
    """A code was scanned but no product matches it."""

    kind: Literal["not_found"] = "not_found"
    code: str


class ScanError(BaseModel):
    """Scanning or the product lookup failed."""

    kind: Literal["error"] = "error"
    message: str


ScanOutcome = Annotated[
    Union[ScanSuccess, ScanTimeout, ScanCancelled, ScanNotFound, ScanError],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Request handle
# ---------------------------------------------------------------------------
class ScanRequest:
    """A pending (or resolved) scan request.  Await it to get the :data:`ScanOutcome`."""

    def __init__(self, description: str, timeout: float, loop: asyncio.AbstractEventLoop) -> None:
        self.id = f"scan_{uuid.uuid4().hex}"
        self.description = description
        self.timeout = timeout
        self.created_at = datetime.now(timezone.utc)
        self._started = time.monotonic()
        self._loop = loop
        self._future: asyncio.Future = loop.create_future()
        self._outcome: Optional[ScanOutcome] = None

    @property
    def remaining_time(self) -> float:
        """Seconds left before the UI should give up (never negative)."""
        return max(0.0, self.timeout - (time.monotonic() - self._started))

    @property
    def is_timed_out(self) -> bool:
        return self.remaining_time == 0.0

    @property
    def is_resolved(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> Optional[ScanOutcome]:
        return self._outcome

    async def wait(self) -> ScanOutcome:
        # Shielded so a caller that gives up waiting does not cancel the shared future.
        return await asyncio.shield(self._future)

    def __await__(self):
        return self.wait().__await__()

    def _settle(self, outcome: ScanOutcome) -> None:
        """Record *outcome* and wake the waiter.  Caller holds the service lock."""
        self._outcome = outcome
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            _set_result(self._future, outcome)
            return
        try:
            self._loop.call_soon_threadsafe(_set_result, self._future, outcome)
        except RuntimeError:
            logger.warning("Scan request '%s' resolved after its loop closed", self.description)

    def __repr__(self) -> str:
        state = self._outcome.kind if self._outcome is not None else "pending"
        return f"ScanRequest({self.description!r}, {state})"


def _set_result(future: asyncio.Future, outcome: ScanOutcome) -> None:
    if not future.done():
        future.set_result(outcome)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class ScanRequestService:
    """Holds at most one pending :class:`ScanRequest`."""

    def __init__(self, default_timeout: float | None = None) -> None:
        self.default_timeout = (
            default_timeout if default_timeout is not None else settings.SCAN_TIMEOUT
        )
        self._lock = threading.Lock()
        self._active: Optional[ScanRequest] = None

    @property
    def active_request(self) -> Optional[ScanRequest]:
        return self._active

    @property
    def has_active_request(self) -> bool:
        return self._active is not None

    def request(self, description: str, timeout: float | None = None) -> ScanRequest:
        """
        Open a new scan request and return its handle.

        Must be called from inside the event loop that will await the handle.  A request that is
        still pending is resolved as cancelled before the new one is installed.
        """
        new_request = ScanRequest(
            description,
            timeout if timeout is not None else self.default_timeout,
            asyncio.get_running_loop(),
        )
        with self._lock:
            previous = self._active
            if previous is not None:
                logger.info("Scan request '%s' superseded", previous.description)
                previous._settle(  # pylint: disable=protected-access
                    ScanCancelled(reason=SUPERSEDED_REASON)
                )
            self._active = new_request

        logger.info("Scan requested for: %s", description)
        return new_request

    def _resolve(self, outcome: ScanOutcome, request: ScanRequest | None) -> bool:
        with self._lock:
            active = self._active
            if active is None or (request is not None and request is not active):
                logger.debug("Ignoring %s resolution: no matching pending request", outcome.kind)
                return False
            active._settle(outcome)  # pylint: disable=protected-access
            self._active = None

        logger.info("Scan request '%s' resolved: %s", active.description, outcome.kind)
        return True

    # Each resolver returns True if it won, False if there was nothing (left) to resolve.
    # Passing *request* restricts the resolution to that specific handle.
    def resolve_success(self, product: Product, request: ScanRequest | None = None) -> bool:
        return self._resolve(ScanSuccess(product=product), request)

    def resolve_not_found(self, code: str, request: ScanRequest | None = None) -> bool:
        return self._resolve(ScanNotFound(code=code), request)

    def resolve_cancelled(self, reason: str, request: ScanRequest | None = None) -> bool:
        return self._resolve(ScanCancelled(reason=reason), request)

    def resolve_timeout(self, request: ScanRequest | None = None) -> bool:
        return self._resolve(ScanTimeout(), request)

    def resolve_error(self, message: str, request: ScanRequest | None = None) -> bool:
        return self._resolve(ScanError(message=message), request)

    def expire_overdue(self) -> bool:
        """Resolve the pending request as timed out if its UI deadline has passed."""
        active = self._active
        if active is not None and active.is_timed_out:
            return self.resolve_timeout(active)
        return False
