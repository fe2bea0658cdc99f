"""CLI client for the CartPilot API.

The CLI also plays the UI's part in the scan rendezvous: while an agent turn is running it polls
``GET /scan`` and, when the agent asks for a barcode, lets the user type one in.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import (
    Any,
    Dict,
    Tuple,
    cast,
)

import httpx

from cartpilot.common import (
    AnsiColors,
    colored_print,
    truncate,
)
from cartpilot.config import settings

logger = logging.getLogger(__name__)

SCAN_POLL_INTERVAL = 0.5


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def _api_url(endpoint: str) -> str:
    return f"http://localhost:{settings.API_PORT}{endpoint}"


def call_api(
    endpoint: str,
    data: Dict[str, Any] | None = None,
    method: str = "POST",
    max_retries: int = 5,
    timeout: float = 30.0,
) -> Dict[str, Any]:
    """Make a request to the API and return the decoded response, retrying while it starts up."""
    for attempt in range(max_retries):
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.request(method, _api_url(endpoint), json=data)
                response.raise_for_status()
                return cast(Dict[str, Any], response.json())
        except httpx.ConnectError:
            if attempt < max_retries - 1:
                retry_delay = 0.5 * (2**attempt)  # exponential backoff: 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(retry_delay)
                continue
            break
        except httpx.HTTPStatusError as e:
            detail = e.response.text
            try:
                detail = e.response.json().get("detail", detail)
            except ValueError:
                pass
            logger.error("API error on %s: %s", endpoint, detail)
            return {"error": f"API error: {detail}"}
        except httpx.HTTPError as e:
            logger.error("API request error: %s", str(e))
            return {"error": f"Error connecting to API: {e}"}

    return {"error": f"Failed to connect to API after {max_retries} attempts"}


def handle_scan_request(status: Dict[str, Any]) -> None:
    """Prompt the user for a barcode and post the result to ``/scan/resolve``."""
    colored_print(
        f"\n📷 Please scan {status.get('description')} "
        f"({status.get('remaining_seconds', 0):.0f}s left).",
        AnsiColors.MAGENTA,
    )
    colored_print(
        "   Barcode (SKU/UPC), 'n' = not found, empty = cancel: ", AnsiColors.MAGENTA, end=""
    )
    code, ok = get_user_message()

    if not ok or not code:
        payload: Dict[str, Any] = {"action": "cancelled", "reason": "User cancelled the scan"}
    elif code.lower() == "n":
        payload = {"action": "not_found", "code": "unknown"}
    else:
        payload = {"action": "scanned", "code": code}
    payload["request_id"] = status.get("request_id")

    result = call_api("/scan/resolve", payload)
    if not result.get("resolved"):
        colored_print("   The scan request had already ended.", AnsiColors.GREY)


def print_messages(messages: list[Dict[str, Any]]) -> None:
    for message in messages:
        role = message.get("role")
        if role == "assistant" and message.get("tool_calls"):
            if message.get("content"):
                colored_print(message["content"], AnsiColors.GREY)
        elif role == "tool":
            label = message.get("display_name") or message.get("tool_name")
            preview = truncate(message.get("content", ""), 160)
            colored_print(f"  ⏳ {label} {preview}", AnsiColors.GREEN)
        elif role == "assistant":
            colored_print(f"🛒 {message.get('content', '')}", AnsiColors.YELLOW)


def run_turn(session_id: str, user_msg: str) -> Dict[str, Any]:
    """Send *user_msg* and service scan requests until the agent turn finishes."""
    result: Dict[str, Any] = {}

    def _worker() -> None:
        result.update(
            call_api(
                "/agent",
                {"message": user_msg, "session_id": session_id},
                timeout=settings.GATEWAY_TIMEOUT * settings.MAX_ITERATIONS
                + settings.SCAN_SAFETY_TIMEOUT,
            )
        )

    worker = threading.Thread(target=_worker, daemon=True)
    worker.start()
    while worker.is_alive():
        worker.join(SCAN_POLL_INTERVAL)
        if not worker.is_alive():
            break
        status = call_api("/scan", method="GET", max_retries=1)
        if status.get("pending"):
            handle_scan_request(status)
    return result


def run_cli() -> None:
    """Run the CLI client that communicates with the API."""
    # Create a new session
    session_response = call_api("/sessions", {})
    session_id = session_response.get("session_id")

    if not session_id:
        colored_print("⚠️ Failed to create a session", AnsiColors.RED)
        return

    colored_print(
        "\n🛒 CartPilot shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.GREEN
    )
    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue

        response = run_turn(session_id, user_msg)
        if "error" in response:
            colored_print(response["error"], AnsiColors.RED)
            continue
        print_messages(response.get("messages", []))


if __name__ == "__main__":
    run_cli()
