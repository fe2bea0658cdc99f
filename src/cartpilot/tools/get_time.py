"""Current date and time tool."""

from datetime import (
    datetime,
    timedelta,
    timezone,
)
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
)

from cartpilot.tools import Tool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GetTimeTool(Tool):
    """Tell the model what time it is, optionally in another UTC offset."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    @property
    def name(self) -> str:
        return "get_current_time"

    @property
    def display_name(self) -> str:
        return "Getting Time..."

    @property
    def description(self) -> str:
        return "Get the current date and time. Optionally specify a timezone offset."

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "timezone_offset_hours": {
                    "type": "number",
                    "minimum": -12,
                    "maximum": 14,
                    "description": "Offset from UTC in hours (e.g., -5 for EST). Defaults to 0.",
                },
                "format": {
                    "type": "string",
                    "enum": ["iso", "human", "unix"],
                    "description": 'Output format. Defaults to "human".',
                },
            },
            "required": [],
        }

    async def execute(self, arguments: Mapping[str, Any]) -> str:
        offset_hours = float(arguments.get("timezone_offset_hours") or 0.0)
        output_format = arguments.get("format") or "human"

        now = self._clock().astimezone(timezone(timedelta(hours=offset_hours)))

        if output_format == "iso":
            return now.isoformat()
        if output_format == "unix":
            return str(int(now.timestamp()))

        if offset_hours == 0:
            tz_label = "UTC"
        else:
            tz_label = f"UTC{'+' if offset_hours > 0 else ''}{offset_hours:g}"
        return f"{now:%A, %B} {now.day}, {now.year} at {now:%H:%M:%S} ({tz_label})"
