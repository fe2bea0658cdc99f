"""Ordered conversation log that keeps assistant tool-call completion in sync."""

import logging
from typing import (
    Iterable,
    Iterator,
    List,
    Tuple,
)

from cartpilot.core.schema import (
    Message,
    Role,
)

logger = logging.getLogger(__name__)


class Conversation:
    """
    Append-only list of messages.

    Appending a tool result replaces the assistant message that issued the matching tool call with
    a copy that records the call as completed.  Nothing is ever removed.
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: List[Message] = []
        for message in messages:
            self.append(message)

    def append(self, message: Message) -> Message:
        """Record *message* and return it."""
        if message.role is Role.TOOL and message.tool_call_id:
            self._complete(message.tool_call_id)
        self._messages.append(message)
        return message

    def _complete(self, tool_call_id: str) -> None:
        for index in range(len(self._messages) - 1, -1, -1):
            owner = self._messages[index]
            if owner.role is Role.ASSISTANT and tool_call_id in owner.tool_call_ids:
                self._messages[index] = owner.mark_tool_call_completed(tool_call_id)
                return
        logger.warning("Tool result for unknown tool call '%s'", tool_call_id)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def unresolved(self) -> List[Message]:
        """Assistant messages that still wait for at least one tool result."""
        return [m for m in self._messages if m.role is Role.ASSISTANT and not m.is_fully_resolved]

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self._messages)
