"""Ordered, role-tagged transcript storage."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .exceptions import InvalidStateError


class Role(str, Enum):
    """Message author roles understood by the provider and the file format."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A single transcript entry.

    ``complete`` is False only for the assistant message currently being
    streamed; every other message is immutable once appended.
    """

    role: Role
    text: str
    images: list[str] = field(default_factory=list)
    complete: bool = True

    def to_request(self) -> dict[str, Any]:
        """Return the provider wire representation of this message."""
        payload: dict[str, Any] = {"role": self.role.value, "content": self.text}
        if self.images:
            payload["images"] = list(self.images)
        return payload


def coerce_role(role: Role | str) -> Role:
    """Return ``role`` as a :class:`Role`, rejecting unknown names."""
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown message role: {role!r}") from None


class Transcript:
    """Manage the ordered message history of one session."""

    def __init__(self, messages: Iterable[Message] | None = None) -> None:
        self._messages: list[Message] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[Message]:
        """Return a shallow copy of the stored messages."""
        return list(self._messages)

    @property
    def has_open_message(self) -> bool:
        """Return True while an assistant message is being streamed."""
        return bool(self._messages) and not self._messages[-1].complete

    def append(
        self, role: Role | str, text: str, images: Iterable[str] | None = None
    ) -> Message:
        """Append a complete message and return it."""
        message = Message(
            role=coerce_role(role), text=text, images=list(images or [])
        )
        self._messages.append(message)
        return message

    def open_assistant(self) -> Message:
        """Append the in-progress assistant message that deltas accumulate into."""
        if self.has_open_message:
            raise InvalidStateError("An assistant message is already in progress.")
        message = Message(role=Role.ASSISTANT, text="", complete=False)
        self._messages.append(message)
        return message

    def update_last(self, delta: str) -> Message:
        """Append ``delta`` to the open assistant message."""
        if not self.has_open_message:
            raise InvalidStateError("The last message is not an open assistant message.")
        message = self._messages[-1]
        message.text += delta
        return message

    def close_last(self) -> Message:
        """Mark the open assistant message complete and return it."""
        if not self.has_open_message:
            raise InvalidStateError("No assistant message is in progress.")
        message = self._messages[-1]
        message.complete = True
        return message

    def discard_open(self) -> Message:
        """Remove and return the open assistant message."""
        if not self.has_open_message:
            raise InvalidStateError("No assistant message is in progress.")
        return self._messages.pop()

    def clear(self) -> None:
        """Drop every message."""
        self._messages = []

    def replace(self, messages: Iterable[Message]) -> None:
        """Replace history wholesale, e.g. after loading from disk."""
        self._messages = list(messages)

    def request_messages(self) -> list[dict[str, Any]]:
        """Return wire dicts for every complete message, in order."""
        return [m.to_request() for m in self._messages if m.complete]

    def last_assistant_text(self) -> str | None:
        """Return the newest complete assistant message text, if any."""
        for message in reversed(self._messages):
            if message.role is Role.ASSISTANT and message.complete:
                return message.text
        return None

    def save(self, path: str | Path) -> Path:
        """Write the transcript to ``path`` using the ``.chat`` text format."""
        from .persistence import save_transcript

        return save_transcript(path, [m for m in self._messages if m.complete])

    def load(self, path: str | Path) -> int:
        """Replace the transcript with the contents of ``path``.

        Returns the number of messages loaded. The in-memory history is only
        touched after the file was read and parsed successfully.
        """
        from .persistence import load_transcript

        loaded = load_transcript(path)
        self.replace(loaded)
        return len(loaded)
