"""Scrollable conversation view widget."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from textual.containers import VerticalScroll

from .message import MessageBubble

if TYPE_CHECKING:
    from ..session import ScreenEntry


class ConversationView(VerticalScroll):
    """A scrollable container that mirrors the session screen buffer."""

    def __init__(self, *, show_thinking: bool = True, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.show_thinking = show_thinking
        self._bubbles: list[MessageBubble] = []
        self._version = 0

    @property
    def bubbles(self) -> list[MessageBubble]:
        return list(self._bubbles)

    def add_message(self, entry: ScreenEntry) -> MessageBubble:
        """Create and mount a bubble for ``entry``."""
        bubble = MessageBubble(
            content=entry.text,
            kind=entry.kind.value,
            final=entry.final,
            show_thinking=self.show_thinking,
        )
        bubble.update_from(entry.text, entry.thinking, entry.final)
        self._bubbles.append(bubble)
        self.mount(bubble)
        return bubble

    def clear_messages(self) -> None:
        for bubble in self._bubbles:
            bubble.remove()
        self._bubbles = []

    def sync(self, entries: Sequence[ScreenEntry], version: int) -> None:
        """Bring bubbles in line with ``entries``.

        Entries are only ever appended or mutated in place, except when the
        session bumps ``version`` after rebuilding its buffer.
        """
        if version != self._version:
            self.clear_messages()
            self._version = version

        changed = False
        for bubble, entry in zip(self._bubbles, entries):
            changed |= bubble.update_from(entry.text, entry.thinking, entry.final)
        for entry in entries[len(self._bubbles) :]:
            self.add_message(entry)
            changed = True
        if changed:
            self.scroll_end(animate=False)
