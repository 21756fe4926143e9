"""Message bubble widget for conversation rendering."""

from __future__ import annotations

from typing import Any

from rich.markdown import Markdown
from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Vertical
from textual.widgets import Static

from ..formatting import render_response

_HEADERS = {
    "user": "You",
    "assistant": "Assistant",
    "system": "System",
}


class MessageBubble(Vertical):
    """Render one screen entry: header, optional thinking, and content."""

    DEFAULT_CSS = """
    MessageBubble {
        height: auto;
    }
    MessageBubble > #header-block {
        padding: 0;
        text-style: bold;
    }
    MessageBubble > #thinking-block {
        color: $text-muted;
        padding: 0 1;
        border-left: solid $panel;
        margin-bottom: 1;
    }
    MessageBubble > #content-block {
        height: auto;
    }
    """

    def __init__(
        self,
        content: str,
        kind: str,
        *,
        final: bool = True,
        show_thinking: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self.message_content = content
        self.kind = kind
        self.final = final
        self.show_thinking = show_thinking
        self._thinking_buffer = ""
        self.add_class(f"message-{kind}")

        self._thinking_widget: Static | None = None
        self._content_widget: Static | None = None

    @property
    def has_header(self) -> bool:
        return self.kind in _HEADERS

    def compose(self) -> ComposeResult:
        if self.has_header:
            yield Static(_HEADERS[self.kind], id="header-block")
        self._thinking_widget = Static("", id="thinking-block")
        self._content_widget = Static("", id="content-block")
        if self.show_thinking:
            yield self._thinking_widget
        yield self._content_widget

    def on_mount(self) -> None:
        self._refresh_thinking()
        self._refresh_content()

    def _renderable(self) -> Any:
        text = self.message_content.rstrip()
        if self.kind == "assistant":
            if self.final:
                return render_response(text)
            return Markdown(text) if text else Text("...", style="dim")
        if self.kind == "error":
            return Text(text, style="bold red")
        if self.kind == "success":
            return Text(text, style="bold green")
        if self.kind == "info":
            return Text(text, style="dim")
        return Text(text)

    def _refresh_content(self) -> None:
        if self._content_widget is None:
            return
        self._content_widget.update(self._renderable())

    def _refresh_thinking(self) -> None:
        if not self.show_thinking or self._thinking_widget is None:
            return
        if self._thinking_buffer:
            label = "Thought" if self.final else "Thinking"
            self._thinking_widget.update(
                Text(f"{label}:\n{self._thinking_buffer}", style="dim italic")
            )
            self._thinking_widget.display = True
        else:
            self._thinking_widget.display = False

    def update_from(self, content: str, thinking: str, final: bool) -> bool:
        """Re-render when anything changed; returns True if it did."""
        if (
            content == self.message_content
            and thinking == self._thinking_buffer
            and final == self.final
        ):
            return False
        self.message_content = content
        self._thinking_buffer = thinking
        self.final = final
        self._refresh_thinking()
        self._refresh_content()
        return True
