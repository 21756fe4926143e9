"""Input row with the message field and the slash-command suggestion list."""

from __future__ import annotations

from textual.binding import Binding
from textual.containers import Vertical
from textual.message import Message
from textual.widgets import Input, OptionList


class CommandInput(Input):
    """Single-line input that forwards suggestion navigation keys."""

    BINDINGS = [
        Binding("tab", "suggestion(1)", "Next suggestion", show=False, priority=True),
        Binding("down", "suggestion(1)", "Next suggestion", show=False),
        Binding(
            "shift+tab", "suggestion(-1)", "Previous suggestion", show=False, priority=True
        ),
        Binding("up", "suggestion(-1)", "Previous suggestion", show=False),
        Binding("escape", "close_suggestions", "Close suggestions", show=False),
    ]

    class SuggestionMove(Message):
        """Posted when the user moves through command suggestions."""

        def __init__(self, step: int) -> None:
            super().__init__()
            self.step = step

    class SuggestionsClosed(Message):
        """Posted when the user dismisses the suggestion list."""

    def action_suggestion(self, step: int) -> None:
        self.post_message(self.SuggestionMove(step))

    def action_close_suggestions(self) -> None:
        self.post_message(self.SuggestionsClosed())


class InputBox(Vertical):
    """Input region with the suggestion menu above the message field."""

    def compose(self):  # type: ignore[override]
        yield OptionList(id="slash_menu", classes="hidden")
        yield CommandInput(
            placeholder="Type your message... (/ for commands)",
            id="message_input",
        )

    def show_suggestions(self, matches: list[str], index: int) -> None:
        """Render ``matches`` and highlight ``index``; hide when empty."""
        menu = self.query_one("#slash_menu", OptionList)
        if not matches:
            if menu.option_count:
                menu.clear_options()
            menu.add_class("hidden")
            return
        current = [str(menu.get_option_at_index(i).prompt) for i in range(menu.option_count)]
        if current != matches:
            menu.clear_options()
            menu.add_options(matches)
        menu.highlighted = index
        menu.remove_class("hidden")
