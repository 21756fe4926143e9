"""Main Textual application for chatting with an OpenAI-compatible endpoint."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import Any

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container
from textual.message import Message
from textual.widgets import Footer, Header, Input, OptionList

from .config import load_config, resolve_profile
from .gateway import ChatChunk, CompletionGateway
from .logging_utils import configure_logging
from .managers.attachment import AttachmentManager
from .sequencer import StreamSequencer
from .session import ChatSession
from .widgets.conversation import ConversationView
from .widgets.input_box import CommandInput, InputBox
from .widgets.status_bar import StatusBar

LOGGER = logging.getLogger(__name__)


class ChunkReceived(Message):
    """Carries one streamed chunk from the pump task into the app queue."""

    def __init__(self, chunk: ChatChunk) -> None:
        super().__init__()
        self.chunk = chunk


class TermAIApp(App[None]):
    """Terminal chat client driven by a :class:`ChatSession`."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #app-root {
        layout: vertical;
        width: 100%;
        height: 1fr;
        background: $background;
    }

    #conversation {
        height: 1fr;
        padding: 1;
    }

    InputBox {
        height: auto;
        padding: 0 1 1 1;
        border-top: solid $panel;
        background: $surface;
    }

    #message_input {
        width: 1fr;
    }

    #status_bar {
        height: auto;
        padding: 0 1;
        border-top: solid $panel;
        background: $surface;
    }

    #slash_menu {
        max-height: 8;
        width: 40;
        margin-bottom: 1;
    }

    #slash_menu.hidden {
        display: none;
    }

    MessageBubble {
        width: 100%;
        margin: 0 0 1 0;
        padding: 0 1;
    }

    .message-user {
        border-left: thick $primary;
    }

    .message-assistant {
        border-left: thick $success;
    }

    .message-error {
        border-left: thick $error;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "force_quit", "Quit", priority=True),
        Binding("ctrl+y", "copy_last_message", "Copy Last"),
        Binding("ctrl+l", "clear_conversation", "Clear"),
        Binding("pageup", "scroll_up", "Scroll Up", show=False),
        Binding("pagedown", "scroll_down", "Scroll Down", show=False),
    ]

    def __init__(
        self,
        *,
        profile_name: str | None = None,
        files: Sequence[str] = (),
        context_dir: str | None = None,
        resume: str | None = None,
        config: dict[str, Any] | None = None,
        gateway: CompletionGateway | None = None,
    ) -> None:
        self.config = config if config is not None else load_config()
        configure_logging(self.config["logging"])
        self.profile = resolve_profile(self.config, profile_name)
        self.gateway = gateway or CompletionGateway.from_profile(self.profile)
        self.session = ChatSession(
            self.profile,
            StreamSequencer(self.gateway),
            attachment_manager=AttachmentManager(
                max_file_size=self.config["files"]["max_file_size"]
            ),
            system_context=self.config["chat"]["system_context"],
            chats_directory=self.config["persistence"]["chats_directory"],
            auto_clear_after_send=self.config["files"]["auto_clear_after_send"],
            show_thinking=self.config["ui"]["show_thinking"],
            clipboard=self._copy_text,
        )
        self.session.deliver = self._post_chunk
        self._startup_options: dict[str, Any] = {
            "files": list(files),
            "context_dir": context_dir,
            "resume": resume,
        }
        self._exiting = False
        self._w_conversation: ConversationView | None = None
        self._w_input_box: InputBox | None = None
        self._w_input: CommandInput | None = None
        self._w_status: StatusBar | None = None
        super().__init__()

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="app-root"):
            yield ConversationView(
                id="conversation", show_thinking=self.config["ui"]["show_thinking"]
            )
            yield InputBox()
            yield StatusBar(id="status_bar")
        yield Footer()

    async def on_mount(self) -> None:
        self.title = str(self.config["app"]["title"])
        self._w_conversation = self.query_one(ConversationView)
        self._w_input_box = self.query_one(InputBox)
        self._w_input = self.query_one("#message_input", CommandInput)
        self._w_status = self.query_one(StatusBar)
        self.session.add_listener(self._refresh_view)
        await self.session.start(**self._startup_options)
        self._w_input.focus()

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------

    def _post_chunk(self, chunk: ChatChunk) -> bool:
        return self.post_message(ChunkReceived(chunk))

    async def on_chunk_received(self, message: ChunkReceived) -> None:
        await self.session.handle_chunk(message.chunk)

    def _copy_text(self, text: str) -> None:
        self.copy_to_clipboard(text)

    def _refresh_view(self) -> None:
        """Mirror session state into the widgets."""
        session = self.session
        if self._w_conversation is not None:
            self._w_conversation.sync(session.screen, session.screen_version)
        if self._w_input_box is not None:
            self._w_input_box.show_suggestions(
                session.suggestions.matches, session.suggestions.index
            )
        if self._w_status is not None:
            self._w_status.set_status(
                profile=str(self.profile["name"]),
                model=str(self.profile["model"]),
                state=session.state.value,
                ephemeral_count=len(session.ephemeral),
                context_count=len(session.context),
                bound_path=session.bound_path.name if session.bound_path else "",
            )
        self.sub_title = session.status or f"Model: {self.profile['model']}"
        if session.quit_requested and not self._exiting:
            self._exiting = True
            self.exit()

    def _sync_input_value(self) -> None:
        if self._w_input is None:
            return
        if self._w_input.value != self.session.input_buffer:
            self._w_input.value = self.session.input_buffer
            self._w_input.cursor_position = len(self._w_input.value)

    # ------------------------------------------------------------------
    # Input events
    # ------------------------------------------------------------------

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "message_input":
            return
        if event.value != self.session.input_buffer:
            self.session.set_input(event.value)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "message_input":
            return
        event.stop()
        if event.value != self.session.input_buffer:
            self.session.set_input(event.value)
        if self.session.suggestions.is_open:
            self.session.accept_suggestion()
            self._sync_input_value()
            return
        await self.send_user_message()

    async def send_user_message(self) -> None:
        """Submit the current input buffer to the session."""
        await self.session.submit()
        self._sync_input_value()

    def on_command_input_suggestion_move(self, event: CommandInput.SuggestionMove) -> None:
        event.stop()
        if not self.session.suggestions.is_open:
            return
        if event.step > 0:
            self.session.next_suggestion()
        else:
            self.session.previous_suggestion()

    def on_command_input_suggestions_closed(
        self, event: CommandInput.SuggestionsClosed
    ) -> None:
        event.stop()
        self.session.close_suggestions()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id != "slash_menu":
            return
        event.stop()
        self.session.suggestions.index = event.option_index
        self.session.accept_suggestion()
        self._sync_input_value()
        if self._w_input is not None:
            self._w_input.focus()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def action_force_quit(self) -> None:
        await self.session.force_quit()

    async def action_copy_last_message(self) -> None:
        await self.session.dispatch("/cp")

    async def action_clear_conversation(self) -> None:
        await self.session.dispatch("/clear")

    def action_scroll_up(self) -> None:
        if self._w_conversation is not None:
            self._w_conversation.scroll_relative(y=-10, animate=False)

    def action_scroll_down(self) -> None:
        if self._w_conversation is not None:
            self._w_conversation.scroll_relative(y=10, animate=False)

    async def on_unmount(self) -> None:
        """Release the stream transport and HTTP client during shutdown."""
        await self.session.stream_manager.cancel()
        await self.gateway.aclose()
