"""Interactive chat session engine.

:class:`ChatSession` owns everything one chat screen needs: the transcript,
the ephemeral and context attachment sets, the input buffer and its command
suggestions, the stream in flight and the screen buffer that the UI renders.
It is driven from a single event loop: key handling calls ``set_input`` and
``submit``, and every streamed chunk comes back through ``handle_chunk``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
import shlex
from typing import Any

from .attachments import Attachment, AttachmentSet, merge_attachments
from .exceptions import (
    AttachmentError,
    CommandUsageError,
    GatewayError,
    NotFoundError,
    PersistenceError,
    PersistenceIOError,
    UnknownCommandError,
)
from .gateway import ChatChunk
from .managers.attachment import AttachmentManager
from .managers.command import CommandManager, SuggestionState
from .managers.stream import ChunkDelivery, StreamManager
from .message_store import Role, Transcript
from .persistence import CHAT_FILE_EXT
from .sequencer import StreamSequencer
from .state import SessionState, StateManager

LOGGER = logging.getLogger(__name__)

BUSY_MESSAGE = "Busy. Wait for the current response to finish."
EMPTY_RESPONSE = "(No response from model.)"
QUIT_COMMANDS = frozenset({"/exit", "/quit"})


class EntryKind(str, Enum):
    """What a block of the screen buffer represents."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ScreenEntry:
    """One rendered block; only the streaming assistant entry is mutated."""

    kind: EntryKind
    text: str
    thinking: str = ""
    final: bool = True


_ROLE_TO_ENTRY = {
    Role.SYSTEM: EntryKind.SYSTEM,
    Role.USER: EntryKind.USER,
    Role.ASSISTANT: EntryKind.ASSISTANT,
}


def _split_args(args: str) -> list[str]:
    try:
        return shlex.split(args)
    except ValueError as exc:
        raise CommandUsageError(f"Could not parse arguments: {exc}") from exc


class ChatSession:
    """Session state machine for one chat screen."""

    def __init__(
        self,
        profile: dict[str, Any],
        sequencer: StreamSequencer,
        *,
        attachment_manager: AttachmentManager | None = None,
        system_context: str = "",
        chats_directory: str | Path = "~/.local/share/termai/chats",
        auto_clear_after_send: bool = True,
        show_thinking: bool = True,
        clipboard: Callable[[str], None] | None = None,
    ) -> None:
        self.profile = dict(profile)
        self.sequencer = sequencer
        self.attachment_manager = attachment_manager or AttachmentManager()
        self.system_context = system_context.strip()
        self.chats_directory = Path(chats_directory).expanduser()
        self.auto_clear_after_send = auto_clear_after_send
        self.show_thinking = show_thinking
        self.clipboard = clipboard

        self.transcript = Transcript()
        self.ephemeral = AttachmentSet()
        self.context = AttachmentSet()
        self.context_dir: str | None = None
        self.bound_path: Path | None = None

        self.input_buffer = ""
        self.suggestions = SuggestionState()
        self._accepted_value: str | None = None
        self.last_error: str | None = None
        self.status = ""
        self.quit_requested = False

        self.screen: list[ScreenEntry] = []
        # Bumped whenever ``screen`` is rebuilt rather than appended to.
        self.screen_version = 0
        self._stream_entry: ScreenEntry | None = None
        self._listeners: list[Callable[[], None]] = []

        self._state = StateManager()
        self.stream_manager = StreamManager()
        self.deliver: ChunkDelivery = self.handle_chunk

        self.commands = CommandManager()
        self._register_commands()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state.state

    @property
    def streaming(self) -> bool:
        return self.state is SessionState.STREAMING

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` after every change to the screen or status."""
        self._listeners.append(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()

    def _emit(self, kind: EntryKind, text: str) -> ScreenEntry:
        entry = ScreenEntry(kind=kind, text=text)
        self.screen.append(entry)
        if kind is EntryKind.ERROR:
            self.last_error = text
        self._notify()
        return entry

    def _rebuild_screen(self) -> None:
        self.screen = [
            ScreenEntry(kind=_ROLE_TO_ENTRY[message.role], text=message.text)
            for message in self.transcript.messages
            if message.role is not Role.SYSTEM
        ]
        self.screen_version += 1
        self._stream_entry = None

    def pending_attachments(self) -> list[Attachment]:
        """Return the union of ephemeral and context attachments, in that order."""
        return self.ephemeral.items + self.context.items

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(
        self,
        *,
        files: Iterable[str] = (),
        context_dir: str | None = None,
        resume: str | None = None,
    ) -> None:
        """Seed the session from CLI options and give focus to the input."""
        if self.system_context:
            self.transcript.append(Role.SYSTEM, self.system_context)
        self._emit(
            EntryKind.INFO,
            f"TermAI - profile {self.profile.get('name', '?')} "
            f"({self.profile.get('model', '?')}). Type /help for commands.",
        )

        if resume:
            try:
                await self.commands.execute(f"/load {shlex.quote(resume)}")
            except (PersistenceError, NotFoundError, CommandUsageError) as exc:
                self._emit(EntryKind.ERROR, f"Error: {exc}")

        paths = list(files)
        if paths:
            self._attach_into(self.ephemeral, paths, expand_directories=False)

        if context_dir:
            found, errors = self.attachment_manager.scan_directory(context_dir)
            self.context.extend(found)
            self.context_dir = context_dir
            for error in errors:
                self._emit(EntryKind.ERROR, f"Error: {error}")
            if found:
                self._emit(
                    EntryKind.SUCCESS,
                    f"Loaded {len(found)} context file(s) from {context_dir}",
                )

        await self._state.transition_to(SessionState.COMPOSING)
        LOGGER.info(
            "session.started",
            extra={
                "event": "session.started",
                "profile": self.profile.get("name"),
                "messages": len(self.transcript),
            },
        )
        self._notify()

    # ------------------------------------------------------------------
    # Input and suggestions
    # ------------------------------------------------------------------

    def set_input(self, text: str) -> None:
        """Update the input buffer and refresh command suggestions."""
        self.input_buffer = text
        if self.streaming or not text.startswith("/"):
            self.suggestions.close()
        elif text == self._accepted_value:
            # Just accepted: keep the list closed until the user edits again.
            self.suggestions.close()
        else:
            self._accepted_value = None
            self.suggestions.update(self.commands.complete(text))
        self._notify()

    def next_suggestion(self) -> str | None:
        selected = self.suggestions.next()
        self._notify()
        return selected

    def previous_suggestion(self) -> str | None:
        selected = self.suggestions.previous()
        self._notify()
        return selected

    def close_suggestions(self) -> None:
        self.suggestions.close()
        self._notify()

    def accept_suggestion(self) -> bool:
        """Copy the highlighted command into the input buffer."""
        selected = self.suggestions.selected
        if selected is None:
            return False
        self.input_buffer = selected
        self._accepted_value = selected
        self.suggestions.close()
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, text: str | None = None) -> None:
        """Route the input buffer (or ``text``) to a command or a new message."""
        line = (self.input_buffer if text is None else text).strip()
        if not line:
            return

        is_command = self.commands.is_command(line)
        if self.streaming:
            name, _ = self.commands.parse(line)
            if is_command and name in QUIT_COMMANDS:
                await self.force_quit()
                return
            self.status = BUSY_MESSAGE
            self._notify()
            return

        self.input_buffer = ""
        self._accepted_value = None
        self.suggestions.close()
        self.status = ""
        if is_command:
            await self.dispatch(line)
        else:
            await self._send_message(line)

    async def dispatch(self, line: str) -> None:
        """Run one slash command and render its outcome."""
        name, _ = self.commands.parse(line)
        if self.streaming and name not in QUIT_COMMANDS:
            self.status = BUSY_MESSAGE
            self._notify()
            return
        # Command outcomes never move the state machine; failures only
        # record ``last_error`` through the rendered error line.
        try:
            await self.commands.execute(line)
        except UnknownCommandError as exc:
            self._emit(EntryKind.ERROR, str(exc))
        except (CommandUsageError, NotFoundError, PersistenceError, AttachmentError) as exc:
            LOGGER.info(
                "session.command.failed",
                extra={"event": "session.command.failed", "reason": str(exc)},
            )
            self._emit(EntryKind.ERROR, f"Error: {exc}")
        self._notify()

    async def _send_message(self, text: str) -> None:
        if not await self._state.begin_streaming():
            self.status = BUSY_MESSAGE
            self._notify()
            return

        self.last_error = None
        self.transcript.append(Role.USER, text)
        self._emit(EntryKind.USER, text)
        request = merge_attachments(
            self.transcript.request_messages(), self.pending_attachments()
        )
        self.transcript.open_assistant()
        self._stream_entry = ScreenEntry(kind=EntryKind.ASSISTANT, text="", final=False)
        self.screen.append(self._stream_entry)
        self.status = "Waiting for response..."
        self._notify()

        LOGGER.info(
            "session.stream.start",
            extra={
                "event": "session.stream.start",
                "messages": len(request),
                "attachments": len(self.pending_attachments()),
            },
        )
        try:
            handle = await self.sequencer.start(request)
        except GatewayError as exc:
            LOGGER.warning(
                "session.stream.start_failed",
                extra={"event": "session.stream.start_failed", "reason": str(exc)},
            )
            self.transcript.discard_open()
            self._drop_stream_entry()
            self.status = ""
            self._emit(EntryKind.ERROR, f"Error: {exc}")
            await self._state.transition_to(SessionState.ERROR)
            self._notify()
            return

        self.stream_manager.start(handle, self.deliver)

    def _drop_stream_entry(self) -> None:
        if self._stream_entry is not None and self._stream_entry in self.screen:
            self.screen.remove(self._stream_entry)
            self.screen_version += 1
        self._stream_entry = None

    async def handle_chunk(self, chunk: ChatChunk) -> None:
        """Apply one streamed chunk; chunks arriving outside a stream are dropped."""
        if not self.streaming or not self.transcript.has_open_message:
            LOGGER.debug("session.chunk.ignored", extra={"event": "session.chunk.ignored"})
            return
        entry = self._stream_entry

        if chunk.error is not None:
            # Keep whatever text arrived; an empty reply leaves no trace.
            if self.transcript.messages[-1].text:
                self.transcript.close_last()
                if entry is not None:
                    entry.final = True
            else:
                self.transcript.discard_open()
                self._drop_stream_entry()
            self._stream_entry = None
            self.status = ""
            self._emit(EntryKind.ERROR, f"Error: {chunk.error}")
            await self._state.transition_to(SessionState.ERROR)
            self._notify()
            return

        if chunk.thinking and self.show_thinking and entry is not None:
            entry.thinking += chunk.thinking
        if chunk.text:
            self.transcript.update_last(chunk.text)
            if entry is not None:
                entry.text += chunk.text
            self.status = "Streaming response..."

        if chunk.is_final:
            message = self.transcript.close_last()
            if entry is not None:
                if not message.text:
                    entry.text = EMPTY_RESPONSE
                entry.final = True
            self._stream_entry = None
            if self.auto_clear_after_send:
                self.ephemeral.clear()
            self.status = ""
            await self._state.transition_to(SessionState.COMPOSING)
            LOGGER.info(
                "session.stream.complete",
                extra={"event": "session.stream.complete", "chars": len(message.text)},
            )
        self._notify()

    async def force_quit(self) -> None:
        """Stop any stream and flag the session for termination."""
        await self.stream_manager.cancel()
        if self.transcript.has_open_message:
            self.transcript.close_last()
        if self._stream_entry is not None:
            self._stream_entry.final = True
            self._stream_entry = None
        self.quit_requested = True
        LOGGER.info("session.quit", extra={"event": "session.quit"})
        self._notify()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _register_commands(self) -> None:
        register = self.commands.register
        register("/help", self._cmd_help, "Show this help message")
        register("/exit", self._cmd_exit, "Exit the chat")
        register("/quit", self._cmd_exit, "Exit the chat")
        register("/clear", self._cmd_clear, "Clear conversation context")
        register("/profile", self._cmd_profile, "Show current profile info")
        register(
            "/attach", self._cmd_attach, "Attach files to the next message",
            usage="/attach <file...>",
        )
        register("/files", self._cmd_files, "List attached files")
        register("/clear-files", self._cmd_clear_files, "Clear attached files")
        register("/context", self._cmd_context, "Show context files")
        register(
            "/context-add", self._cmd_context_add, "Add files or directories to context",
            usage="/context-add <path...>",
        )
        register(
            "/context-remove", self._cmd_context_remove, "Remove a file from context",
            usage="/context-remove <name>",
        )
        register(
            "/save", self._cmd_save, "Save the conversation",
            usage="/save [name [-d dir]]",
        )
        register("/load", self._cmd_load, "Load a saved conversation", usage="/load <path>")
        register("/cp", self._cmd_cp, "Copy the last response to the clipboard")

    async def _cmd_help(self, _args: str) -> None:
        self._emit(EntryKind.INFO, self.commands.help_text())

    async def _cmd_exit(self, _args: str) -> None:
        await self.force_quit()

    async def _cmd_clear(self, _args: str) -> None:
        self.transcript.clear()
        self._emit(EntryKind.SUCCESS, "Conversation context cleared")

    async def _cmd_profile(self, _args: str) -> None:
        profile = self.profile
        lines = [
            "Current Profile:",
            f"  Name:        {profile.get('name', '')}",
            f"  Provider:    {profile.get('provider', '')}",
            f"  Model:       {profile.get('model', '')}",
            f"  Endpoint:    {profile.get('endpoint', '')}",
            f"  Temperature: {profile.get('temperature', '')}",
            f"  Max Tokens:  {profile.get('max_tokens', '')}",
            f"  Top P:       {profile.get('top_p', '')}",
        ]
        self._emit(EntryKind.INFO, "\n".join(lines))

    def _attach_into(
        self, target: AttachmentSet, paths: list[str], *, expand_directories: bool
    ) -> list[Attachment]:
        if expand_directories:
            found, errors = self.attachment_manager.expand_and_process(paths)
        else:
            found, errors = self.attachment_manager.process_paths(paths)
        target.extend(found)
        for error in errors:
            self._emit(EntryKind.ERROR, f"Error: {error}")
        if found:
            names = ", ".join(item.name for item in found)
            self._emit(EntryKind.SUCCESS, f"Attached {len(found)} file(s): {names}")
        return found

    async def _cmd_attach(self, args: str) -> None:
        paths = _split_args(args)
        if not paths:
            raise CommandUsageError("/attach requires at least one file path")
        self._attach_into(self.ephemeral, paths, expand_directories=False)

    @staticmethod
    def _describe(title: str, attachments: AttachmentSet) -> str:
        lines = [f"{title} ({len(attachments)}):"]
        lines.extend(f"  - {item.name} ({item.kind})" for item in attachments)
        return "\n".join(lines)

    async def _cmd_files(self, _args: str) -> None:
        if not self.ephemeral:
            self._emit(EntryKind.INFO, "No files attached")
            return
        self._emit(EntryKind.INFO, self._describe("Attached files", self.ephemeral))

    async def _cmd_clear_files(self, _args: str) -> None:
        count = self.ephemeral.clear()
        self._emit(EntryKind.SUCCESS, f"Cleared {count} attached file(s)")

    async def _cmd_context(self, _args: str) -> None:
        if not self.context:
            self._emit(EntryKind.INFO, "No context files")
            return
        title = "Context files"
        if self.context_dir:
            title = f"Context: {self.context_dir}"
        self._emit(EntryKind.INFO, self._describe(title, self.context))

    async def _cmd_context_add(self, args: str) -> None:
        paths = _split_args(args)
        if not paths:
            raise CommandUsageError("/context-add requires at least one file or directory path")
        self._attach_into(self.context, paths, expand_directories=True)

    async def _cmd_context_remove(self, args: str) -> None:
        tokens = _split_args(args)
        if len(tokens) != 1:
            raise CommandUsageError("/context-remove requires a file name")
        removed = self.context.remove(tokens[0])
        self._emit(EntryKind.SUCCESS, f"Removed '{removed.name}' from context")

    @staticmethod
    def _with_extension(name: str) -> str:
        return name if name.endswith(CHAT_FILE_EXT) else name + CHAT_FILE_EXT

    async def _cmd_save(self, args: str) -> None:
        tokens = _split_args(args)
        if not tokens:
            if self.bound_path is None:
                raise CommandUsageError(
                    "/save requires a chat name when no conversation is loaded"
                )
            target = self.bound_path
        else:
            directory = self.chats_directory
            if len(tokens) == 3 and tokens[1] == "-d":
                directory = Path(tokens[2]).expanduser()
            elif len(tokens) != 1:
                raise CommandUsageError("Usage: /save [name [-d dir]]")
            target = directory / self._with_extension(tokens[0])

        saved = self.transcript.save(target)
        self.bound_path = saved
        self._emit(EntryKind.SUCCESS, f"Conversation saved to {saved}")

    def resolve_load_path(self, raw: str) -> Path:
        """Resolve a ``/load`` argument against the chats directory and cwd."""
        candidate = Path(raw).expanduser()
        if not candidate.name:
            raise CommandUsageError("Usage: /load <path>")
        if not candidate.suffix:
            candidate = candidate.with_name(candidate.name + CHAT_FILE_EXT)
        if candidate.is_absolute():
            return candidate
        in_chats = self.chats_directory / candidate
        try:
            if in_chats.exists():
                return in_chats
            return Path.cwd() / candidate
        except OSError as exc:
            raise PersistenceIOError(f"Cannot resolve transcript path {raw}: {exc}") from exc

    async def _cmd_load(self, args: str) -> None:
        tokens = _split_args(args)
        if len(tokens) != 1:
            raise CommandUsageError("Usage: /load <path>")
        target = self.resolve_load_path(tokens[0])
        count = self.transcript.load(target)
        self.bound_path = target
        self._rebuild_screen()
        self._emit(
            EntryKind.SUCCESS, f"Conversation loaded from '{target}' ({count} messages)"
        )

    async def _cmd_cp(self, _args: str) -> None:
        text = self.transcript.last_assistant_text()
        if text is None:
            return
        if self.clipboard is None:
            self._emit(EntryKind.ERROR, "Error: clipboard is not available")
            return
        self.clipboard(text)
        self._emit(EntryKind.SUCCESS, "Copied last response to clipboard")
