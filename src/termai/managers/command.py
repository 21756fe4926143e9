"""Slash command registration, dispatch and prefix completion."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import logging

from ..exceptions import UnknownCommandError

LOGGER = logging.getLogger(__name__)

CommandHandler = Callable[[str], Awaitable[None]]


@dataclass
class CommandSpec:
    """One entry of the command table."""

    name: str
    handler: CommandHandler
    help_text: str = ""
    usage: str = ""


@dataclass
class SuggestionState:
    """Matches for the current input prefix and the highlighted index."""

    matches: list[str] = field(default_factory=list)
    index: int = 0

    @property
    def is_open(self) -> bool:
        return bool(self.matches)

    @property
    def selected(self) -> str | None:
        if not self.matches:
            return None
        return self.matches[self.index]

    def next(self) -> str | None:
        if not self.matches:
            return None
        self.index = (self.index + 1) % len(self.matches)
        return self.selected

    def previous(self) -> str | None:
        if not self.matches:
            return None
        self.index = (self.index - 1) % len(self.matches)
        return self.selected

    def update(self, matches: list[str]) -> None:
        """Replace matches, keeping the index when it is still in range."""
        self.matches = matches
        if self.index >= len(matches):
            self.index = 0

    def close(self) -> None:
        self.matches = []
        self.index = 0


class CommandManager:
    """Own the ordered command table.

    Commands are kept in declaration order, which is the order used by
    ``/help`` and by prefix completion.
    """

    def __init__(self) -> None:
        self._commands: dict[str, CommandSpec] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str = "",
        usage: str = "",
    ) -> None:
        """Register a slash command (``name`` with or without the leading /)."""
        normalized = "/" + name.lstrip("/")
        self._commands[normalized] = CommandSpec(
            name=normalized,
            handler=handler,
            help_text=help_text or f"Execute {normalized}",
            usage=usage or normalized,
        )
        LOGGER.debug("Registered command: %s", normalized)

    @staticmethod
    def parse(command_line: str) -> tuple[str, str]:
        """Split ``"/name args..."`` into ``("/name", "args...")``."""
        parts = command_line.strip().split(maxsplit=1)
        if not parts:
            return "", ""
        return parts[0], parts[1] if len(parts) > 1 else ""

    def is_command(self, text: str) -> bool:
        """Return True when ``text`` is a line the dispatcher should handle."""
        return text.strip().startswith("/")

    async def execute(self, command_line: str) -> None:
        """Run the handler for ``command_line``.

        Raises ``UnknownCommandError`` when the command is not registered;
        handler exceptions propagate to the caller.
        """
        name, args = self.parse(command_line)
        spec = self._commands.get(name)
        if spec is None:
            LOGGER.warning(
                "command.unknown", extra={"event": "command.unknown", "command": name}
            )
            raise UnknownCommandError(f"Unknown command: {name}")
        LOGGER.debug("command.execute", extra={"event": "command.execute", "command": name})
        await spec.handler(args)

    def names(self) -> list[str]:
        return list(self._commands)

    def get_commands(self) -> list[tuple[str, str]]:
        """Return ``(usage, help_text)`` pairs in declaration order."""
        return [(spec.usage, spec.help_text) for spec in self._commands.values()]

    def complete(self, prefix: str) -> list[str]:
        """Return command names starting with ``prefix`` (case-sensitive)."""
        if not prefix.startswith("/"):
            return []
        return [name for name in self._commands if name.startswith(prefix)]

    def help_text(self) -> str:
        """Render the command list shown by ``/help``."""
        width = max((len(usage) for usage, _ in self.get_commands()), default=0)
        lines = ["Available commands:"]
        for usage, text in self.get_commands():
            lines.append(f"  {usage.ljust(width)}  {text}")
        return "\n".join(lines)
