"""Transcript file format: save and load.

A transcript is plain UTF-8 text. Every message is written as::

    <role>: <text>
    --------------------------------------------------

where ``<text>`` may span several lines. A body line that would read as the
separator is escaped with a leading backslash so that it round-trips.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import logging
import os
from pathlib import Path
import re
import tempfile

from .exceptions import (
    InvalidFormatError,
    PersistenceIOError,
    TranscriptNotFoundError,
)
from .message_store import Message, Role

LOGGER = logging.getLogger(__name__)

CHAT_FILE_EXT = ".chat"
SEPARATOR = "-" * 50

_ROLE_PREFIX = re.compile(r"^(system|user|assistant): ?(.*)$", re.DOTALL)
_ESCAPED_SEPARATOR = re.compile(r"^\\*" + re.escape(SEPARATOR) + r"$")


def _enforce_permissions(path: Path, mode: int = 0o600) -> None:
    """Set POSIX permissions on a file or directory; failures are logged."""
    if os.name != "posix":
        return
    try:
        path.chmod(mode)
    except OSError as exc:
        LOGGER.warning(
            "persistence.chmod_failed",
            extra={"event": "persistence.chmod_failed", "path": str(path), "reason": str(exc)},
        )


def ensure_chat_extension(path: str | Path) -> Path:
    """Return ``path`` as a Path, rejecting anything but ``.chat`` files."""
    candidate = Path(path).expanduser()
    if candidate.suffix != CHAT_FILE_EXT:
        raise InvalidFormatError(
            f"Transcript files must use the {CHAT_FILE_EXT} extension: {candidate}"
        )
    return candidate


def _escape_line(line: str) -> str:
    if _ESCAPED_SEPARATOR.match(line):
        return "\\" + line
    return line


def _unescape_line(line: str) -> str:
    if line.startswith("\\") and _ESCAPED_SEPARATOR.match(line):
        return line[1:]
    return line


def serialize_messages(messages: Iterable[Message]) -> str:
    """Render messages in the transcript text format."""
    parts: list[str] = []
    for message in messages:
        body = "\n".join(_escape_line(line) for line in message.text.split("\n"))
        parts.append(f"{message.role.value}: {body}\n{SEPARATOR}\n")
    return "".join(parts)


def parse_messages(content: str, *, source: str = "<string>") -> list[Message]:
    """Parse transcript text, skipping lines that belong to no record.

    A record left open at end of input is accepted as a complete message.
    """
    messages: list[Message] = []
    role: Role | None = None
    body: list[str] = []

    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()

    for line_number, line in enumerate(lines, start=1):
        if line == SEPARATOR:
            if role is None:
                LOGGER.warning(
                    "persistence.parse.stray_separator",
                    extra={
                        "event": "persistence.parse.stray_separator",
                        "source": source,
                        "line": line_number,
                    },
                )
                continue
            messages.append(Message(role=role, text="\n".join(body)))
            role, body = None, []
            continue

        if role is not None:
            body.append(_unescape_line(line))
            continue

        match = _ROLE_PREFIX.match(line)
        if match:
            role = Role(match.group(1))
            body = [_unescape_line(match.group(2))]
        elif line.strip():
            LOGGER.warning(
                "persistence.parse.skipped_line",
                extra={
                    "event": "persistence.parse.skipped_line",
                    "source": source,
                    "line": line_number,
                },
            )

    if role is not None:
        LOGGER.warning(
            "persistence.parse.unterminated_record",
            extra={"event": "persistence.parse.unterminated_record", "source": source},
        )
        messages.append(Message(role=role, text="\n".join(body)))
    return messages


def save_transcript(path: str | Path, messages: Sequence[Message]) -> Path:
    """Atomically write ``messages`` to ``path``, creating parent directories."""
    target = ensure_chat_extension(path)
    payload = serialize_messages(messages)
    temp_name = ""
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
        )
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(payload)
        os.replace(temp_name, target)
        temp_name = ""
    except OSError as exc:
        raise PersistenceIOError(f"Unable to save transcript to {target}: {exc}") from exc
    finally:
        if temp_name:
            Path(temp_name).unlink(missing_ok=True)
    _enforce_permissions(target)
    LOGGER.info(
        "persistence.saved",
        extra={"event": "persistence.saved", "path": str(target), "messages": len(messages)},
    )
    return target


def load_transcript(path: str | Path) -> list[Message]:
    """Read and parse a transcript file."""
    target = ensure_chat_extension(path)
    try:
        if not target.exists():
            raise TranscriptNotFoundError(f"Transcript not found: {target}")
        if not target.is_file():
            raise InvalidFormatError(f"Not a transcript file: {target}")
        with target.open("r", encoding="utf-8", newline="") as handle:
            content = handle.read()
    except UnicodeDecodeError as exc:
        raise InvalidFormatError(f"Transcript is not valid UTF-8: {target}") from exc
    except OSError as exc:
        raise PersistenceIOError(f"Unable to read transcript {target}: {exc}") from exc

    messages = parse_messages(content, source=str(target))
    LOGGER.info(
        "persistence.loaded",
        extra={"event": "persistence.loaded", "path": str(target), "messages": len(messages)},
    )
    return messages
