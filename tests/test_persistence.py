"""Tests for the .chat transcript file format."""

from __future__ import annotations

import os
from pathlib import Path
import tempfile
import unittest
from unittest.mock import patch

from termai.exceptions import (
    InvalidFormatError,
    NotFoundError,
    PersistenceError,
    PersistenceIOError,
    TranscriptNotFoundError,
)
from termai.message_store import Message, Role, Transcript
from termai.persistence import (
    SEPARATOR,
    load_transcript,
    parse_messages,
    save_transcript,
    serialize_messages,
)


def _pairs(messages: list[Message]) -> list[tuple[str, str]]:
    return [(m.role.value, m.text) for m in messages]


class TranscriptFormatTests(unittest.TestCase):
    """Validate serialization and tolerant parsing."""

    def test_separator_is_fifty_characters(self) -> None:
        self.assertEqual(len(SEPARATOR), 50)

    def test_serialize_writes_role_prefix_and_separator(self) -> None:
        text = serialize_messages([Message(role=Role.USER, text="hello")])
        self.assertEqual(text, f"user: hello\n{SEPARATOR}\n")

    def test_multiline_bodies_and_blank_lines_survive(self) -> None:
        messages = [
            Message(role=Role.SYSTEM, text="be brief"),
            Message(role=Role.USER, text="line one\n\nline three\nassistant: not a role"),
            Message(role=Role.ASSISTANT, text="trailing newline\n"),
            Message(role=Role.USER, text=""),
        ]
        parsed = parse_messages(serialize_messages(messages))
        self.assertEqual(_pairs(parsed), _pairs(messages))

    def test_separator_text_inside_body_round_trips(self) -> None:
        messages = [
            Message(role=Role.ASSISTANT, text=f"above\n{SEPARATOR}\nbelow"),
            Message(role=Role.USER, text=f"\\{SEPARATOR}"),
            Message(role=Role.USER, text=SEPARATOR),
        ]
        parsed = parse_messages(serialize_messages(messages))
        self.assertEqual(_pairs(parsed), _pairs(messages))

    def test_record_without_trailing_separator_is_accepted(self) -> None:
        with self.assertLogs("termai.persistence", level="WARNING"):
            parsed = parse_messages("user: hello\n")
        self.assertEqual(_pairs(parsed), [("user", "hello")])

    def test_unattributed_lines_are_skipped_with_warning(self) -> None:
        content = (
            "garbage before\n"
            f"user: hi\n{SEPARATOR}\n"
            "\n"
            "stray text\n"
            f"{SEPARATOR}\n"
            f"assistant: there\n{SEPARATOR}\n"
        )
        with self.assertLogs("termai.persistence", level="WARNING") as logs:
            parsed = parse_messages(content)
        self.assertEqual(_pairs(parsed), [("user", "hi"), ("assistant", "there")])
        self.assertEqual(len(logs.output), 3)

    def test_role_prefix_without_space(self) -> None:
        parsed = parse_messages(f"user:\n{SEPARATOR}\n")
        self.assertEqual(_pairs(parsed), [("user", "")])


class TranscriptFileTests(unittest.TestCase):
    """Validate save/load against the filesystem."""

    def test_save_then_load_round_trip_creates_directories(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            target = Path(temp_dir) / "nested" / "dir" / "talk.chat"
            transcript = Transcript()
            transcript.append(Role.SYSTEM, "system prompt")
            transcript.append(Role.USER, "What is\nthis?")
            transcript.append(Role.ASSISTANT, "A test.")
            saved = transcript.save(target)
            self.assertEqual(saved, target)
            self.assertTrue(target.exists())
            leftovers = [p.name for p in target.parent.iterdir() if p.name != "talk.chat"]
            self.assertEqual(leftovers, [])

            restored = Transcript()
            count = restored.load(target)
            self.assertEqual(count, 3)
            self.assertEqual(_pairs(restored.messages), _pairs(transcript.messages))

    def test_save_skips_open_assistant_message(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            target = Path(temp_dir) / "open.chat"
            transcript = Transcript()
            transcript.append(Role.USER, "q")
            transcript.open_assistant()
            transcript.update_last("partial")
            transcript.save(target)
            self.assertEqual(_pairs(load_transcript(target)), [("user", "q")])

    def test_save_overwrites_existing_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            target = Path(temp_dir) / "over.chat"
            target.write_text("old content", encoding="utf-8")
            save_transcript(target, [Message(role=Role.USER, text="new")])
            self.assertEqual(_pairs(load_transcript(target)), [("user", "new")])

    def test_wrong_extension_is_invalid_format(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            target = Path(temp_dir) / "notes.txt"
            target.write_text(f"user: hi\n{SEPARATOR}\n", encoding="utf-8")
            with self.assertRaises(InvalidFormatError):
                load_transcript(target)
            with self.assertRaises(InvalidFormatError):
                save_transcript(target, [])

    def test_missing_file_is_invalid_format_and_not_found(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            target = Path(temp_dir) / "missing.chat"
            with self.assertRaises(TranscriptNotFoundError) as ctx:
                load_transcript(target)
            self.assertIsInstance(ctx.exception, InvalidFormatError)
            self.assertIsInstance(ctx.exception, NotFoundError)

    def test_failed_load_leaves_transcript_untouched(self) -> None:
        transcript = Transcript()
        transcript.append(Role.USER, "keep me")
        with tempfile.TemporaryDirectory() as temp_dir:
            with self.assertRaises(InvalidFormatError):
                transcript.load(Path(temp_dir) / "missing.chat")
        self.assertEqual(_pairs(transcript.messages), [("user", "keep me")])

    def test_stat_failure_during_load_is_io_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            target = Path(temp_dir) / "talk.chat"
            denied = PermissionError(13, "Permission denied")
            with patch.object(Path, "exists", side_effect=denied):
                with self.assertRaises(PersistenceIOError):
                    load_transcript(target)
            with self.assertRaises(PersistenceError):
                load_transcript(Path(temp_dir) / ("c" * 300 + ".chat"))

    @unittest.skipIf(os.name != "posix" or os.geteuid() == 0, "requires non-root POSIX")
    def test_unwritable_directory_raises_io_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            locked = Path(temp_dir) / "locked"
            locked.mkdir()
            locked.chmod(0o500)
            try:
                with self.assertRaises(PersistenceIOError):
                    save_transcript(locked / "x.chat", [Message(role=Role.USER, text="a")])
            finally:
                locked.chmod(0o700)


if __name__ == "__main__":
    unittest.main()
