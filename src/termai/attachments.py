"""Attachment records, ordered attachment sets, and request merging."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from .exceptions import NotFoundError

AttachmentKind = Literal["image", "pdf", "text", "code"]


@dataclass(frozen=True)
class Attachment:
    """A processed file ready to be sent with a message.

    ``payload`` is a ``data:`` URL for images and extracted text otherwise.
    """

    name: str
    kind: AttachmentKind
    payload: str
    source_path: str
    mime_type: str = ""

    @property
    def is_image(self) -> bool:
        return self.kind == "image"


class AttachmentSet:
    """Insertion-ordered attachments keyed by their resolved source path."""

    def __init__(self, attachments: Iterable[Attachment] | None = None) -> None:
        self._items: dict[str, Attachment] = {}
        self.extend(attachments or [])

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Attachment]:
        return iter(list(self._items.values()))

    def __bool__(self) -> bool:
        return bool(self._items)

    @property
    def items(self) -> list[Attachment]:
        return list(self._items.values())

    def add(self, attachment: Attachment) -> None:
        """Add ``attachment``; re-adding a path replaces the older entry."""
        self._items.pop(attachment.source_path, None)
        self._items[attachment.source_path] = attachment

    def extend(self, attachments: Iterable[Attachment]) -> None:
        for attachment in attachments:
            self.add(attachment)

    def remove(self, identifier: str) -> Attachment:
        """Remove the first entry whose name or source path equals ``identifier``."""
        for key, attachment in self._items.items():
            if identifier in (attachment.name, attachment.source_path):
                del self._items[key]
                return attachment
        raise NotFoundError(f"File '{identifier}' not found in context")

    def clear(self) -> int:
        """Drop all entries and return how many were removed."""
        count = len(self._items)
        self._items.clear()
        return count


def content_block(attachment: Attachment) -> str:
    """Return the delimited text block appended to a message for ``attachment``."""
    return (
        f"\n\n--- Content from {attachment.name} ---\n"
        f"{attachment.payload}\n"
        f"--- End of {attachment.name} ---"
    )


def merge_attachments(
    messages: Sequence[dict[str, Any]],
    attachments: Iterable[Attachment],
) -> list[dict[str, Any]]:
    """Fold attachments into the final message of a request.

    Text, PDF and code payloads are appended to the final message body in
    attachment order; image payloads become its image list. Inputs are never
    mutated, so merging the same request twice gives the same result.
    """
    merged = [dict(message) for message in messages]
    ordered = list(attachments)
    if not merged or not ordered:
        return merged

    images = [item.payload for item in ordered if item.is_image]
    texts = [content_block(item) for item in ordered if not item.is_image]

    final = merged[-1]
    final["content"] = str(final.get("content", "")) + "".join(texts)
    if images:
        final["images"] = images
    return merged
