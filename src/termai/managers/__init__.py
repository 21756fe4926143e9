"""Manager classes that keep collaborator concerns out of the session.

Available managers:
- AttachmentManager: file validation and conversion into attachments
- CommandManager: slash command table, dispatch and completion
- StreamManager: background pumping of stream handles
"""

from __future__ import annotations

from .attachment import IMAGE_EXTENSIONS, AttachmentManager
from .command import CommandManager, SuggestionState
from .stream import StreamManager

__all__ = [
    "AttachmentManager",
    "CommandManager",
    "IMAGE_EXTENSIONS",
    "StreamManager",
    "SuggestionState",
]
