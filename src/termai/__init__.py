"""Top-level package for termai-tui."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import TermAIApp
    from .config import ensure_config_dir, load_config
    from .exceptions import (
        ConfigValidationError,
        GatewayError,
        InvalidFormatError,
        InvalidStateError,
        NotFoundError,
        TermAIError,
    )
    from .message_store import Message, Role, Transcript
    from .session import ChatSession
    from .state import SessionState, StateManager

__all__ = [
    "ChatSession",
    "ConfigValidationError",
    "GatewayError",
    "InvalidFormatError",
    "InvalidStateError",
    "Message",
    "NotFoundError",
    "Role",
    "SessionState",
    "StateManager",
    "TermAIApp",
    "TermAIError",
    "Transcript",
    "ensure_config_dir",
    "load_config",
]

_EXCEPTION_NAMES = {
    "ConfigValidationError",
    "GatewayError",
    "InvalidFormatError",
    "InvalidStateError",
    "NotFoundError",
    "TermAIError",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols to keep UI dependencies out of plain imports."""
    if name in _EXCEPTION_NAMES:
        from . import exceptions

        return getattr(exceptions, name)
    if name in {"ensure_config_dir", "load_config"}:
        from . import config

        return getattr(config, name)
    if name in {"Message", "Role", "Transcript"}:
        from . import message_store

        return getattr(message_store, name)
    if name in {"SessionState", "StateManager"}:
        from . import state

        return getattr(state, name)
    if name == "ChatSession":
        from .session import ChatSession

        return ChatSession
    if name == "TermAIApp":
        from .app import TermAIApp

        return TermAIApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
