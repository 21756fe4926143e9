"""Widget exports for the termai UI."""

from .conversation import ConversationView
from .input_box import CommandInput, InputBox
from .message import MessageBubble
from .status_bar import StatusBar

__all__ = ["CommandInput", "ConversationView", "InputBox", "MessageBubble", "StatusBar"]
