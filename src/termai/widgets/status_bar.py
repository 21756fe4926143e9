"""Status bar widget for profile and session telemetry."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.widgets import Label, Static


class StatusBar(Static):
    """Render compact runtime status information.

    Segments (left to right):
        Profile: default  |  Model: llama3.2  |  COMPOSING  |  Files: 1 + 3  |  chat.chat
    """

    DEFAULT_CSS = """
    StatusBar {
        layout: horizontal;
        height: auto;
    }
    StatusBar Label {
        margin-right: 1;
    }
    StatusBar #status_state.error {
        color: $error;
    }
    """

    def compose(self) -> ComposeResult:
        yield Label("Profile: -", id="status_profile")
        yield Label("|")
        yield Label("Model: -", id="status_model")
        yield Label("|")
        yield Label("IDLE", id="status_state")
        yield Label("|")
        yield Label("Files: 0 + 0", id="status_files")
        yield Label("|", id="status_sep_path")
        yield Label("", id="status_path")

    def on_mount(self) -> None:
        self._lbl_profile = self.query_one("#status_profile", Label)
        self._lbl_model = self.query_one("#status_model", Label)
        self._lbl_state = self.query_one("#status_state", Label)
        self._lbl_files = self.query_one("#status_files", Label)
        self._lbl_path = self.query_one("#status_path", Label)
        self._sep_path = self.query_one("#status_sep_path", Label)

    def set_status(
        self,
        *,
        profile: str,
        model: str,
        state: str,
        ephemeral_count: int,
        context_count: int,
        bound_path: str = "",
    ) -> None:
        """Update all status segment labels."""
        self._lbl_profile.update(f"Profile: {profile}")
        self._lbl_model.update(f"Model: {model}")
        self._lbl_state.update(state)
        self._lbl_state.set_class(state == "ERROR", "error")
        self._lbl_files.update(f"Files: {ephemeral_count} + {context_count}")
        self._lbl_path.update(bound_path)
        self._lbl_path.display = bool(bound_path)
        self._sep_path.display = bool(bound_path)
