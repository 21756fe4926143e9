"""Headless one-shot mode: send a single prompt and print the streamed reply."""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import nullcontext
import logging
from typing import Any

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from .attachments import merge_attachments
from .config import resolve_profile
from .exceptions import GatewayError
from .formatting import render_response
from .gateway import CompletionGateway
from .managers.attachment import AttachmentManager
from .sequencer import StreamSequencer

LOGGER = logging.getLogger(__name__)


async def run_prompt(
    prompt: str,
    *,
    config: dict[str, Any],
    profile_name: str | None = None,
    files: Sequence[str] = (),
    gateway: CompletionGateway | None = None,
    console: Console | None = None,
) -> int:
    """Stream one reply for ``prompt`` and return a process exit code.

    On a terminal the reply is collected behind a spinner and printed once
    with content-aware formatting. When output is piped the raw text is
    written as it arrives.
    """
    console = console or Console()
    profile = resolve_profile(config, profile_name)
    manager = AttachmentManager(max_file_size=config["files"]["max_file_size"])
    attachments, errors = manager.process_paths(files)
    if errors:
        for error in errors:
            console.print(Text(f"Error: {error}", style="bold red"))
        return 1
    if attachments:
        console.print(Text(f"Processed {len(attachments)} file(s)", style="green"))
        for item in attachments:
            console.print(Text(f"  - {item.kind.title()}: {item.name}", style="dim"))

    messages: list[dict[str, Any]] = []
    system_context = config["chat"]["system_context"].strip()
    if system_context:
        messages.append({"role": "system", "content": system_context})
    messages.append({"role": "user", "content": prompt})
    request = merge_attachments(messages, attachments)

    console.print(Text(f"You: {prompt}", style="bold cyan"))
    if attachments:
        console.print(f"(with {len(attachments)} attachment(s))")
    console.print(Rule(style="dim"))
    console.print(Text("Assistant:", style="bold magenta"))

    gateway = gateway or CompletionGateway.from_profile(profile)
    show_thinking = config["ui"]["show_thinking"]
    parts: list[str] = []
    failure: Exception | None = None
    try:
        try:
            handle = await StreamSequencer(gateway).start(request)
        except GatewayError as exc:
            console.print(Text(f"Error: {exc}", style="bold red"))
            return 1
        try:
            with console.status("Thinking...") if console.is_terminal else nullcontext():
                async for chunk in handle:
                    if chunk.error is not None:
                        failure = chunk.error
                        break
                    if console.is_terminal:
                        parts.append(chunk.text)
                        continue
                    # Piped output gets the raw text as it streams.
                    if chunk.thinking and show_thinking:
                        console.out(chunk.thinking, style="dim", end="")
                    if chunk.text:
                        parts.append(chunk.text)
                        console.out(chunk.text, end="", highlight=False)
        finally:
            await handle.aclose()
    finally:
        await gateway.aclose()

    reply = "".join(parts)
    if failure is not None:
        console.print()
        console.print(Text(f"Error: {failure}", style="bold red"))
        return 1
    if console.is_terminal and reply:
        console.print(render_response(reply))
    else:
        console.print()
    LOGGER.info(
        "prompt.complete",
        extra={"event": "prompt.complete", "profile": profile["name"], "chars": len(reply)},
    )
    return 0
