"""Interactive chat session handler."""

from __future__ import annotations

import asyncio
import mimetypes
from pathlib import Path

import httpx
from rich.console import Console

from chatadapter.cancellation import CancellationToken
from chatadapter.cli.output import OutputFormatter
from chatadapter.errors import AdapterError, RequestCancelled
from chatadapter.llm.progress import ResponseCollector
from chatadapter.llm.providers.base import Provider
from chatadapter.llm.types import ChatMessage, ContentPart, ImagePart, RequestOptions, ResponsePart


def load_image(path: str | Path) -> ImagePart:
    """Read an image file into an ``ImagePart``; the MIME type comes from the suffix."""
    p = Path(path).expanduser()
    mime, _ = mimetypes.guess_type(p.name)
    if not mime or not mime.startswith("image/"):
        raise ValueError(f"Not an image file: {p}")
    return ImagePart(mime_type=mime, data=p.read_bytes())


class _StreamingSink:
    """Prints parts as they stream and keeps them for the history."""

    def __init__(self, formatter: OutputFormatter) -> None:
        self._formatter = formatter
        self.collector = ResponseCollector()

    def report(self, part: ResponsePart) -> None:
        self.collector.report(part)
        self._formatter.format_part(part)


class ChatHandler:
    """
    Manages the interactive chat loop.

    Keeps the conversation history, streams each answer to the console, and
    cancels the in-flight request on Ctrl-C.
    """

    def __init__(
        self,
        provider: Provider,
        model: str,
        console: Console | None = None,
        options: RequestOptions | None = None,
    ) -> None:
        self.provider = provider
        self.model = model
        self.console = console or Console()
        self.formatter = OutputFormatter(self.console)
        self.options = options or RequestOptions()
        self.history: list[ChatMessage] = []
        self._running = True

    async def ask(self, message: ChatMessage) -> ResponseCollector | None:
        """
        Send *message* with the history so far and stream the answer.

        The exchange is added to the history only when the request succeeds.
        """
        sink = _StreamingSink(self.formatter)
        token = CancellationToken()
        task = asyncio.ensure_future(
            self.provider.provide_response(
                self.model, [*self.history, message], self.options, sink, token
            )
        )
        try:
            await asyncio.shield(task)
        except (KeyboardInterrupt, asyncio.CancelledError):
            token.cancel()
            await asyncio.gather(task, return_exceptions=True)
            self.console.print("\n[dim]Cancelled.[/dim]")
            return None
        except RequestCancelled:
            self.console.print("\n[dim]Cancelled.[/dim]")
            return None
        except (AdapterError, httpx.HTTPError) as e:
            self.formatter.format_error(e)
            return None

        self.console.print()
        self.history.append(message)
        self.history.append(ChatMessage("assistant", list(sink.collector.parts)))
        return sink.collector

    async def handle_command(self, command: str) -> bool:
        """
        Handle inline commands. Returns True if the command was handled.
        """
        parts = command.strip().split(None, 1)
        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        if cmd == "/quit":
            self._running = False
            self.console.print("[dim]Goodbye.[/dim]")
            return True

        if cmd == "/clear":
            self.history.clear()
            self.console.print("  [dim]History cleared.[/dim]")
            return True

        if cmd == "/model":
            if not arg:
                ids = [info.id for info in self.provider.chat_information()]
                self.console.print(f"  Available models: {', '.join(ids) or '(none)'}")
                self.console.print(f"  Active: {self.model}")
            else:
                self.model = arg
                self.console.print(f"  Switched to model: [bold]{arg}[/bold]")
            return True

        if cmd == "/image":
            if not arg:
                self.console.print("  Usage: /image PATH [prompt]")
                return True
            path, _, prompt = arg.partition(" ")
            try:
                image = load_image(path)
            except (OSError, ValueError) as e:
                self.console.print(f"  [red]Error:[/red] {e}")
                return True
            msg_parts: list[ContentPart | str] = [image]
            if prompt.strip():
                msg_parts.insert(0, prompt.strip())
            self.console.print("[dim]assistant>[/dim] ", end="")
            await self.ask(ChatMessage.user(*msg_parts))
            return True

        if cmd == "/help":
            self.console.print(
                "  [bold]Commands:[/bold]\n"
                "  /quit          - Exit the chat\n"
                "  /clear         - Forget the conversation so far\n"
                "  /model [ID]    - Show or switch the model\n"
                "  /image PATH    - Send an image, optionally followed by a prompt\n"
                "  /help          - Show this help\n"
            )
            return True

        return False

    async def run_loop(self) -> None:
        """Main interactive loop."""
        self.console.print(
            f"[bold]chatadapter[/bold] - {self.model}\n"
            "[dim]Type /help for commands, /quit to exit.[/dim]\n"
        )

        while self._running:
            try:
                user_input = await asyncio.get_event_loop().run_in_executor(
                    None, lambda: input("you> ").strip()
                )
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/dim]")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                handled = await self.handle_command(user_input)
                if handled:
                    continue

            self.console.print("[dim]assistant>[/dim] ", end="")
            await self.ask(ChatMessage.user(user_input))
