"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from chatadapter.errors import AdapterError, ErrorCode
from chatadapter.llm.models import ModelInfo
from chatadapter.llm.types import ResponsePart, TextPart, ToolCall

ERROR_COLORS = {
    ErrorCode.VALIDATION_ERROR: "yellow",
    ErrorCode.TOKEN_BUDGET: "yellow",
    ErrorCode.PERMISSION_DENIED: "bold red",
    ErrorCode.RATE_LIMITED: "magenta",
    ErrorCode.CANCELLED: "dim",
}


class OutputFormatter:
    """Rich-based output formatting for the chatadapter CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_model_list(self, models: list[ModelInfo], default_model: str = "") -> None:
        table = Table(title="Models", show_lines=True)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name")
        table.add_column("Context", justify="right")
        table.add_column("Max output", justify="right")
        table.add_column("Tools", no_wrap=True)
        table.add_column("Vision", no_wrap=True)

        for m in models:
            model_id = f"{m.id} *" if m.id == default_model else m.id
            table.add_row(
                model_id,
                m.display_name,
                f"{m.context_window:,}",
                f"{m.max_output:,}",
                Text("yes", style="green") if m.supports_tools else Text("no", style="dim"),
                Text("yes", style="green") if m.supports_vision else Text("no", style="dim"),
            )

        self.console.print(table)

    def format_part(self, part: ResponsePart) -> None:
        """Render one streamed part as it arrives."""
        if isinstance(part, TextPart):
            self.console.print(part.value, end="", markup=False, highlight=False)
        elif isinstance(part, ToolCall):
            self.format_tool_call(part)

    def format_tool_call(self, call: ToolCall) -> None:
        args_str = json.dumps(call.arguments, indent=2, ensure_ascii=False)
        self.console.print()
        self.console.print(Panel(
            Syntax(args_str, "json", theme="monokai"),
            title=f"Tool call: [bold]{call.name}[/bold]",
            subtitle=f"[dim]{call.id}[/dim]",
        ))

    def format_error(self, error: Exception) -> None:
        if isinstance(error, AdapterError):
            color = ERROR_COLORS.get(error.code, "red")
            label = f"Error ({error.code}):"
        else:
            color, label = "red", "Error:"
        self.console.print()
        self.console.print(Text.assemble((label, color), " ", str(error)))

    def format_config(self, config: dict) -> None:
        json_str = json.dumps(config, indent=2, default=str)
        self.console.print(Syntax(json_str, "json", theme="monokai"))
