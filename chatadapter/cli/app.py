"""
Main CLI application for chatadapter.

Usage:
    chatadapter ask PROMPT [--model ID] [--image PATH]... [--no-thinking] [--max-tokens N]
    chatadapter chat [--model ID]
    chatadapter models
    chatadapter tokens TEXT
    chatadapter config show|validate
    chatadapter version
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from chatadapter import __version__
from chatadapter.config import AdapterConfig, build_provider, load_config

app = typer.Typer(name="chatadapter", help="Streaming chat client for OpenAI-compatible endpoints")
config_app = typer.Typer(help="Configuration management")

app.add_typer(config_app, name="config")

console = Console()

_state: dict = {"config_path": None, "profile": None}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config_path() -> Path | None:
    """Find config file in standard locations."""
    if _state["config_path"] is not None:
        return _state["config_path"]
    candidates = [
        Path.cwd() / "chatadapter.yaml",
        Path.cwd() / "chatadapter.yml",
        Path.home() / ".config" / "chatadapter" / "config.yaml",
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def _load(cli_overrides: dict | None = None) -> AdapterConfig:
    return load_config(_get_config_path(), profile=_state["profile"], cli_overrides=cli_overrides)


@app.callback()
def main_callback(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to a YAML config file"),
    profile: Optional[str] = typer.Option(None, help="Config profile name"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _state["config_path"] = config
    _state["profile"] = profile


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def ask(
    prompt: str = typer.Argument(..., help="Message to send"),
    model: Optional[str] = typer.Option(None, help="Model ID"),
    image: Optional[List[Path]] = typer.Option(None, "--image", help="Attach an image (repeatable)"),
    no_thinking: bool = typer.Option(False, "--no-thinking", help="Disable the reasoning channel"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Output token limit"),
):
    """Send one message and stream the answer."""
    from chatadapter.cli.chat import ChatHandler, load_image
    from chatadapter.llm.types import ChatMessage, RequestOptions

    overrides: dict = {}
    if no_thinking:
        overrides["chat.enable_thinking"] = False
    cfg = _load(overrides)

    parts: list = [prompt]
    try:
        parts.extend(load_image(p) for p in image or [])
    except (OSError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    options = RequestOptions()
    if max_tokens is not None:
        options.model_options["max_tokens"] = max_tokens

    handler = ChatHandler(
        build_provider(cfg), model or cfg.chat.default_model, console=console, options=options
    )
    result = asyncio.run(handler.ask(ChatMessage.user(*parts)))
    if result is None:
        raise typer.Exit(1)


@app.command()
def chat(
    model: Optional[str] = typer.Option(None, help="Model ID"),
    no_thinking: bool = typer.Option(False, "--no-thinking", help="Disable the reasoning channel"),
):
    """Start an interactive chat session."""
    from chatadapter.cli.chat import ChatHandler

    cfg = _load({"chat.enable_thinking": False} if no_thinking else None)
    handler = ChatHandler(build_provider(cfg), model or cfg.chat.default_model, console=console)
    asyncio.run(handler.run_loop())


@app.command()
def models():
    """List the models the adapter offers."""
    from chatadapter.cli.output import OutputFormatter

    cfg = _load()
    provider = build_provider(cfg)
    if not provider.chat_information():
        console.print(
            f"[yellow]Warning:[/yellow] {cfg.api.api_key_env} is not set; "
            "no models are offered to hosts."
        )
    OutputFormatter(console).format_model_list(
        provider.catalog.public(), default_model=cfg.chat.default_model
    )


@app.command()
def tokens(text: str = typer.Argument(..., help="Text to estimate")):
    """Estimate the token count of TEXT."""
    from chatadapter.llm.token_counter import TokenCounter

    cfg = _load()
    console.print(TokenCounter(cfg.chat.max_tool_result_chars).count(text))


@config_app.command("show")
def config_show():
    """Show effective config."""
    from chatadapter.cli.output import OutputFormatter

    cfg = _load()
    formatter = OutputFormatter(console)
    formatter.format_config(cfg.to_dict())


@config_app.command("validate")
def config_validate():
    """Validate config and show any type issues."""
    from chatadapter.llm.models import ModelInfo

    config_path = _get_config_path()
    try:
        cfg = _load()
        for raw in cfg.models:
            ModelInfo.from_dict(raw)
        console.print("[green]Config is valid.[/green]")
        if config_path:
            console.print(f"  Loaded from: {config_path}")
        else:
            console.print("  [dim]No config file found, using defaults.[/dim]")
        console.print(f"  Endpoint: {cfg.api.base_url}")
        console.print(f"  Default model: {cfg.chat.default_model}")
        key_state = "set" if cfg.api.api_key() else "[yellow]not set[/yellow]"
        console.print(f"  API key ({cfg.api.api_key_env}): {key_state}")
    except Exception as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """Show version."""
    console.print(f"chatadapter v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
