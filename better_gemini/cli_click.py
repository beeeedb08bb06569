"""
better_gemini.cli_click
-----------------------

User-facing Click command-line interface.

Commands
--------
url   : Print the Gemini URL that carries a prompt
open  : Open Gemini on that URL and inject/submit the prompt
send  : Post a prompt to the listener in an open Gemini tab (message carrier)
ping  : Check that a Gemini tab has a listener answering messages
watch : Inject every Gemini page load that carries a prompt
"""

from __future__ import annotations

import json
import logging
import os
import sys
from importlib import metadata

import click
from dotenv import load_dotenv, find_dotenv
from playwright.async_api import Error as PlaywrightError

from better_gemini.channel import build_prompt_url
from better_gemini.cli import open_and_inject_sync, send_message_sync, watch_sync
from better_gemini.config import InjectorConfig, load_config
from better_gemini.constants import DOTENV_ENV
from better_gemini.errors import ConfigError
from better_gemini.orchestrator import InjectionState

_LOG = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_env() -> None:
    """Load $BETTER_GEMINI_DOTENV, else the nearest .env above the cwd."""
    explicit = os.environ.get(DOTENV_ENV)
    if explicit and os.path.exists(explicit):
        load_dotenv(explicit)
        _LOG.debug("Loaded .env from %s: %s", DOTENV_ENV, explicit)
        return
    discovered = find_dotenv(usecwd=True)
    if discovered:
        load_dotenv(discovered)
        _LOG.debug("Loaded .env at startup: %s", discovered)


def _config(ctx: click.Context, **overrides) -> InjectorConfig:
    overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        return load_config(**overrides)
    except ConfigError as exc:
        raise click.UsageError(str(exc), ctx=ctx) from exc


def _read_prompt(prompt: str | None, stdin: bool, clipboard: bool) -> str:
    if stdin:
        return sys.stdin.read()
    if clipboard:
        import pyperclip  # local import to avoid hard dependency at import time

        try:
            return pyperclip.paste()
        except pyperclip.PyperclipException as exc:
            raise click.ClickException(f"Clipboard unavailable: {exc}") from exc
    if prompt is None:
        raise click.UsageError("Provide PROMPT, --stdin or --clipboard.")
    return prompt


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
@click.version_option(metadata.version("better-gemini"))
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:  # noqa: D401  (Click demands plain name)
    """better-gemini – send prompts straight into the Gemini web app."""
    _configure_logging(verbose)
    _load_env()
    ctx.ensure_object(dict)


# --------------------------------------------------------------------------- #
# url command                                                                 #
# --------------------------------------------------------------------------- #


@cli.command("url")
@click.argument("prompt", nargs=-1, required=True)
@click.pass_context
def cmd_url(ctx: click.Context, prompt: tuple[str, ...]) -> None:
    """Print the Gemini URL that carries PROMPT."""
    cfg = _config(ctx)
    click.echo(build_prompt_url(cfg.app_url, " ".join(prompt), cfg.url_param))


# --------------------------------------------------------------------------- #
# open command                                                                #
# --------------------------------------------------------------------------- #


@cli.command("open")
@click.argument("prompt", required=False)
@click.option("-s", "--stdin", is_flag=True, help="Read prompt text from STDIN.")
@click.option("-c", "--clipboard", is_flag=True, help="Use the clipboard as prompt.")
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Seconds to wait for the chat input to appear.",
)
@click.pass_context
def cmd_open(
    ctx: click.Context,
    prompt: str | None,
    stdin: bool,
    clipboard: bool,
    timeout: float | None,
) -> None:
    """Open Gemini with PROMPT, inject it and submit it."""
    text = _read_prompt(prompt, stdin, clipboard).strip()
    if not text:
        raise click.UsageError("Prompt is empty.")
    cfg = _config(ctx, element_timeout=timeout)

    try:
        outcome = open_and_inject_sync(text, cfg)
    except (RuntimeError, PlaywrightError) as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"State: {outcome.state.value}")
    if outcome.submit is not None:
        click.echo(f"Submit: {outcome.submit.status.value} ({outcome.submit.attempts} attempts)")
    if outcome.error:
        click.echo(f"Error: {outcome.error}", err=True)
    if outcome.state is not InjectionState.CLEANED_UP:
        ctx.exit(1)


# --------------------------------------------------------------------------- #
# send / ping commands                                                        #
# --------------------------------------------------------------------------- #


def _route(ctx: click.Context, message: dict) -> None:
    cfg = _config(ctx)
    try:
        reply = send_message_sync(message, cfg)
    except (RuntimeError, PlaywrightError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(json.dumps(reply))


@cli.command("send")
@click.argument("prompt", required=False)
@click.option("-s", "--stdin", is_flag=True, help="Read prompt text from STDIN.")
@click.option("-c", "--clipboard", is_flag=True, help="Use the clipboard as prompt.")
@click.pass_context
def cmd_send(ctx: click.Context, prompt: str | None, stdin: bool, clipboard: bool) -> None:
    """Post PROMPT to the listener in the newest watched Gemini tab."""
    text = _read_prompt(prompt, stdin, clipboard)
    _route(ctx, {"action": "injectPrompt", "prompt": text})


@cli.command("ping")
@click.pass_context
def cmd_ping(ctx: click.Context) -> None:
    """Check that a watched Gemini tab answers messages."""
    _route(ctx, {"action": "ping"})


# --------------------------------------------------------------------------- #
# watch command                                                               #
# --------------------------------------------------------------------------- #


@cli.command("watch")
@click.pass_context
def cmd_watch(ctx: click.Context) -> None:
    """Inject every Gemini page load that carries a prompt (Ctrl-C to stop)."""
    cfg = _config(ctx)
    click.echo(f"Watching {cfg.app_url} for '{cfg.url_param}' prompts. Press Ctrl-C to stop.")
    try:
        watch_sync(cfg)
    except (RuntimeError, PlaywrightError) as exc:
        raise click.ClickException(str(exc)) from exc


if __name__ == "__main__":  # pragma: no cover
    cli()
