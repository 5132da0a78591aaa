"""topicflow CLI - run a topic in the terminal."""

import asyncio
import importlib
import sys
from typing import Optional, Type

import click
from rich.console import Console

from . import __version__
from .config import Settings, get_settings
from .console import ConsoleAdapter, console_on_turn, pretty_console
from .conversation import Topic, TurnContext, create_engine
from .core.logging import setup_logging

console = Console()


def load_topic_class(target: str) -> Type[Topic]:
    """Import ``package.module:TopicClass``."""
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise click.BadParameter("expected package.module:TopicClass", param_hint="TARGET")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name}: {e}", param_hint="TARGET")

    topic_cls = getattr(module, attr, None)
    if not isinstance(topic_cls, type) or not issubclass(topic_cls, Topic):
        raise click.BadParameter(f"{target} is not a Topic subclass", param_hint="TARGET")
    return topic_cls


async def run_console(
    topic_cls: Type[Topic],
    settings: Settings,
    adapter: Optional[ConsoleAdapter] = None,
) -> None:
    engine = create_engine(settings)
    adapter = adapter or ConsoleAdapter(console=console)
    adapter.use(pretty_console)

    async def on_turn(context: TurnContext) -> None:
        await engine.do_topic(topic_cls, context)

    try:
        await console_on_turn(adapter, on_turn)
    finally:
        await engine.close()


@click.group()
@click.version_option(version=__version__, prog_name="topicflow")
@click.option("--log-level", envvar="TOPICFLOW_LOG_LEVEL", default=None, help="Log level")
@click.option("--log-format", type=click.Choice(["json", "pretty"]), default=None,
              help="Log output format")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], log_format: Optional[str]):
    """topicflow - hierarchical conversation topics.

    \b
    Examples:
      topicflow run topicflow.samples.alarm:AlarmBot
      topicflow info
    """
    ctx.ensure_object(dict)

    settings = get_settings()
    setup_logging(
        level=log_level or settings.log_level,
        format=log_format or settings.log_format,
        service_name=settings.service_name,
    )
    ctx.obj["settings"] = settings


@cli.command("run")
@click.argument("target")
@click.option("--storage", type=click.Choice(["memory", "redis"]), default=None,
              help="Override the storage backend")
@click.pass_context
def run(ctx: click.Context, target: str, storage: Optional[str]):
    """Run TARGET as the root topic of a console conversation."""
    settings: Settings = ctx.obj["settings"]
    if storage:
        settings = settings.model_copy(update={"storage_backend": storage})

    topic_cls = load_topic_class(target)
    console.print(f"[green]✓[/green] Running [bold]{topic_cls.__name__}[/bold] (Ctrl-D to quit)")

    try:
        asyncio.run(run_console(topic_cls, settings))
    except KeyboardInterrupt:
        console.print("\nBye")
    except Exception as e:
        console.print(f"[red]✗[/red] Error: {e}")
        sys.exit(1)


@cli.command("info")
@click.pass_context
def info(ctx: click.Context):
    """Show the effective configuration."""
    settings: Settings = ctx.obj["settings"]
    for key, value in settings.model_dump().items():
        console.print(f"[cyan]{key}[/cyan]: {value}")


def main():
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
