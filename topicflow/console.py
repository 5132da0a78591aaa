"""
Console Host

Runs a bot in the terminal: every input line becomes one message turn and
replies are printed with rich.
"""

import asyncio
import sys
from typing import Awaitable, Callable, List, Optional, TextIO

import structlog
from rich.console import Console

from .conversation.base import (
    Activity,
    ActivityType,
    ChannelAccount,
    SendHook,
    TurnContext,
)


logger = structlog.get_logger(__name__)

TurnHandler = Callable[[TurnContext], Awaitable[None]]

BOT = ChannelAccount(id="bot", name="bot")
USER = ChannelAccount(id="user", name="User1")


class ConsoleAdapter:
    """Reads user lines from a stream and prints bot replies."""

    def __init__(
        self,
        input_stream: Optional[TextIO] = None,
        console: Optional[Console] = None,
        conversation_id: str = "convo1",
    ):
        self.input_stream = input_stream or sys.stdin
        self.console = console or Console()
        self.conversation_id = conversation_id
        self._hooks: List[SendHook] = []

    def use(self, hook: SendHook) -> "ConsoleAdapter":
        """Install a send hook on every turn context this adapter creates."""
        self._hooks.append(hook)
        return self

    def create_context(self, activity: Activity) -> TurnContext:
        context = TurnContext(activity, deliver=self._deliver)
        for hook in self._hooks:
            context.on_send_activities(hook)
        return context

    def message(self, text: str) -> Activity:
        return Activity(
            type=ActivityType.MESSAGE,
            text=text,
            channel_id="console",
            conversation_id=self.conversation_id,
            from_account=USER,
            recipient=BOT,
        )

    def conversation_update(self, member: ChannelAccount) -> Activity:
        return Activity(
            type=ActivityType.CONVERSATION_UPDATE,
            channel_id="console",
            conversation_id=self.conversation_id,
            from_account=USER,
            recipient=BOT,
            members_added=[member],
        )

    async def process(self, activity: Activity, handler: TurnHandler) -> TurnContext:
        context = self.create_context(activity)
        await handler(context)
        return context

    async def listen(self, handler: TurnHandler) -> None:
        """Process input lines until the stream is exhausted."""
        while True:
            line = await asyncio.to_thread(self.input_stream.readline)
            if not line:
                logger.debug("console_input_closed")
                break

            await self.process(self.message(line.rstrip("\r\n")), handler)

    async def _deliver(self, context: TurnContext, activities: List[Activity]) -> None:
        for activity in activities:
            if activity.is_message:
                self.console.print(activity.text, markup=False, highlight=False)


async def pretty_console(
    context: TurnContext,
    activities: List[Activity],
    next_hook: Callable[[], Awaitable[None]],
) -> None:
    """Quote bot replies with "> " and separate them from the user's input."""
    first = True
    for activity in activities:
        if not activity.is_message:
            continue

        activity.text = "> " + activity.text.replace("\n", "\n> ") + "\n"
        if first and not context.responses:
            activity.text = "\n" + activity.text
        first = False

    await next_hook()


async def console_on_turn(adapter: ConsoleAdapter, handler: TurnHandler) -> None:
    """Announce the bot and the user joining, then listen for input."""
    await adapter.process(adapter.conversation_update(BOT), handler)
    await adapter.process(adapter.conversation_update(USER), handler)
    await adapter.listen(handler)


__all__ = [
    "ConsoleAdapter",
    "TurnHandler",
    "pretty_console",
    "console_on_turn",
]
