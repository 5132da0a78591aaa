"""
Alarm Bot

Sets, shows and deletes alarms. The root topic keeps the alarms; each
feature is a candidate child that bids for the turn with a keyword score.

Run with::

    topicflow run topicflow.samples.alarm:AlarmBot
"""

import re
from typing import Any, Dict, List, Optional

from topicflow.conversation import (
    ChoicePrompt,
    ConfirmPrompt,
    StartScore,
    TextPrompt,
    Topic,
    Waterfall,
    start_best_scoring_child,
)


HELP_TEXT = "I know how to set, show, and delete alarms."


def list_alarms(alarms: List[Dict[str, str]]) -> str:
    return "\n".join(f'* "{alarm["name"]}" set for {alarm["when"]}' for alarm in alarms)


class KeywordTopic(Topic, register=False):
    """Scores 1 when the message matches ``pattern``."""

    pattern = re.compile(r"(?!)")

    async def get_start_score(self) -> Optional[StartScore]:
        if not self.pattern.search(self.text):
            return None
        parent = await self.get_parent()
        return StartScore(1.0, {"alarms": list(parent.state["alarms"])})


class SetAlarm(Waterfall, KeywordTopic):
    type_tag = "samples.SetAlarm"
    pattern = re.compile(r"set|add|create", re.IGNORECASE)

    def waterfall(self, next_step):
        return [self.ask_name, self.ask_when]

    async def ask_name(self, value: Any) -> None:
        await self.start_child(TextPrompt, {"prompt": "What do you want to call it?"})

    async def ask_when(self, name: str) -> None:
        self.state["name"] = name
        await self.start_child(TextPrompt, {"prompt": "For when do you want to set it?"})

    async def on_waterfall_complete(self, when: Any) -> None:
        await self.end({"name": self.state["name"], "when": when})


class ShowAlarms(KeywordTopic):
    type_tag = "samples.ShowAlarms"
    pattern = re.compile(r"show|list", re.IGNORECASE)

    async def on_start(self, args: Any) -> None:
        alarms = args["alarms"]
        if alarms:
            await self.send(f"You have the following alarms set:\n{list_alarms(alarms)}")
        else:
            await self.send("You haven't set any alarms.")
        await self.end()


class DeleteAlarm(Waterfall, KeywordTopic):
    type_tag = "samples.DeleteAlarm"
    pattern = re.compile(r"delete|remove", re.IGNORECASE)

    def waterfall(self, next_step):
        return [self.pick, self.confirm]

    async def pick(self, value: Any) -> None:
        alarms = self.start_args["alarms"]
        if not alarms:
            await self.send("You don't have any alarms.")
            await self.end()
            return

        await self.start_child(ChoicePrompt, {
            "prompt": f"Which alarm do you want to delete?\n{list_alarms(alarms)}",
            "choices": [alarm["name"] for alarm in alarms],
        })

    async def confirm(self, name: str) -> None:
        self.state["name"] = name
        await self.start_child(ConfirmPrompt, {
            "prompt": f'Are you sure you want to delete alarm "{name}"? (yes/no)',
        })

    async def on_waterfall_complete(self, confirmed: Any) -> None:
        await self.end({"name": self.state["name"], "confirmed": bool(confirmed)})


class AlarmBot(Topic):
    type_tag = "samples.AlarmBot"

    async def on_start(self, args: Any) -> None:
        self.state["alarms"] = []
        for feature in (SetAlarm, ShowAlarms, DeleteAlarm):
            await self.create_child(feature)
        await self.send(f"Welcome to Alarm Bot!\n{HELP_TEXT}")

    async def on_dispatch(self) -> None:
        if await self.dispatch_to_child():
            return
        if not self.activity.is_message:
            return
        if not await start_best_scoring_child(self):
            await self.send(HELP_TEXT)

    async def on_child_end(self, child: Topic) -> None:
        result = child.return_value

        if child.is_a(SetAlarm):
            self.state["alarms"].append(result)
            await self.send("Alarm successfully added!")
        elif child.is_a(DeleteAlarm) and result:
            if result["confirmed"]:
                self.state["alarms"] = [
                    alarm for alarm in self.state["alarms"] if alarm["name"] != result["name"]
                ]
                await self.send(f'Alarm "{result["name"]}" has been deleted.')
            else:
                await self.send("Okay, the status quo has been preserved.")
