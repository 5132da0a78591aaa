"""
Conversation Engine - Base Classes and Types

This module defines the turn context handed to topics and the events the
engine emits while processing a turn.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
)


class ActivityType(str, Enum):
    """Types of inbound and outbound activities."""

    MESSAGE = "message"
    CONVERSATION_UPDATE = "conversationUpdate"


class TopicEventType(str, Enum):
    """Types of engine events."""

    # Turn events
    TURN_STARTED = "turn_started"
    TURN_COMPLETED = "turn_completed"
    TURN_FAILED = "turn_failed"

    # Topic lifecycle
    TOPIC_STARTED = "topic_started"
    TOPIC_DISPATCHED = "topic_dispatched"
    TOPIC_ENDED = "topic_ended"

    # Parent/child events
    CHILD_ENDED = "child_ended"
    CHILD_REPLACED = "child_replaced"

    # Scoring
    SCORES_EVALUATED = "scores_evaluated"


@dataclass
class ChannelAccount:
    """A participant in a conversation."""

    id: str
    name: str = ""


@dataclass
class Activity:
    """Represents one inbound or outbound activity."""

    type: ActivityType = ActivityType.MESSAGE
    text: str = ""

    # Routing
    channel_id: str = "console"
    conversation_id: str = ""
    from_account: Optional[ChannelAccount] = None
    recipient: Optional[ChannelAccount] = None

    # Conversation updates
    members_added: List[ChannelAccount] = field(default_factory=list)

    # Metadata
    timestamp: float = field(default_factory=time.time)
    channel_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_message(self) -> bool:
        return self.type == ActivityType.MESSAGE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "text": self.text,
            "channel_id": self.channel_id,
            "conversation_id": self.conversation_id,
            "from": self.from_account.id if self.from_account else None,
            "recipient": self.recipient.id if self.recipient else None,
            "members_added": [member.id for member in self.members_added],
            "timestamp": self.timestamp,
        }


SendHook = Callable[
    ["TurnContext", List[Activity], Callable[[], Awaitable[None]]],
    Awaitable[None],
]
Deliver = Callable[["TurnContext", List[Activity]], Awaitable[None]]


class TurnContext:
    """
    Transport context for a single turn.

    The engine never looks inside it beyond the inbound activity; topics use
    it to send replies.
    """

    def __init__(
        self,
        activity: Activity,
        deliver: Optional[Deliver] = None,
    ):
        self.activity = activity
        self.responses: List[Activity] = []
        self._deliver = deliver
        self._send_hooks: List[SendHook] = []

    @property
    def conversation_id(self) -> str:
        return self.activity.conversation_id

    def on_send_activities(self, hook: SendHook) -> "TurnContext":
        """Register a hook run before outbound activities are delivered."""
        self._send_hooks.append(hook)
        return self

    async def send(self, message: Any) -> Activity:
        """Send a reply for this turn."""
        if isinstance(message, Activity):
            activity = message
        else:
            activity = Activity(
                type=ActivityType.MESSAGE,
                text=str(message),
                channel_id=self.activity.channel_id,
                conversation_id=self.activity.conversation_id,
                from_account=self.activity.recipient,
                recipient=self.activity.from_account,
            )

        await self._run_hooks([activity], 0)
        return activity

    async def _run_hooks(self, activities: List[Activity], index: int) -> None:
        if index < len(self._send_hooks):
            hook = self._send_hooks[index]
            await hook(self, activities, lambda: self._run_hooks(activities, index + 1))
            return

        self.responses.extend(activities)
        if self._deliver:
            await self._deliver(self, activities)

    @property
    def reply_texts(self) -> List[str]:
        return [activity.text for activity in self.responses]


@dataclass
class TopicEvent:
    """Event emitted while processing a turn."""

    type: TopicEventType
    timestamp: float = field(default_factory=time.time)
    data: Dict[str, Any] = field(default_factory=dict)

    # Context
    conversation_id: Optional[str] = None
    topic_id: Optional[str] = None
    type_tag: Optional[str] = None
    parent_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "timestamp": self.timestamp,
            "data": self.data,
            "conversation_id": self.conversation_id,
            "topic_id": self.topic_id,
            "type_tag": self.type_tag,
            "parent_id": self.parent_id,
        }


@dataclass
class StartScore:
    """A candidate's bid to be started this turn. ``score <= 0`` is ineligible."""

    score: float
    start_args: Any = None


__all__ = [
    "ActivityType",
    "TopicEventType",
    "ChannelAccount",
    "Activity",
    "SendHook",
    "TurnContext",
    "TopicEvent",
    "StartScore",
]
