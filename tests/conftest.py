"""Shared pytest fixtures for testing."""

from typing import Any, List, Optional, Type

import pytest

from topicflow.config import Settings
from topicflow.conversation import (
    Activity,
    ActivityType,
    ChannelAccount,
    Topic,
    TopicEngine,
    TopicEvent,
    TopicEventType,
    TopicObserver,
    TurnContext,
)
from topicflow.storage import MemoryStorage


BOT = ChannelAccount(id="bot", name="bot")
USER = ChannelAccount(id="user", name="User1")


class RecordingObserver(TopicObserver):
    """Keeps every event for assertions."""

    def __init__(self):
        self.events: List[TopicEvent] = []

    def on_event(self, event: TopicEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: TopicEventType) -> List[TopicEvent]:
        return [event for event in self.events if event.type == event_type]


class Conversation:
    """Drives one conversation through an engine, one turn at a time."""

    def __init__(self, engine: TopicEngine, conversation_id: str = "conv-1"):
        self.engine = engine
        self.conversation_id = conversation_id

    def message(self, text: str) -> TurnContext:
        return TurnContext(Activity(
            type=ActivityType.MESSAGE,
            text=text,
            conversation_id=self.conversation_id,
            from_account=USER,
            recipient=BOT,
        ))

    def joined(self, member: ChannelAccount = BOT) -> TurnContext:
        return TurnContext(Activity(
            type=ActivityType.CONVERSATION_UPDATE,
            conversation_id=self.conversation_id,
            from_account=USER,
            recipient=BOT,
            members_added=[member],
        ))

    async def start(self, topic_cls: Type[Topic], start_args: Any = None) -> TurnContext:
        context = self.joined()
        await self.engine.do_topic(topic_cls, context, start_args)
        return context

    async def say(self, text: str, instance_id: Optional[str] = None) -> TurnContext:
        context = self.message(text)
        await self.engine.dispatch(context, instance_id)
        return context

    async def root(self):
        return await self.engine.root_instance(self.conversation_id)


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment's .env file."""
    return Settings(_env_file=None, storage_backend="memory", log_format="pretty")


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def engine(storage, observer, settings) -> TopicEngine:
    """Engine over in-memory storage with a recording observer."""
    return TopicEngine(storage=storage, observer=observer, settings=settings)


@pytest.fixture
def conversation(engine) -> Conversation:
    return Conversation(engine)
