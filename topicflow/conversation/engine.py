"""
Topic Engine

Processes turns: loads the topics a turn touches into an identity map,
runs the topic tree, then persists every record in one flush. A turn that
raises writes nothing, so stored state always reflects the last turn that
completed.
"""

import asyncio
import time
from contextlib import asynccontextmanager, contextmanager
from typing import (
    Any,
    AsyncIterator,
    Dict,
    Iterator,
    Optional,
    Set,
    Type,
    TypeVar,
)

import structlog

from ..config import Settings, get_settings
from ..errors import DispatchDepthExceededError, TopicNotFoundError
from ..storage import TopicStorage, create_storage
from .base import ActivityType, TopicEvent, TopicEventType, TurnContext
from .instance import TopicInstance
from .registry import TopicRegistry, default_registry
from .telemetry import LoggingObserver, TopicObserver
from .topic import Topic


logger = structlog.get_logger(__name__)

TopicT = TypeVar("TopicT", bound=Topic)


class Turn:
    """
    One inbound activity and all processing it causes.

    Holds every topic loaded or created during the turn so a parent and its
    child always share one in-memory record.
    """

    def __init__(self, engine: "TopicEngine", context: TurnContext):
        self.engine = engine
        self.context = context
        self.conversation_id = context.conversation_id

        self._topics: Dict[str, Topic] = {}
        self._discarded: Set[str] = set()

        self._root_id: Optional[str] = None
        self._root_loaded = False
        self._root_dirty = False

        self._depth = 0

    @property
    def settings(self) -> Settings:
        return self.engine.settings

    def create(
        self,
        topic_cls: Type[TopicT],
        parent_id: Optional[str] = None,
        candidate: bool = False,
        options: Optional[Dict[str, Any]] = None,
    ) -> TopicT:
        """Create a new, not yet started instance."""
        registry = self.engine.registry
        if topic_cls.type_tag not in registry:
            registry.register(topic_cls)

        instance = TopicInstance(
            type_tag=topic_cls.type_tag,
            parent_id=parent_id,
            candidate=candidate,
            options=dict(options or {}),
        )
        topic = topic_cls(self, instance)
        self._topics[instance.id] = topic
        return topic

    async def load(self, topic_id: str) -> Topic:
        """Return the instance with ``topic_id``, reading storage at most once."""
        if topic_id in self._discarded:
            raise TopicNotFoundError(topic_id)

        topic = self._topics.get(topic_id)
        if topic is not None:
            return topic

        data = await self.engine.storage.get(self.engine.topic_key(topic_id))
        if data is None:
            raise TopicNotFoundError(topic_id)

        instance = TopicInstance.from_record(data)
        topic_cls = self.engine.registry.resolve(instance.type_tag)

        # Another coroutine of this turn may have loaded it meanwhile
        return self._topics.setdefault(topic_id, topic_cls(self, instance))

    async def discard(self, topic: Topic) -> None:
        """Forget ``topic`` and its subtree; their records are deleted on flush."""
        if topic.id in self._discarded:
            return

        for child_id in list(topic.instance.children):
            if child_id in self._discarded:
                continue
            child = await self.load(child_id)
            await self.discard(child)

        self._discarded.add(topic.id)

    @contextmanager
    def nested_dispatch(self) -> Iterator[int]:
        max_depth = self.settings.max_dispatch_depth
        if self._depth >= max_depth:
            raise DispatchDepthExceededError(max_depth)

        self._depth += 1
        try:
            yield self._depth
        finally:
            self._depth -= 1

    # -------------------------------------------------------------------------
    # Conversation root
    # -------------------------------------------------------------------------

    async def root_id(self) -> Optional[str]:
        if not self._root_loaded:
            data = await self.engine.storage.get(self.engine.root_key(self.conversation_id))
            self._root_id = data["id"] if data else None
            self._root_loaded = True
        return self._root_id

    async def root(self) -> Optional[Topic]:
        root_id = await self.root_id()
        if root_id is None:
            return None
        return await self.load(root_id)

    async def start_root(self, topic_cls: Type[TopicT], start_args: Any = None) -> TopicT:
        """Start a new root topic, discarding the previous root tree."""
        previous = await self.root()
        if previous is not None:
            await self.discard(previous)

        topic = self.create(topic_cls)
        self._root_id = topic.id
        self._root_loaded = True
        self._root_dirty = True

        await topic.start(start_args)
        return topic

    # -------------------------------------------------------------------------
    # Events and persistence
    # -------------------------------------------------------------------------

    def emit(
        self,
        event_type: TopicEventType,
        topic: Optional[Topic] = None,
        **data: Any,
    ) -> None:
        event = TopicEvent(
            type=event_type,
            data=data,
            conversation_id=self.conversation_id,
            topic_id=topic.id if topic else None,
            type_tag=topic.instance.type_tag if topic else None,
            parent_id=topic.parent_id if topic else None,
        )
        self.engine.emit(event)

    async def flush(self) -> None:
        storage = self.engine.storage

        for topic_id, topic in self._topics.items():
            if topic_id in self._discarded:
                continue
            await storage.set(self.engine.topic_key(topic_id), topic.instance.to_record())

        for topic_id in self._discarded:
            await storage.delete(self.engine.topic_key(topic_id))

        # Idle children were not rewritten but must live as long as their parent
        for topic_id, topic in self._topics.items():
            if topic_id in self._discarded:
                continue
            for child_id in topic.instance.children:
                if child_id not in self._topics and child_id not in self._discarded:
                    await storage.touch(self.engine.topic_key(child_id))

        root_key = self.engine.root_key(self.conversation_id)
        if self._root_dirty:
            await storage.set(root_key, {"id": self._root_id})
        elif self._root_id is not None:
            await storage.touch(root_key)


class TopicEngine:
    """
    Entry point for hosts.

    Turns of the same conversation are serialized within the process; hosts
    running several processes must route a conversation to one of them at a
    time.
    """

    def __init__(
        self,
        storage: Optional[TopicStorage] = None,
        observer: Optional[TopicObserver] = None,
        registry: Optional[TopicRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings if settings is not None else get_settings()
        self.storage = storage if storage is not None else create_storage(self.settings)
        self.observer = observer
        self.registry = registry if registry is not None else default_registry

        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

        self._metrics = {
            "turns_completed": 0,
            "turns_failed": 0,
        }

    def register(self, topic_cls: Type[TopicT]) -> Type[TopicT]:
        """Register a topic class with this engine's registry."""
        self.registry.register(topic_cls)
        return topic_cls

    def topic_key(self, topic_id: str) -> str:
        return f"{self.settings.key_prefix}:topic:{topic_id}"

    def root_key(self, conversation_id: str) -> str:
        return f"{self.settings.key_prefix}:conversation:{conversation_id}:root"

    def emit(self, event: TopicEvent) -> None:
        """Hand an event to the observer."""
        if self.observer is None:
            return
        try:
            self.observer.on_event(event)
        except Exception as e:
            logger.error("observer_error", event_type=event.type.value, error=str(e))

    @asynccontextmanager
    async def _conversation_lock(self, conversation_id: str) -> AsyncIterator[None]:
        """Serialize turns of one conversation; the lock is dropped when unused."""
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        self._lock_users[conversation_id] = self._lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[conversation_id] -= 1
            if not self._lock_users[conversation_id]:
                del self._lock_users[conversation_id]
                del self._locks[conversation_id]

    @asynccontextmanager
    async def turn(self, context: TurnContext) -> AsyncIterator[Turn]:
        """Open a turn; records are flushed when the block exits cleanly."""
        conversation_id = context.conversation_id

        async with self._conversation_lock(conversation_id):
            with structlog.contextvars.bound_contextvars(conversation_id=conversation_id):
                turn = Turn(self, context)
                start_time = time.time()
                turn.emit(
                    TopicEventType.TURN_STARTED,
                    activity_type=context.activity.type.value,
                )

                try:
                    yield turn
                    await turn.flush()
                except Exception as e:
                    self._metrics["turns_failed"] += 1
                    turn.emit(
                        TopicEventType.TURN_FAILED,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    logger.error("turn_failed", error=str(e), error_type=type(e).__name__)
                    raise

                self._metrics["turns_completed"] += 1
                turn.emit(
                    TopicEventType.TURN_COMPLETED,
                    duration_ms=(time.time() - start_time) * 1000,
                )

    async def start(
        self,
        topic_cls: Type[Topic],
        context: TurnContext,
        start_args: Any = None,
    ) -> TopicInstance:
        """Start ``topic_cls`` as the root topic of the context's conversation."""
        async with self.turn(context) as turn:
            topic = await turn.start_root(topic_cls, start_args)
        return topic.instance

    async def dispatch(
        self,
        context: TurnContext,
        instance_id: Optional[str] = None,
    ) -> bool:
        """
        Resume a stored instance for this turn.

        Without ``instance_id`` the conversation's root is used; a missing
        or ended root reports False. An explicit id with no stored state is
        a protocol violation.
        """
        async with self.turn(context) as turn:
            if instance_id is None:
                topic = await turn.root()
                if topic is None or topic.ended:
                    logger.debug("no_active_root", has_root=topic is not None)
                    return False
            else:
                topic = await turn.load(instance_id)

            return await topic.dispatch()

    async def do_topic(
        self,
        topic_cls: Type[Topic],
        context: TurnContext,
        start_args: Any = None,
    ) -> bool:
        """
        Host helper: start the root when the bot joins, dispatch otherwise.
        """
        activity = context.activity

        if activity.type == ActivityType.CONVERSATION_UPDATE:
            recipient_id = activity.recipient.id if activity.recipient else None
            if any(member.id == recipient_id for member in activity.members_added):
                await self.start(topic_cls, context, start_args)
                return True
            return False

        return await self.dispatch(context)

    async def load(self, instance_id: str) -> Optional[TopicInstance]:
        """Read a stored instance outside of a turn."""
        data = await self.storage.get(self.topic_key(instance_id))
        if data is None:
            return None
        return TopicInstance.from_record(data)

    async def root_instance(self, conversation_id: str) -> Optional[TopicInstance]:
        data = await self.storage.get(self.root_key(conversation_id))
        if data is None:
            return None
        return await self.load(data["id"])

    def get_metrics(self) -> Dict[str, Any]:
        return {
            **self._metrics,
            "registered_topics": len(self.registry),
        }

    async def close(self) -> None:
        await self.storage.close()


def create_engine(
    settings: Optional[Settings] = None,
    observer: Optional[TopicObserver] = None,
) -> TopicEngine:
    """Build an engine from settings with a logging observer by default."""
    settings = settings if settings is not None else get_settings()
    return TopicEngine(
        storage=create_storage(settings),
        observer=observer if observer is not None else LoggingObserver(),
        settings=settings,
    )


__all__ = [
    "Turn",
    "TopicEngine",
    "create_engine",
]
