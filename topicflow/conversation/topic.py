"""
Topic - the unit of conversation

A topic owns persisted state, a parent reference and the children it has
created. It starts, is dispatched turn by turn, may delegate to one active
child at a time and finally ends, handing a return value back to its parent.
"""

from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
)

import structlog

from ..errors import NoActiveChildError, TopicEndedError, UnsupportedVariantError
from .base import Activity, StartScore, TopicEventType, TurnContext
from .instance import TopicInstance
from .registry import default_registry

if TYPE_CHECKING:
    from .engine import Turn


logger = structlog.get_logger(__name__)

TopicT = TypeVar("TopicT", bound="Topic")
ChildEndHandler = Union[str, Callable[["Topic"], Any]]


class Topic:
    """
    Base class for all topics.

    Subclasses override the hooks ``on_start``, ``on_dispatch``,
    ``on_child_end`` and ``get_start_score``. Every subclass is registered
    under its ``type_tag`` when the class is defined so stored instances can
    be loaded back into the right class.
    """

    type_tag: ClassVar[str] = "topicflow.Topic"

    # Prompt-like children expose a ``result`` to their parent
    returns_result: ClassVar[bool] = False

    def __init_subclass__(cls, register: bool = True, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "type_tag" not in cls.__dict__:
            cls.type_tag = f"{cls.__module__}.{cls.__qualname__}"
        if register:
            default_registry.register(cls)

    def __init__(self, turn: "Turn", instance: TopicInstance):
        self.turn = turn
        self.instance = instance
        self._logger = logger.bind(topic_id=instance.id, type_tag=instance.type_tag)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} ended={self.ended}>"

    # -------------------------------------------------------------------------
    # Instance data
    # -------------------------------------------------------------------------

    @property
    def id(self) -> str:
        return self.instance.id

    @property
    def parent_id(self) -> Optional[str]:
        return self.instance.parent_id

    @property
    def state(self) -> Dict[str, Any]:
        return self.instance.state

    @property
    def options(self) -> Dict[str, Any]:
        """Arguments given to ``create_child`` for a candidate child."""
        return self.instance.options

    @property
    def children(self) -> List[str]:
        return self.instance.children

    @property
    def active_child_id(self) -> Optional[str]:
        return self.instance.active_child_id

    @property
    def has_started_children(self) -> bool:
        return self.instance.active_child_id is not None

    @property
    def candidate(self) -> bool:
        return self.instance.candidate

    @property
    def started(self) -> bool:
        return self.instance.started

    @property
    def ended(self) -> bool:
        return self.instance.ended

    @property
    def return_value(self) -> Any:
        return self.instance.return_value

    def is_a(self, topic_cls: Type["Topic"]) -> bool:
        """Check the stored type tag against ``topic_cls``."""
        return self.instance.type_tag == topic_cls.type_tag

    # -------------------------------------------------------------------------
    # Turn context
    # -------------------------------------------------------------------------

    @property
    def context(self) -> TurnContext:
        return self.turn.context

    @property
    def activity(self) -> Activity:
        return self.turn.context.activity

    @property
    def text(self) -> str:
        if self.activity.is_message:
            return self.activity.text
        return ""

    async def send(self, message: Any) -> Activity:
        return await self.context.send(message)

    async def load_topic(self, topic_id: str) -> "Topic":
        return await self.turn.load(topic_id)

    async def get_parent(self) -> Optional["Topic"]:
        if self.parent_id is None:
            return None
        return await self.turn.load(self.parent_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self, start_args: Any = None) -> "Topic":
        """
        Start (or restart) this instance.

        If the instance has a parent it becomes the parent's active child,
        replacing any child that was active before.
        """
        parent = await self.get_parent()
        if parent is not None:
            await parent._activate_child(self)

        if self.instance.started:
            await self._discard_children()

        self.instance.state = {}
        self.instance.started = True
        self.instance.ended = False
        self.instance.return_value = None
        self.instance.touch()

        self.turn.emit(TopicEventType.TOPIC_STARTED, self)
        self._logger.debug("topic_started")

        await self.on_start(start_args)
        return self

    async def dispatch(self) -> bool:
        """Deliver the current turn to this instance."""
        if not self.instance.started:
            raise TopicEndedError(self.id, f"Topic instance {self.id} was never started")
        if self.instance.ended:
            raise TopicEndedError(self.id)

        with self.turn.nested_dispatch():
            self.turn.emit(TopicEventType.TOPIC_DISPATCHED, self)
            await self.on_dispatch()

        return True

    async def end(self, return_value: Any = None) -> None:
        """
        End this instance and hand ``return_value`` to the parent.

        The parent's continuation for this child runs if one was registered,
        otherwise its ``on_child_end``. Either runs exactly once.
        """
        if not self.instance.started:
            raise TopicEndedError(self.id, f"Topic instance {self.id} was never started")
        if self.instance.ended:
            raise TopicEndedError(self.id)

        await self._discard_children()

        self.instance.ended = True
        self.instance.return_value = return_value
        self.instance.touch()

        self.turn.emit(TopicEventType.TOPIC_ENDED, self)
        self._logger.debug("topic_ended")

        parent = await self.get_parent()
        if parent is not None:
            await parent._child_ended(self)

    async def return_to_parent(self, return_value: Any = None) -> None:
        await self.end(return_value)

    # -------------------------------------------------------------------------
    # Children
    # -------------------------------------------------------------------------

    async def create_child(
        self,
        child_cls: Type[TopicT],
        options: Optional[Dict[str, Any]] = None,
    ) -> TopicT:
        """Create a candidate child. It stays owned until this topic goes away."""
        child = self.turn.create(child_cls, parent_id=self.id, candidate=True, options=options)
        self.instance.children.append(child.id)
        self.instance.touch()
        return child

    async def start_child(
        self,
        child_cls: Type[TopicT],
        start_args: Any = None,
        on_end: Optional[ChildEndHandler] = None,
    ) -> TopicT:
        """
        Create and start a child, making it the active child.

        ``on_end`` names a method of this topic (or is the bound method
        itself) to call instead of ``on_child_end`` when the child ends.
        """
        handler = self._handler_name(on_end)

        child = self.turn.create(child_cls, parent_id=self.id)
        self.instance.children.append(child.id)
        if handler:
            self.instance.continuations[child.id] = handler
        self.instance.touch()

        await child.start(start_args)
        return child

    async def dispatch_to_child(self, required: bool = False) -> bool:
        """
        Forward the current turn to the active child.

        Returns False when no child is active, unless ``required`` is set,
        in which case that is a protocol violation.
        """
        child_id = self.instance.active_child_id
        if child_id is None:
            if required:
                raise NoActiveChildError(self.id)
            return False

        child = await self.turn.load(child_id)
        return await child.dispatch()

    async def remove_child(self, child_id: str) -> None:
        """Drop a child and everything below it."""
        child = await self.turn.load(child_id)

        if self.instance.active_child_id == child_id:
            self.instance.active_child_id = None
        self.instance.continuations.pop(child_id, None)
        if child_id in self.instance.children:
            self.instance.children.remove(child_id)
        self.instance.touch()

        await self.turn.discard(child)

    def _handler_name(self, on_end: Optional[ChildEndHandler]) -> Optional[str]:
        if on_end is None:
            return None

        if isinstance(on_end, str):
            name = on_end
        else:
            if getattr(on_end, "__self__", None) is not self:
                raise ValueError("on_end must be a method of the starting topic")
            name = on_end.__name__

        if not callable(getattr(self, name, None)):
            raise ValueError(f"{type(self).__name__} has no method {name}")
        return name

    async def _activate_child(self, child: "Topic") -> None:
        previous_id = self.instance.active_child_id
        if previous_id is not None and previous_id != child.id:
            previous = await self.turn.load(previous_id)
            self.instance.continuations.pop(previous_id, None)

            self.turn.emit(
                TopicEventType.CHILD_REPLACED,
                self,
                child_id=previous_id,
                replacement_id=child.id,
            )
            self._logger.debug("child_replaced", child_id=previous_id, replacement_id=child.id)

            if previous.candidate:
                await previous._abandon()
            else:
                if previous_id in self.instance.children:
                    self.instance.children.remove(previous_id)
                await self.turn.discard(previous)

        self.instance.active_child_id = child.id
        self.instance.touch()

    async def _child_ended(self, child: "Topic") -> None:
        if self.instance.active_child_id == child.id:
            self.instance.active_child_id = None
        handler = self.instance.continuations.pop(child.id, None)
        self.instance.touch()

        self.turn.emit(
            TopicEventType.CHILD_ENDED,
            self,
            child_id=child.id,
            child_type=child.instance.type_tag,
            handler=handler,
        )

        if handler:
            callback = getattr(self, handler, None)
            if callback is None:
                raise UnsupportedVariantError(
                    f"{type(self).__name__} has no continuation {handler}",
                    variant=handler,
                )
            await callback(child)
        else:
            await self.on_child_end(child)

        # The return value is only readable while the parent handles it
        child.instance.return_value = None

        if not child.candidate:
            if child.id in self.instance.children:
                self.instance.children.remove(child.id)
            if self.turn.settings.delete_ended_topics:
                await self.turn.discard(child)

    async def _abandon(self) -> None:
        await self._discard_children()
        self.instance.started = False
        self.instance.touch()

    async def _discard_children(self) -> None:
        for child_id in list(self.instance.children):
            child = await self.turn.load(child_id)
            self.instance.children.remove(child_id)
            self.instance.continuations.pop(child_id, None)
            await self.turn.discard(child)

        self.instance.active_child_id = None

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    async def on_start(self, args: Any) -> None:
        """Called once per start with the start arguments."""
        pass

    async def on_dispatch(self) -> None:
        """Called for every turn delivered to this instance."""
        await self.dispatch_to_child()

    async def on_child_end(self, child: "Topic") -> None:
        """Called when a child ends and no continuation was registered for it."""
        pass

    async def get_start_score(self) -> Optional[StartScore]:
        """Bid for activation. None means not applicable."""
        return None


__all__ = ["Topic", "ChildEndHandler"]
