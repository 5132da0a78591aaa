"""Maps persisted type tags back to topic classes."""

from typing import TYPE_CHECKING, Dict, Type

import structlog

from ..errors import UnsupportedVariantError

if TYPE_CHECKING:
    from .topic import Topic


logger = structlog.get_logger(__name__)


class TopicRegistry:
    """Registry of topic classes keyed by type tag."""

    def __init__(self) -> None:
        self._topics: Dict[str, Type["Topic"]] = {}

    def register(self, topic_cls: Type["Topic"]) -> Type["Topic"]:
        """Register a topic class. Usable as a class decorator."""
        tag = topic_cls.type_tag
        existing = self._topics.get(tag)
        if existing is not None and existing is not topic_cls:
            logger.warning(
                "topic_tag_rebound",
                type_tag=tag,
                previous=existing.__qualname__,
            )
        self._topics[tag] = topic_cls
        return topic_cls

    def resolve(self, type_tag: str) -> Type["Topic"]:
        """Return the class registered for ``type_tag``."""
        topic_cls = self._topics.get(type_tag)
        if topic_cls is None:
            raise UnsupportedVariantError(
                f'Topic type "{type_tag}" is not registered',
                variant=type_tag,
            )
        return topic_cls

    def __contains__(self, type_tag: str) -> bool:
        return type_tag in self._topics

    def __len__(self) -> int:
        return len(self._topics)


# Every Topic subclass is recorded here when its class body runs
default_registry = TopicRegistry()


__all__ = ["TopicRegistry", "default_registry"]
