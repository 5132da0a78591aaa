"""
Engine Telemetry

Observers receive every event the engine emits. An observer is handed to
the engine at construction; there is no process-wide hook.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import structlog

from .base import TopicEvent, TopicEventType


class TopicObserver(ABC):
    """Receives engine events."""

    @abstractmethod
    def on_event(self, event: TopicEvent) -> None:
        """Handle an event."""
        pass


class LoggingObserver(TopicObserver):
    """Writes every event to the structured log."""

    def __init__(
        self,
        logger_name: str = "topicflow.telemetry",
        level: str = "debug",
    ):
        self._logger = structlog.get_logger(logger_name)
        self._level = level

    def on_event(self, event: TopicEvent) -> None:
        log = getattr(self._logger, self._level)
        if event.type == TopicEventType.TURN_FAILED:
            log = self._logger.warning

        log(
            event.type.value,
            conversation_id=event.conversation_id,
            topic_id=event.topic_id,
            type_tag=event.type_tag,
            parent_id=event.parent_id,
            **event.data,
        )


class CompositeObserver(TopicObserver):
    """Fans events out to several observers."""

    def __init__(self, observers: Optional[Sequence[TopicObserver]] = None):
        self._observers: List[TopicObserver] = list(observers or [])

    def add(self, observer: TopicObserver) -> "CompositeObserver":
        self._observers.append(observer)
        return self

    def on_event(self, event: TopicEvent) -> None:
        for observer in self._observers:
            observer.on_event(event)


__all__ = [
    "TopicObserver",
    "LoggingObserver",
    "CompositeObserver",
]
