"""Exceptions raised by the topic engine."""

from typing import Optional


class TopicflowError(Exception):
    """Base exception for topic engine errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self):
        if self.error_code:
            return f"{self.message} [{self.error_code}]"
        return self.message


class ProtocolViolationError(TopicflowError):
    """Raised when the parent/child protocol is broken. Fatal for the turn."""

    def __init__(self, message: str, error_code: str = "PROTOCOL_VIOLATION"):
        super().__init__(message, error_code=error_code)


class TopicNotFoundError(ProtocolViolationError):
    """Raised when an instance id has no stored state."""

    def __init__(self, topic_id: str):
        super().__init__(f"Topic instance {topic_id} not found", error_code="TOPIC_NOT_FOUND")
        self.topic_id = topic_id


class TopicEndedError(ProtocolViolationError):
    """Raised when an ended (or never started) topic is advanced."""

    def __init__(self, topic_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Topic instance {topic_id} has already ended",
            error_code="TOPIC_ENDED",
        )
        self.topic_id = topic_id


class NoActiveChildError(ProtocolViolationError):
    """Raised when a child is required but none is active."""

    def __init__(self, topic_id: str):
        super().__init__(
            f"Topic instance {topic_id} has no active child",
            error_code="NO_ACTIVE_CHILD",
        )
        self.topic_id = topic_id


class DispatchDepthExceededError(ProtocolViolationError):
    """Raised when nested dispatch goes deeper than the configured limit."""

    def __init__(self, max_depth: int):
        super().__init__(
            f"Dispatch nesting exceeded {max_depth} levels",
            error_code="DISPATCH_DEPTH_EXCEEDED",
        )
        self.max_depth = max_depth


class UnsupportedVariantError(TopicflowError):
    """Raised when a topic meets a kind of data it cannot handle."""

    def __init__(self, message: str, variant: Optional[str] = None):
        super().__init__(message, error_code="UNSUPPORTED_VARIANT")
        self.variant = variant


class StorageError(TopicflowError):
    """Raised when the storage backend fails."""

    def __init__(self, message: str = "Storage operation failed"):
        super().__init__(message, error_code="STORAGE_ERROR")


__all__ = [
    "TopicflowError",
    "ProtocolViolationError",
    "TopicNotFoundError",
    "TopicEndedError",
    "NoActiveChildError",
    "DispatchDepthExceededError",
    "UnsupportedVariantError",
    "StorageError",
]
