"""Persisted record of a topic instance."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class TopicInstance(BaseModel):
    """
    Everything the engine keeps about one topic instance between turns.

    ``state`` belongs to the instance's own logic. Identity, type tag and
    parent are fixed at creation.
    """

    id: str = Field(default_factory=lambda: uuid4().hex, frozen=True)
    type_tag: str = Field(frozen=True)
    parent_id: Optional[str] = Field(default=None, frozen=True)

    # Instance data
    state: Dict[str, Any] = Field(default_factory=dict)
    options: Dict[str, Any] = Field(default_factory=dict)

    # Children
    children: List[str] = Field(default_factory=list)
    active_child_id: Optional[str] = None
    continuations: Dict[str, str] = Field(default_factory=dict)

    # Lifecycle
    candidate: bool = False
    started: bool = False
    ended: bool = False
    return_value: Any = None

    # Timing
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def touch(self) -> None:
        self.updated_at = datetime.utcnow()

    def to_record(self) -> Dict[str, Any]:
        """Serialize for storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "TopicInstance":
        """Rebuild from a stored record."""
        return cls.model_validate(data)


__all__ = ["TopicInstance"]
