"""
topicflow - hierarchical, resumable conversation topics.

A bot is a tree of topics. Each turn is dispatched from the root topic down
to the active child; topics persist their state between turns through a
pluggable storage backend.
"""

__version__ = "0.3.0"

from topicflow.config import Settings, get_settings
from topicflow.conversation import (
    Activity,
    ActivityType,
    ChannelAccount,
    ChoicePrompt,
    ConfirmPrompt,
    NumberPrompt,
    Prompt,
    SimpleForm,
    StartScore,
    TextPrompt,
    Topic,
    TopicEngine,
    TopicInstance,
    TurnContext,
    Validator,
    ValidatorResult,
    Waterfall,
    create_engine,
    start_best_scoring_child,
    start_if_score,
)
from topicflow.errors import (
    DispatchDepthExceededError,
    NoActiveChildError,
    ProtocolViolationError,
    StorageError,
    TopicEndedError,
    TopicflowError,
    TopicNotFoundError,
    UnsupportedVariantError,
)

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "Activity",
    "ActivityType",
    "ChannelAccount",
    "TurnContext",
    "Topic",
    "TopicInstance",
    "TopicEngine",
    "create_engine",
    "StartScore",
    "Waterfall",
    "Prompt",
    "TextPrompt",
    "NumberPrompt",
    "ChoicePrompt",
    "ConfirmPrompt",
    "SimpleForm",
    "Validator",
    "ValidatorResult",
    "start_if_score",
    "start_best_scoring_child",
    "TopicflowError",
    "ProtocolViolationError",
    "TopicNotFoundError",
    "TopicEndedError",
    "NoActiveChildError",
    "DispatchDepthExceededError",
    "UnsupportedVariantError",
    "StorageError",
]
