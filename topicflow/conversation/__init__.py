"""
Conversation engine: topics, the turn engine and the built-in topics.
"""

from .base import (
    Activity,
    ActivityType,
    ChannelAccount,
    StartScore,
    TopicEvent,
    TopicEventType,
    TurnContext,
)
from .dispatch import start_best_scoring_child, start_if_score
from .engine import TopicEngine, Turn, create_engine
from .forms import SimpleForm
from .instance import TopicInstance
from .prompts import (
    ChoicePrompt,
    ConfirmPrompt,
    NumberPrompt,
    Prompt,
    PromptArgs,
    TextPrompt,
)
from .registry import TopicRegistry, default_registry
from .telemetry import CompositeObserver, LoggingObserver, TopicObserver
from .topic import Topic
from .validators import (
    Validator,
    ValidatorResult,
    has_choice,
    has_confirmation,
    has_number,
    has_text,
)
from .waterfall import Waterfall

__all__ = [
    # Transport
    "Activity",
    "ActivityType",
    "ChannelAccount",
    "TurnContext",
    # Core
    "Topic",
    "TopicInstance",
    "TopicEngine",
    "Turn",
    "create_engine",
    "StartScore",
    "TopicRegistry",
    "default_registry",
    # Built-in topics
    "Waterfall",
    "Prompt",
    "PromptArgs",
    "TextPrompt",
    "NumberPrompt",
    "ChoicePrompt",
    "ConfirmPrompt",
    "SimpleForm",
    # Validators
    "Validator",
    "ValidatorResult",
    "has_text",
    "has_number",
    "has_choice",
    "has_confirmation",
    # Routing
    "start_if_score",
    "start_best_scoring_child",
    # Telemetry
    "TopicEvent",
    "TopicEventType",
    "TopicObserver",
    "LoggingObserver",
    "CompositeObserver",
]
