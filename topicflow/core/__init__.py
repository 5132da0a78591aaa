# Shared infrastructure for the topic engine

from topicflow.core.logging import (
    LogFormat,
    setup_logging,
)

__all__ = [
    "LogFormat",
    "setup_logging",
]
