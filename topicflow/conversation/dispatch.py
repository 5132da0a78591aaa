"""
Scoring Router

Lets candidate topics bid for a turn. Scores are all collected before any
topic is started, and at most one topic is started per call.
"""

import asyncio
from typing import List, Optional, Tuple

import structlog

from .base import StartScore, TopicEventType
from .topic import Topic


logger = structlog.get_logger(__name__)


async def start_if_score(topic: Topic) -> bool:
    """Start ``topic`` if it reports a score."""
    score = await topic.get_start_score()
    if score is None:
        return False

    await topic.start(score.start_args)
    return True


async def _score_child(parent: Topic, child_id: str) -> Tuple[Topic, Optional[StartScore]]:
    child = await parent.load_topic(child_id)
    return child, await child.get_start_score()


async def start_best_scoring_child(topic: Topic) -> bool:
    """
    Start the highest scoring child of ``topic``.

    Children scoring ``<= 0`` or not at all are ineligible. Equal scores go
    to the child that comes first in ``topic.children``.
    """
    outcomes = await asyncio.gather(
        *(_score_child(topic, child_id) for child_id in list(topic.children)),
        return_exceptions=True,
    )

    # Every scorer has finished before a failure is raised
    errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
    if errors:
        logger.error(
            "scoring_failed",
            topic_id=topic.id,
            failed=len(errors),
            error=str(errors[0]),
        )
        raise errors[0]

    results: List[Tuple[Topic, Optional[StartScore]]] = list(outcomes)

    eligible: List[Tuple[Topic, StartScore]] = [
        (child, score)
        for child, score in results
        if score is not None and score.score > 0
    ]
    # sorted() is stable, ties keep child order
    eligible = sorted(eligible, key=lambda item: item[1].score, reverse=True)

    topic.turn.emit(
        TopicEventType.SCORES_EVALUATED,
        topic,
        scores={child.id: (score.score if score else None) for child, score in results},
        winner_id=eligible[0][0].id if eligible else None,
    )

    if not eligible:
        logger.debug("no_eligible_child", topic_id=topic.id, candidates=len(results))
        return False

    child, score = eligible[0]
    await child.start(score.start_args)
    return True


__all__ = ["start_if_score", "start_best_scoring_child"]
