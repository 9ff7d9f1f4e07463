"""
Exploration Service tying the AI orchestrator to the persistence layer.
"""

import re
import time
from dataclasses import dataclass
from typing import List, Optional

from ..models.core import AIResult, CuriosityTrail, Topic, UserSession
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import elapsed_ms
from .ai_orchestrator import AIOrchestrator
from .persistence import PersistenceService
from .trail_builder import build_curiosity_trail, extend_curiosity_trail

logger = get_logger(__name__)

FALLBACK_MODEL = 'fallback'

# Achievement id -> predicate over the updated session
ACHIEVEMENTS = (
    ('first-trail', lambda session: session.trails_generated >= 1),
    ('curious-mind', lambda session: len(session.topics_explored) >= 5),
    ('trailblazer', lambda session: session.trails_generated >= 10),
)
DEEP_DIVER = 'deep-diver'


class TopicRejectedError(Exception):
    """Raised when user input is not an explorable topic."""

    def __init__(self, reason: str, suggestions: Optional[List[str]] = None):
        super().__init__(reason)
        self.reason = reason
        self.suggestions = suggestions or []


@dataclass
class ExplorationOutcome:
    """A stored trail plus whether it came from the fallback path."""
    topic: Topic
    trail: CuriosityTrail
    degraded: bool = False
    reason: Optional[str] = None
    session: Optional[UserSession] = None


class ExplorationService:
    """Run explorations end to end: validate, generate, store, track progress."""

    def __init__(self, orchestrator: Optional[AIOrchestrator] = None, persistence: Optional[PersistenceService] = None):
        """Initialize the exploration service."""
        self.orchestrator = orchestrator or AIOrchestrator()
        self.persistence = persistence or PersistenceService()

        logger.info('Initialized ExplorationService')

    def explore(self, topic_input: str, session_id: Optional[str] = None) -> ExplorationOutcome:
        """
        Generate and store a curiosity trail for user input.

        Args:
            topic_input: Raw topic text from the user
            session_id: Session to credit with the exploration

        Returns:
            ExplorationOutcome with the stored topic and trail

        Raises:
            TopicRejectedError: If the input is not an explorable topic
            PersistenceError: If the topic or trail cannot be stored
        """
        started = time.monotonic()

        validation = self.orchestrator.validate_topic(topic_input).value
        if not validation.is_valid:
            logger.info(f'Rejected topic input {topic_input!r}: {validation.reason}')
            raise TopicRejectedError(validation.reason or 'Not an explorable topic', validation.suggestions)
        title = (validation.cleaned_topic or topic_input).strip()
        problem = self.orchestrator.length_problem(title)
        if problem:
            logger.info(f'Rejected cleaned topic {title!r}: {problem}')
            raise TopicRejectedError(problem, validation.suggestions)

        result = self.orchestrator.explore_topic(title)
        response = result.value
        # Fallback placeholders are not stored on the topic; blanks are filled by a later exploration
        topic = self.persistence.save_topic(
            Topic(title=title,
                  description='' if result.degraded else first_sentence(response.summary),
                  tags=[] if result.degraded else response.keywords,
                  difficulty=None if result.degraded else response.difficulty))

        trail = build_curiosity_trail(topic, response, self._model_for(result), elapsed_ms(started))
        trail = self.persistence.save_curiosity_trail(trail)
        logger.info(f'Stored trail {trail.id} for {topic.title!r} ({len(trail.nodes)} nodes, degraded={result.degraded})')

        session = None
        if session_id:
            session = self._record_progress(session_id, topic, len(trail.nodes) - 1, elapsed_ms(started))

        return ExplorationOutcome(topic=topic, trail=trail, degraded=result.degraded, reason=result.reason, session=session)

    def explore_deeper(self, topic_title: str, session_id: Optional[str] = None) -> ExplorationOutcome:
        """
        Extend the latest trail for a topic with more advanced connections.

        Falls back to a fresh exploration when the topic has no trail yet. When
        nothing new is found the latest trail is returned unchanged, without
        storing a copy or crediting the session.
        """
        started = time.monotonic()

        topic = self.persistence.find_topic_by_title(topic_title)
        latest = self.persistence.get_curiosity_trail_by_topic(topic.id) if topic else None
        if topic is None or latest is None:
            logger.info(f'No trail for {topic_title!r} yet, running a full exploration')
            return self.explore(topic_title, session_id=session_id)

        result = self.orchestrator.explore_deeper(topic.title, [node.title for node in latest.nodes])
        trail = extend_curiosity_trail(latest, result.value, self._model_for(result), elapsed_ms(started))
        new_nodes = len(trail.nodes) - len(latest.nodes)
        if new_nodes == 0:
            logger.info(f'Deeper exploration of {topic.title!r} added nothing (degraded={result.degraded})')
            session = self.persistence.get_user_session(session_id) if session_id else None
            return ExplorationOutcome(topic=topic, trail=latest, degraded=result.degraded, reason=result.reason, session=session)

        trail = self.persistence.save_curiosity_trail(trail)
        logger.info(f'Extended trail for {topic.title!r} with {new_nodes} nodes (degraded={result.degraded})')

        session = None
        if session_id:
            session = self._record_progress(session_id, topic, new_nodes, elapsed_ms(started), extra_achievement=DEEP_DIVER)

        return ExplorationOutcome(topic=topic, trail=trail, degraded=result.degraded, reason=result.reason, session=session)

    def _model_for(self, result: AIResult) -> str:
        return FALLBACK_MODEL if result.degraded else self.orchestrator.model_id

    def _record_progress(self,
                         session_id: str,
                         topic: Topic,
                         new_nodes: int,
                         duration_ms: int,
                         extra_achievement: Optional[str] = None) -> UserSession:
        current = self.persistence.get_user_session(session_id) or UserSession(session_id=session_id)

        topics = list(current.topics_explored)
        if topic.id not in topics:
            topics.append(topic.id)

        updated = UserSession(session_id=session_id,
                              topics_explored=topics,
                              trails_generated=current.trails_generated + 1,
                              total_exploration_time=round(current.total_exploration_time + duration_ms / 60000, 3),
                              curiosity_score=current.curiosity_score + 10 + 2 * max(new_nodes, 0))

        achievements = list(current.achievements)
        for name, earned in ACHIEVEMENTS:
            if name not in achievements and earned(updated):
                achievements.append(name)
        if extra_achievement and extra_achievement not in achievements:
            achievements.append(extra_achievement)

        return self.persistence.update_user_session({
            'session_id': session_id,
            'topics_explored': updated.topics_explored,
            'trails_generated': updated.trails_generated,
            'total_exploration_time': updated.total_exploration_time,
            'curiosity_score': updated.curiosity_score,
            'achievements': achievements
        })


def first_sentence(text: str, max_length: int = 280) -> str:
    """First sentence of a summary, used as the topic description."""
    match = re.match(r'(.+?[.!?])(\s|$)', text.strip(), re.DOTALL)
    sentence = match.group(1) if match else text.strip()
    return sentence if len(sentence) <= max_length else sentence[:max_length - 3].rstrip() + '...'

