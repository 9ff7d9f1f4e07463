"""
MCP Interface Layer using fastmcp to expose curiosity exploration.
"""
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from .models.core import CuriosityTrail, Topic, UserSession, ValidationError
from .services.exploration import ExplorationOutcome, ExplorationService, TopicRejectedError
from .services.persistence import PersistenceError
from .utils.config import ConfigurationError, config
from .utils.health_check import get_system_info
from .utils.logging_config import get_logger

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('AkiliQuest')
exploration_service = ExplorationService()
orchestrator = exploration_service.orchestrator
persistence = exploration_service.persistence


def topic_to_dict(topic: Topic) -> Dict[str, Any]:
    doc = topic.to_document()
    doc.pop('title_key', None)
    doc.pop('embedding', None)
    return {'id': topic.id, **doc}


def trail_to_dict(trail: CuriosityTrail) -> Dict[str, Any]:
    return {'id': trail.id, **trail.to_document()}


def session_to_dict(session: UserSession) -> Dict[str, Any]:
    return session.to_document()


def outcome_to_dict(outcome: ExplorationOutcome) -> Dict[str, Any]:
    return {
        'topic': topic_to_dict(outcome.topic),
        'trail': trail_to_dict(outcome.trail),
        'degraded': outcome.degraded,
        'reason': outcome.reason,
        'session': session_to_dict(outcome.session) if outcome.session else None
    }


@mcp.tool()
def explore_topic(topic: str, session_id: Optional[str] = None) -> Dict[str, Any]:
    """Generate and store a curiosity trail for a topic.

    Args:
        topic: Topic to explore
        session_id: Optional session to credit with the exploration

    Returns:
        Stored topic, trail and whether the AI result was a fallback

    Raises:
        Exception: If the topic is rejected or cannot be stored
    """
    try:
        return outcome_to_dict(exploration_service.explore(topic, session_id=session_id))
    except TopicRejectedError as e:
        suggestions = f' Try: {", ".join(e.suggestions)}' if e.suggestions else ''
        raise Exception(f'Topic rejected: {e.reason}.{suggestions}')
    except PersistenceError as e:
        logger.error(f'Persistence error in MCP explore: {e}')
        raise Exception(f'Exploration failed: {e}')


@mcp.tool()
def explore_deeper(topic: str, session_id: Optional[str] = None) -> Dict[str, Any]:
    """Extend the latest curiosity trail for a topic with more advanced connections."""
    try:
        return outcome_to_dict(exploration_service.explore_deeper(topic, session_id=session_id))
    except TopicRejectedError as e:
        raise Exception(f'Topic rejected: {e.reason}')
    except PersistenceError as e:
        logger.error(f'Persistence error in MCP explore_deeper: {e}')
        raise Exception(f'Deeper exploration failed: {e}')


@mcp.tool()
def validate_topic(topic: str) -> Dict[str, Any]:
    """Check whether input is an explorable topic."""
    result = orchestrator.validate_topic(topic)
    return {**asdict(result.value), 'degraded': result.degraded}


@mcp.tool()
def suggest_topics(explored_topics: List[str], count: int = 5) -> Dict[str, Any]:
    """Suggest new topics related to the ones already explored."""
    result = orchestrator.suggest_topics(explored_topics, count)
    return {'suggestions': result.value, 'degraded': result.degraded}


@mcp.tool()
def search_topics(query: str, limit: int = 10) -> List[Dict[str, Any]]:
    """Search stored topics by title, description and tags."""
    return [topic_to_dict(topic) for topic in persistence.search_topics(query, limit)]


@mcp.tool()
def get_popular_topics(limit: int = 20) -> List[Dict[str, Any]]:
    """Most explored topics first."""
    return [topic_to_dict(topic) for topic in persistence.get_popular_topics(limit)]


@mcp.tool()
def get_recent_trails(limit: int = 10) -> List[Dict[str, Any]]:
    """Most recently generated trails first."""
    return [trail_to_dict(trail) for trail in persistence.get_recent_trails(limit)]


@mcp.tool()
def get_trail_for_topic(topic_id: str) -> Optional[Dict[str, Any]]:
    """Latest trail for a topic id, or None."""
    trail = persistence.get_curiosity_trail_by_topic(topic_id)
    return trail_to_dict(trail) if trail else None


@mcp.tool()
def update_user_session(session_id: str, fields: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Create or update a user session.

    Args:
        session_id: Client-chosen session id
        fields: Session fields to overwrite (topics_explored, trails_generated, ...)
    """
    try:
        return session_to_dict(persistence.update_user_session({**(fields or {}), 'session_id': session_id}))
    except (ValidationError, PersistenceError) as e:
        logger.error(f'Session update failed for {session_id}: {e}')
        raise Exception(f'Session update failed: {e}')


@mcp.tool()
def get_health() -> Dict[str, Any]:
    """Component health and configuration summary."""
    try:
        llm = orchestrator.llm
    except ConfigurationError as e:
        logger.error(f'Bedrock is not configured: {e}')
        llm = None
    return get_system_info(llm=llm, store=persistence.store)


@mcp.tool()
def get_stats() -> Optional[Dict[str, Any]]:
    """Document counts per collection."""
    return persistence.get_stats()


def main() -> None:
    transport = config.mcp.transport
    if transport == 'stdio':
        mcp.run()
    else:
        mcp.run(transport=transport, host=config.mcp.host, port=config.mcp.port)


if __name__ == '__main__':
    main()
