"""
Persistence service for topics, curiosity trails and user sessions.

Every operation connects first, and connection failures propagate. After
that, failed reads return empty results and failed writes raise
PersistenceError.
"""

import uuid
from typing import Any, Dict, List, Optional

from ..models.core import (CuriosityTrail, Topic, UserSession, ValidationError, normalize_title, validate_curiosity_trail,
                           validate_session_fields, validate_topic)
from ..utils.config import config
from ..utils.logging_config import get_logger
from ..utils.opensearch_client import SESSIONS, TOPICS, TRAILS, OpenSearchClient, OpenSearchError
from ..utils.timestamp_utils import to_iso, utc_now

logger = get_logger(__name__)

TOPIC_NAMESPACE = uuid.UUID('7d0c1a52-3f5e-4c87-9b0e-5a8f2f7c6e41')

# Runs only when the topic already exists; a missing topic is created from 'upsert'.
# Blank description, tags or difficulty are filled from the new exploration.
TOPIC_EXPLORED_SCRIPT = ('ctx._source.exploration_count += 1; '
                         'ctx._source.updated_at = params.now; '
                         'if ((ctx._source.description == null || ctx._source.description.isEmpty()) '
                         '&& !params.description.isEmpty()) { ctx._source.description = params.description; } '
                         'if ((ctx._source.tags == null || ctx._source.tags.isEmpty()) '
                         '&& !params.tags.isEmpty()) { ctx._source.tags = params.tags; } '
                         'if (ctx._source.difficulty == null && params.difficulty != null) '
                         '{ ctx._source.difficulty = params.difficulty; }')

SESSION_FIELDS = ('topics_explored', 'trails_generated', 'total_exploration_time', 'curiosity_score', 'achievements')


class PersistenceError(Exception):
    """Raised when a write to the document store fails."""
    pass


def topic_id_for(title: str) -> str:
    """Stable document id for a title; equal for titles differing only by case."""
    return str(uuid.uuid5(TOPIC_NAMESPACE, normalize_title(title)))


class PersistenceService:
    """Topic, trail and session operations over a shared OpenSearch handle."""

    def __init__(self, store: Optional[OpenSearchClient] = None):
        """Initialize the persistence service.

        Args:
            store: Shared OpenSearchClient; one is built from configuration if omitted
        """
        self.store = store or OpenSearchClient(config.opensearch)

    def connect(self) -> None:
        """Connect eagerly. Configuration and connection errors propagate."""
        self.store.connect()

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    def save_topic(self, topic_data: Topic) -> Topic:
        """Create a topic or count another exploration of an existing one.

        The existence check and the increment happen in one scripted upsert,
        keyed by the case-folded title. An existing topic keeps its description,
        tags and difficulty unless they are blank.

        Args:
            topic_data: Topic to save; id, timestamps and counter are ignored

        Returns:
            The stored topic with its id

        Raises:
            ValidationError: If the topic shape is invalid
            PersistenceError: If the write fails
        """
        validate_topic(topic_data)

        now = utc_now()
        doc_id = topic_id_for(topic_data.title)
        new_topic = Topic(title=topic_data.title.strip(),
                          description=topic_data.description,
                          tags=list(topic_data.tags),
                          category=topic_data.category,
                          difficulty=topic_data.difficulty,
                          embedding=topic_data.embedding,
                          created_at=now,
                          updated_at=now,
                          exploration_count=1)

        body = {
            'script': {
                'source': TOPIC_EXPLORED_SCRIPT,
                'lang': 'painless',
                'params': {
                    'now': to_iso(now),
                    'description': new_topic.description,
                    'tags': new_topic.tags,
                    'difficulty': new_topic.difficulty
                }
            },
            'upsert': new_topic.to_document()
        }

        self.store.connect()
        try:
            source = self.store.upsert(TOPICS, doc_id, body)
        except OpenSearchError as e:
            logger.error(f'Error saving topic {topic_data.title!r}: {e}')
            raise PersistenceError(f'Failed to save topic: {e}')

        topic = Topic.from_document(source, doc_id=doc_id)
        logger.debug(f'Saved topic {topic.title!r} (exploration_count={topic.exploration_count})')
        return topic

    def get_topic_by_id(self, topic_id: str) -> Optional[Topic]:
        """Fetch a topic, or None if it is absent or the read fails."""
        self.store.connect()
        try:
            doc = self.store.get_document(TOPICS, topic_id)
        except OpenSearchError as e:
            logger.error(f'Error fetching topic {topic_id}: {e}')
            return None
        return Topic.from_document(doc, doc_id=topic_id) if doc else None

    def find_topic_by_title(self, title: str) -> Optional[Topic]:
        """Case-insensitive exact title lookup."""
        return self.get_topic_by_id(topic_id_for(title))

    def search_topics(self, query: str, limit: int = 10) -> List[Topic]:
        """Search topics by relevance, falling back to substring matching.

        Args:
            query: Free-text query
            limit: Maximum number of topics returned

        Returns:
            Matching topics, best first; empty on failure
        """
        if not query or not query.strip():
            return []

        self.store.connect()
        text_body = {
            'size': limit,
            'query': {
                'multi_match': {
                    'query': query,
                    'fields': ['title^3', 'description', 'tags']
                }
            }
        }
        try:
            hits = self.store.search(TOPICS, text_body)
            return [Topic.from_document(hit['document'], doc_id=hit['id']) for hit in hits][:limit]
        except OpenSearchError as e:
            logger.warning(f'Text search failed, falling back to substring match: {e}')

        pattern = f'*{_escape_wildcard(query.strip())}*'
        fallback_body = {
            'size': limit,
            'query': {
                'bool': {
                    'should': [{
                        'wildcard': {
                            'title.raw': {
                                'value': pattern,
                                'case_insensitive': True
                            }
                        }
                    }, {
                        'wildcard': {
                            'description.raw': {
                                'value': pattern,
                                'case_insensitive': True
                            }
                        }
                    }],
                    'minimum_should_match': 1
                }
            }
        }
        try:
            hits = self.store.search(TOPICS, fallback_body)
        except OpenSearchError as e:
            logger.error(f'Error searching topics: {e}')
            return []
        return [Topic.from_document(hit['document'], doc_id=hit['id']) for hit in hits][:limit]

    def get_popular_topics(self, limit: int = 20) -> List[Topic]:
        """Topics ordered by exploration count, most explored first."""
        self.store.connect()
        body = {'size': limit, 'query': {'match_all': {}}, 'sort': [{'exploration_count': {'order': 'desc'}}]}
        try:
            hits = self.store.search(TOPICS, body)
        except OpenSearchError as e:
            logger.error(f'Error fetching popular topics: {e}')
            return []
        return [Topic.from_document(hit['document'], doc_id=hit['id']) for hit in hits]

    # ------------------------------------------------------------------
    # Curiosity trails
    # ------------------------------------------------------------------

    def save_curiosity_trail(self, trail: CuriosityTrail) -> CuriosityTrail:
        """Store a new trail. Trails are never updated in place.

        Raises:
            ValidationError: If the trail shape is invalid
            PersistenceError: If the write fails
        """
        validate_curiosity_trail(trail)

        self.store.connect()
        trail_id = str(uuid.uuid4())
        try:
            self.store.index_document(TRAILS, trail.to_document(), doc_id=trail_id)
        except OpenSearchError as e:
            logger.error(f'Error saving curiosity trail for {trail.topic!r}: {e}')
            raise PersistenceError(f'Failed to save curiosity trail: {e}')

        logger.debug(f'Saved curiosity trail {trail_id} for topic {trail.topic_id}')
        return CuriosityTrail.from_document(trail.to_document(), doc_id=trail_id)

    def get_curiosity_trail_by_topic(self, topic_id: str) -> Optional[CuriosityTrail]:
        """Most recently generated trail for a topic, or None."""
        self.store.connect()
        body = {
            'size': 1,
            'query': {
                'term': {
                    'topic_id': topic_id
                }
            },
            'sort': [{
                'generated_at': {
                    'order': 'desc'
                }
            }]
        }
        try:
            hits = self.store.search(TRAILS, body)
        except OpenSearchError as e:
            logger.error(f'Error fetching curiosity trail for topic {topic_id}: {e}')
            return None
        if not hits:
            return None
        return CuriosityTrail.from_document(hits[0]['document'], doc_id=hits[0]['id'])

    def get_recent_trails(self, limit: int = 10) -> List[CuriosityTrail]:
        """Trails ordered by generation time, newest first."""
        self.store.connect()
        body = {'size': limit, 'query': {'match_all': {}}, 'sort': [{'generated_at': {'order': 'desc'}}]}
        try:
            hits = self.store.search(TRAILS, body)
        except OpenSearchError as e:
            logger.error(f'Error fetching recent trails: {e}')
            return []
        return [CuriosityTrail.from_document(hit['document'], doc_id=hit['id']) for hit in hits]

    # ------------------------------------------------------------------
    # User sessions
    # ------------------------------------------------------------------

    def get_user_session(self, session_id: str) -> Optional[UserSession]:
        """Fetch a session, or None if it is absent or the read fails."""
        self.store.connect()
        try:
            doc = self.store.get_document(SESSIONS, session_id)
        except OpenSearchError as e:
            logger.error(f'Error fetching session {session_id}: {e}')
            return None
        return UserSession.from_document(doc) if doc else None

    def update_user_session(self, partial: Dict[str, Any]) -> UserSession:
        """Create or update a session keyed by its session id.

        Supplied fields overwrite stored ones; last_active_at is refreshed on
        every call while created_at is only set on insert.

        Args:
            partial: Must contain 'session_id'; other keys from SESSION_FIELDS

        Raises:
            ValidationError: If session_id is missing, a field is unknown or has the wrong type
            PersistenceError: If the write fails
        """
        session_id = partial.get('session_id')
        if not isinstance(session_id, str) or not session_id.strip():
            raise ValidationError('Invalid session data structure: session_id must be a non-empty string')
        unknown = set(partial) - set(SESSION_FIELDS) - {'session_id'}
        if unknown:
            raise ValidationError(f'Invalid session data structure: unknown fields {", ".join(sorted(unknown))}')
        validate_session_fields(partial)

        now = to_iso(utc_now())
        changes = {key: partial[key] for key in SESSION_FIELDS if key in partial}
        changes['last_active_at'] = now

        seed = UserSession(session_id=session_id).to_document()
        seed.update(changes)
        seed['created_at'] = now

        self.store.connect()
        try:
            source = self.store.upsert(SESSIONS, session_id, {'doc': changes, 'upsert': seed})
        except OpenSearchError as e:
            logger.error(f'Error updating session {session_id}: {e}')
            raise PersistenceError(f'Failed to update user session: {e}')
        return UserSession.from_document(source)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def check_health(self) -> bool:
        """Liveness of the document store. Never raises."""
        return self.store.health_check()

    def get_stats(self) -> Optional[Dict[str, Any]]:
        """Document counts per collection, or None on failure."""
        try:
            return {
                'topics': self.store.count(TOPICS),
                'trails': self.store.count(TRAILS),
                'sessions': self.store.count(SESSIONS),
                'timestamp': to_iso(utc_now())
            }
        except Exception as e:
            logger.error(f'Error fetching database stats: {e}')
            return None


def _escape_wildcard(text: str) -> str:
    return text.replace('\\', '\\\\').replace('*', '\\*').replace('?', '\\?')
