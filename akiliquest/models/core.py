"""
Core data models for topics, curiosity trails and user sessions.

Records are stored as snake_case documents with ISO-8601 timestamps;
``to_document`` / ``from_document`` convert between the two.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from ..utils.timestamp_utils import from_iso, to_iso

DIFFICULTIES = ('beginner', 'intermediate', 'advanced')
NODE_TYPES = ('concept', 'application', 'connection', 'deep-dive')

T = TypeVar('T')


class ValidationError(Exception):
    """Raised when a record does not have the shape required for storage."""
    pass


@dataclass
class Topic:
    """A subject a user has searched for; deduplicated case-insensitively by title."""
    title: str
    description: str
    tags: List[str] = field(default_factory=list)
    category: Optional[str] = None
    difficulty: Optional[str] = None
    embedding: Optional[List[float]] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    exploration_count: int = 0

    def to_document(self) -> Dict[str, Any]:
        doc = {
            'title': self.title,
            'title_key': normalize_title(self.title),
            'description': self.description,
            'tags': list(self.tags),
            'category': self.category,
            'difficulty': self.difficulty,
            'created_at': to_iso(self.created_at),
            'updated_at': to_iso(self.updated_at),
            'exploration_count': self.exploration_count,
        }
        if self.embedding is not None:
            doc['embedding'] = list(self.embedding)
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any], doc_id: Optional[str] = None) -> 'Topic':
        return cls(id=doc_id or doc.get('id'),
                   title=doc.get('title', ''),
                   description=doc.get('description', ''),
                   tags=list(doc.get('tags') or []),
                   category=doc.get('category'),
                   difficulty=doc.get('difficulty'),
                   embedding=doc.get('embedding'),
                   created_at=from_iso(doc.get('created_at')),
                   updated_at=from_iso(doc.get('updated_at')),
                   exploration_count=int(doc.get('exploration_count', 0)))


@dataclass
class CuriosityNode:
    """One step in a curiosity trail. Level 0 is the starting topic."""
    id: str
    title: str
    description: str
    level: int
    node_type: str = 'concept'
    confidence: float = 1.0
    connections: List[str] = field(default_factory=list)  # ids of child nodes
    sources: Optional[List[str]] = None

    def to_document(self) -> Dict[str, Any]:
        doc = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'level': self.level,
            'node_type': self.node_type,
            'confidence': self.confidence,
            'connections': list(self.connections),
        }
        if self.sources is not None:
            doc['sources'] = list(self.sources)
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'CuriosityNode':
        return cls(id=str(doc['id']),
                   title=doc.get('title', ''),
                   description=doc.get('description', ''),
                   level=int(doc.get('level', 0)),
                   node_type=doc.get('node_type', 'concept'),
                   confidence=float(doc.get('confidence', 0.0)),
                   connections=[str(c) for c in doc.get('connections') or []],
                   sources=doc.get('sources'))


@dataclass
class CuriosityTrail:
    """A generated trail for a topic. Trails are append-only; the newest one wins."""
    topic_id: str
    topic: str
    summary: str
    nodes: List[CuriosityNode]
    total_connections: int
    max_depth: int
    generated_at: datetime
    ai_model: str
    processing_time: int  # milliseconds
    id: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return {
            'topic_id': self.topic_id,
            'topic': self.topic,
            'summary': self.summary,
            'nodes': [node.to_document() for node in self.nodes],
            'total_connections': self.total_connections,
            'max_depth': self.max_depth,
            'generated_at': to_iso(self.generated_at),
            'ai_model': self.ai_model,
            'processing_time': self.processing_time,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any], doc_id: Optional[str] = None) -> 'CuriosityTrail':
        return cls(id=doc_id or doc.get('id'),
                   topic_id=doc.get('topic_id', ''),
                   topic=doc.get('topic', ''),
                   summary=doc.get('summary', ''),
                   nodes=[CuriosityNode.from_document(n) for n in doc.get('nodes') or []],
                   total_connections=int(doc.get('total_connections', 0)),
                   max_depth=int(doc.get('max_depth', 0)),
                   generated_at=from_iso(doc.get('generated_at')),
                   ai_model=doc.get('ai_model', ''),
                   processing_time=int(doc.get('processing_time', 0)))


@dataclass
class AIConnection:
    """A related concept proposed by the model."""
    title: str
    description: str
    relationship: str
    confidence: float


@dataclass
class AIResponse:
    """Structured exploration result produced by the AI orchestrator."""
    summary: str
    connections: List[AIConnection]
    keywords: List[str]
    difficulty: str
    estimated_reading_time: int  # minutes


@dataclass
class TopicValidation:
    """Outcome of checking a user's topic input."""
    is_valid: bool
    cleaned_topic: Optional[str] = None
    reason: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)


@dataclass
class AIResult(Generic[T]):
    """Value returned by the orchestrator, flagged when it came from a fallback."""
    value: T
    degraded: bool = False
    reason: Optional[str] = None

    @classmethod
    def success(cls, value: T) -> 'AIResult[T]':
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, reason: str) -> 'AIResult[T]':
        return cls(value=value, degraded=True, reason=reason)


@dataclass
class UserSession:
    """Gamification progress for one client-chosen session id."""
    session_id: str
    topics_explored: List[str] = field(default_factory=list)
    trails_generated: int = 0
    total_exploration_time: float = 0.0  # minutes
    curiosity_score: int = 0
    achievements: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None

    def to_document(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'topics_explored': list(self.topics_explored),
            'trails_generated': self.trails_generated,
            'total_exploration_time': self.total_exploration_time,
            'curiosity_score': self.curiosity_score,
            'achievements': list(self.achievements),
            'created_at': to_iso(self.created_at),
            'last_active_at': to_iso(self.last_active_at),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'UserSession':
        return cls(session_id=doc['session_id'],
                   topics_explored=list(doc.get('topics_explored') or []),
                   trails_generated=int(doc.get('trails_generated', 0)),
                   total_exploration_time=float(doc.get('total_exploration_time', 0.0)),
                   curiosity_score=int(doc.get('curiosity_score', 0)),
                   achievements=list(doc.get('achievements') or []),
                   created_at=from_iso(doc.get('created_at')),
                   last_active_at=from_iso(doc.get('last_active_at')))


def normalize_title(title: str) -> str:
    """Key used for case-insensitive title uniqueness."""
    return ' '.join(title.split()).casefold()


def validate_topic(topic: Topic) -> None:
    """Check a topic has the shape required for storage.

    Raises:
        ValidationError: naming the first violated field
    """
    if not isinstance(topic.title, str) or not topic.title.strip():
        raise ValidationError('Invalid topic data structure: title must be a non-empty string')
    if not isinstance(topic.description, str):
        raise ValidationError('Invalid topic data structure: description must be a string')
    if not isinstance(topic.tags, list) or not all(isinstance(t, str) for t in topic.tags):
        raise ValidationError('Invalid topic data structure: tags must be a list of strings')
    if topic.difficulty is not None and topic.difficulty not in DIFFICULTIES:
        raise ValidationError(f'Invalid topic data structure: difficulty must be one of {", ".join(DIFFICULTIES)}')
    if topic.embedding is not None and not all(isinstance(v, (int, float)) for v in topic.embedding):
        raise ValidationError('Invalid topic data structure: embedding must be a list of numbers')


def validate_curiosity_trail(trail: CuriosityTrail) -> None:
    """Check a trail has the shape required for storage.

    Raises:
        ValidationError: naming the first violated field
    """
    if not isinstance(trail.topic, str) or not trail.topic:
        raise ValidationError('Invalid curiosity trail data structure: topic must be a non-empty string')
    if not isinstance(trail.topic_id, str) or not trail.topic_id:
        raise ValidationError('Invalid curiosity trail data structure: topic_id must be a non-empty string')
    if not isinstance(trail.summary, str):
        raise ValidationError('Invalid curiosity trail data structure: summary must be a string')
    if not isinstance(trail.nodes, list) or not all(isinstance(n, CuriosityNode) for n in trail.nodes):
        raise ValidationError('Invalid curiosity trail data structure: nodes must be a list of CuriosityNode')
    if not isinstance(trail.total_connections, int):
        raise ValidationError('Invalid curiosity trail data structure: total_connections must be an integer')
    if not isinstance(trail.generated_at, datetime):
        raise ValidationError('Invalid curiosity trail data structure: generated_at must be a datetime')
    for node in trail.nodes:
        if node.node_type not in NODE_TYPES:
            raise ValidationError(f'Invalid curiosity node {node.id}: node_type {node.node_type!r} is not allowed')
        if not 0.0 <= node.confidence <= 1.0:
            raise ValidationError(f'Invalid curiosity node {node.id}: confidence must be within [0, 1]')


def validate_session_fields(fields: Dict[str, Any]) -> None:
    """Check the value types of a partial session update.

    Raises:
        ValidationError: naming the first violated field
    """
    for name in ('topics_explored', 'achievements'):
        value = fields.get(name, [])
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f'Invalid session data structure: {name} must be a list of strings')
    for name in ('trails_generated', 'curiosity_score'):
        value = fields.get(name, 0)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f'Invalid session data structure: {name} must be an integer')
    value = fields.get('total_exploration_time', 0.0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError('Invalid session data structure: total_exploration_time must be a number')
