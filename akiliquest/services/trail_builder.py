"""
Build curiosity trails from AI exploration results.
"""

import copy
import re
from typing import List, Optional, Sequence

from ..models.core import AIConnection, AIResponse, CuriosityNode, CuriosityTrail, Topic
from ..utils.config import config
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import utc_now

logger = get_logger(__name__)

# First matching rule wins; prefixes are matched against words of the relationship text
NODE_TYPE_RULES = (
    ('application', ('appli', 'apply', 'use', 'practical', 'industr', 'engineer')),
    ('deep-dive', ('advanced', 'deep', 'underlying', 'theor', 'fundamental')),
    ('connection', ('connect', 'link', 'relat', 'bridge', 'cross', 'parallel', 'influen')),
)


def infer_node_type(relationship: str, default: str = 'concept') -> str:
    """Classify a connection by the wording of its relationship."""
    words = re.findall(r"[a-z]+", relationship.lower())
    for node_type, prefixes in NODE_TYPE_RULES:
        if any(word.startswith(prefix) for word in words for prefix in prefixes):
            return node_type
    return default


def build_curiosity_trail(topic: Topic,
                          ai_response: AIResponse,
                          ai_model: str,
                          processing_time: int,
                          max_depth: Optional[int] = None,
                          max_children: Optional[int] = None) -> CuriosityTrail:
    """
    Turn an exploration result into a rooted trail.

    The topic is the level-0 root. Connections are attached breadth-first,
    most confident first, with at most ``max_children`` children per node.

    Args:
        topic: Stored topic the trail belongs to
        ai_response: Exploration result
        ai_model: Model identifier recorded on the trail
        processing_time: Generation time in milliseconds

    Returns:
        Unsaved CuriosityTrail
    """
    max_depth = max_depth or config.exploration.max_trail_depth
    max_children = max_children or config.exploration.max_connections_per_node

    root = CuriosityNode(id='node-0',
                         title=topic.title,
                         description=ai_response.summary,
                         level=0,
                         node_type='concept',
                         confidence=1.0)
    nodes = [root]
    _attach(nodes, [root], ai_response.connections, max_depth, max_children, default_type='concept')

    return _assemble(topic.id, topic.title, ai_response.summary, nodes, ai_model, processing_time)


def extend_curiosity_trail(trail: CuriosityTrail,
                           ai_response: AIResponse,
                           ai_model: str,
                           processing_time: int,
                           max_depth: Optional[int] = None,
                           max_children: Optional[int] = None) -> CuriosityTrail:
    """
    Grow a copy of a trail with deeper-exploration results.

    New nodes hang off the deepest level that can still take children.
    The original trail is left untouched.
    """
    max_depth = max_depth or config.exploration.max_trail_depth
    max_children = max_children or config.exploration.max_connections_per_node

    nodes = copy.deepcopy(trail.nodes)
    frontier = _frontier(nodes, max_depth, max_children)
    added = 0
    if frontier:
        added = _attach(nodes, frontier, ai_response.connections, max_depth, max_children, default_type='deep-dive')
    if added < len(ai_response.connections):
        logger.debug(f'Dropped {len(ai_response.connections) - added} connections beyond trail limits')

    return _assemble(trail.topic_id, trail.topic, trail.summary, nodes, ai_model, processing_time)


def _frontier(nodes: List[CuriosityNode], max_depth: int, max_children: int) -> List[CuriosityNode]:
    levels = sorted({node.level for node in nodes if node.level < max_depth}, reverse=True)
    for level in levels:
        candidates = [n for n in nodes if n.level == level and len(n.connections) < max_children]
        if candidates:
            return sorted(candidates, key=lambda n: n.confidence, reverse=True)
    return []


def _attach(nodes: List[CuriosityNode], frontier: List[CuriosityNode], connections: Sequence[AIConnection],
            max_depth: int, max_children: int, default_type: str) -> int:
    taken = {node.id for node in nodes}
    next_level = []
    added = 0

    for connection in sorted(connections, key=lambda c: c.confidence, reverse=True):
        parent = _least_loaded(frontier, max_children)
        if parent is None:
            frontier, next_level = next_level, []
            parent = _least_loaded(frontier, max_children)
        if parent is None or parent.level + 1 > max_depth:
            break

        node_id = _next_id(taken)
        taken.add(node_id)
        node = CuriosityNode(id=node_id,
                             title=connection.title,
                             description=connection.description,
                             level=parent.level + 1,
                             node_type=infer_node_type(connection.relationship, default_type),
                             confidence=connection.confidence)
        parent.connections.append(node.id)
        nodes.append(node)
        next_level.append(node)
        added += 1

    return added


def _least_loaded(frontier: List[CuriosityNode], max_children: int) -> Optional[CuriosityNode]:
    open_nodes = [n for n in frontier if len(n.connections) < max_children]
    if not open_nodes:
        return None
    return min(open_nodes, key=lambda n: len(n.connections))


def _next_id(taken) -> str:
    index = len(taken)
    while f'node-{index}' in taken:
        index += 1
    return f'node-{index}'


def _assemble(topic_id: str, topic: str, summary: str, nodes: List[CuriosityNode], ai_model: str,
              processing_time: int) -> CuriosityTrail:
    return CuriosityTrail(topic_id=topic_id,
                          topic=topic,
                          summary=summary,
                          nodes=nodes,
                          total_connections=sum(len(node.connections) for node in nodes),
                          max_depth=max(node.level for node in nodes),
                          generated_at=utc_now(),
                          ai_model=ai_model,
                          processing_time=processing_time)
