"""Tests for turning exploration results into curiosity trails."""

import pytest

from akiliquest.models.core import AIConnection, AIResponse, Topic
from akiliquest.services.trail_builder import build_curiosity_trail, extend_curiosity_trail, infer_node_type


def make_response(count, relationship='related field', start=0.9):
    connections = [
        AIConnection(title=f'Concept {i + 1}',
                     description=f'Description {i + 1}',
                     relationship=relationship,
                     confidence=round(start - i * 0.1, 2)) for i in range(count)
    ]
    return AIResponse(summary='Summary.', connections=connections, keywords=['k'], difficulty='beginner', estimated_reading_time=3)


@pytest.fixture
def topic():
    return Topic(title='Jazz', description='Music', id='topic-jazz')


def by_id(trail):
    return {node.id: node for node in trail.nodes}


def parents(trail):
    return {child: node.id for node in trail.nodes for child in node.connections}


class TestInferNodeType:

    @pytest.mark.parametrize('relationship,expected', [
        ('Practical applications in medicine', 'application'),
        ('Used in industry', 'application'),
        ('Underlying theory', 'deep-dive'),
        ('Historically linked', 'connection'),
        ('Shares a common ancestor', 'concept'),
    ])
    def test_classification(self, relationship, expected):
        assert infer_node_type(relationship) == expected

    def test_matches_word_prefixes_only(self):
        assert infer_node_type('Popular because of radio') == 'concept'

    def test_default_is_configurable(self):
        assert infer_node_type('Something else', default='deep-dive') == 'deep-dive'


class TestBuildCuriosityTrail:

    def test_root_node(self, topic):
        trail = build_curiosity_trail(topic, make_response(5), 'test-model', 1500)
        root = trail.nodes[0]

        assert root.id == 'node-0'
        assert root.level == 0
        assert root.title == 'Jazz'
        assert root.description == 'Summary.'
        assert root.confidence == 1.0
        assert 'node-0' not in parents(trail)

    def test_trail_metadata(self, topic):
        trail = build_curiosity_trail(topic, make_response(5), 'test-model', 1500)

        assert trail.topic_id == 'topic-jazz'
        assert trail.topic == 'Jazz'
        assert trail.ai_model == 'test-model'
        assert trail.processing_time == 1500
        assert trail.generated_at.tzinfo is not None

    def test_five_connections_layout(self, topic):
        trail = build_curiosity_trail(topic, make_response(5), 'test-model', 0, max_depth=5, max_children=3)
        nodes = by_id(trail)

        assert len(trail.nodes) == 6
        assert nodes['node-0'].connections == ['node-1', 'node-2', 'node-3']
        assert nodes['node-1'].connections == ['node-4']
        assert nodes['node-2'].connections == ['node-5']
        assert trail.total_connections == 5
        assert trail.max_depth == 2

    def test_every_edge_goes_one_level_down(self, topic):
        trail = build_curiosity_trail(topic, make_response(5), 'test-model', 0, max_children=2)
        nodes = by_id(trail)
        for child, parent in parents(trail).items():
            assert nodes[child].level == nodes[parent].level + 1
        assert all(len(node.connections) <= 2 for node in trail.nodes)
        assert len(parents(trail)) == len(trail.nodes) - 1

    def test_most_confident_attach_to_root(self, topic):
        response = make_response(4, start=0.5)
        response.connections.reverse()
        trail = build_curiosity_trail(topic, response, 'test-model', 0, max_children=3)
        root_children = [by_id(trail)[c].title for c in trail.nodes[0].connections]
        assert root_children == ['Concept 1', 'Concept 2', 'Concept 3']

    def test_depth_limit(self, topic):
        trail = build_curiosity_trail(topic, make_response(5), 'test-model', 0, max_depth=1, max_children=3)
        assert len(trail.nodes) == 4
        assert trail.max_depth == 1

    def test_no_connections(self, topic):
        response = make_response(0)
        trail = build_curiosity_trail(topic, response, 'fallback', 0)
        assert len(trail.nodes) == 1
        assert trail.total_connections == 0
        assert trail.max_depth == 0

    def test_node_types_follow_relationship(self, topic):
        trail = build_curiosity_trail(topic, make_response(2, relationship='practical use'), 'test-model', 0)
        assert [node.node_type for node in trail.nodes[1:]] == ['application', 'application']


class TestExtendCuriosityTrail:

    def test_adds_nodes_below_deepest_level(self, topic):
        original = build_curiosity_trail(topic, make_response(5), 'test-model', 0, max_children=3)
        deeper = make_response(2, relationship='advanced study')

        extended = extend_curiosity_trail(original, deeper, 'test-model', 900, max_children=3)
        nodes = by_id(extended)
        new_ids = [node.id for node in extended.nodes[len(original.nodes):]]

        assert len(extended.nodes) == 8
        assert all(nodes[i].level == 3 for i in new_ids)
        assert all(nodes[i].node_type == 'deep-dive' for i in new_ids)
        assert len(set(node.id for node in extended.nodes)) == 8
        assert extended.max_depth == 3
        assert extended.processing_time == 900

    def test_original_is_untouched(self, topic):
        original = build_curiosity_trail(topic, make_response(5), 'test-model', 0)
        edges_before = original.total_connections
        extend_curiosity_trail(original, make_response(3), 'test-model', 0)

        assert len(original.nodes) == 6
        assert sum(len(n.connections) for n in original.nodes) == edges_before

    def test_full_trail_is_not_extended(self, topic):
        original = build_curiosity_trail(topic, make_response(3), 'test-model', 0, max_depth=1, max_children=3)
        extended = extend_curiosity_trail(original, make_response(2), 'test-model', 0, max_depth=1, max_children=3)
        assert len(extended.nodes) == len(original.nodes)

    def test_extends_fallback_root(self, topic):
        original = build_curiosity_trail(topic, make_response(0), 'fallback', 0)
        extended = extend_curiosity_trail(original, make_response(2), 'test-model', 0)
        assert extended.nodes[0].connections == ['node-1', 'node-2']
