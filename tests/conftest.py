"""Shared fixtures: an in-memory OpenSearch stand-in and a scripted LLM."""

import copy
import json
import re
import time
from typing import Any, Dict, List

import pytest
from opensearchpy.exceptions import NotFoundError, RequestError, TransportError

from akiliquest.services.persistence import TOPIC_EXPLORED_SCRIPT
from akiliquest.utils.config import AppConfig, BedrockLLMConfig, ExplorationConfig, MCPConfig, OpenSearchConfig
from akiliquest.utils.opensearch_client import OpenSearchClient


class FakeIndices:

    def __init__(self, owner: 'FakeOpenSearch'):
        self.owner = owner
        self.created: Dict[str, Any] = {}

    def exists(self, index):
        return index in self.created

    def create(self, index, body=None):
        if self.owner.fail_index_creation:
            raise TransportError(500, 'resource_exception', {})
        self.created[index] = body
        return {'acknowledged': True}


class FakeOpenSearch:
    """Subset of the opensearch-py client API used by OpenSearchClient."""

    def __init__(self):
        self.docs: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.indices = FakeIndices(self)
        self.reachable = True
        self.ping_calls = 0
        self.fail_writes = False
        self.fail_index_creation = False
        self.failing_queries: List[str] = []
        self.search_bodies: List[Dict[str, Any]] = []
        self._next_id = 0

    def ping(self, **kwargs):
        self.ping_calls += 1
        return self.reachable

    def close(self):
        pass

    def _collection(self, index):
        return self.docs.setdefault(index, {})

    def index(self, index, body, id=None, refresh=None, **kwargs):
        if self.fail_writes:
            raise TransportError(500, 'internal_server_error', {})
        if id is None:
            self._next_id += 1
            id = f'auto-{self._next_id}'
        collection = self._collection(index)
        result = 'updated' if id in collection else 'created'
        collection[id] = copy.deepcopy(body)
        return {'_id': id, 'result': result}

    def get(self, index, id, **kwargs):
        collection = self._collection(index)
        if id not in collection:
            raise NotFoundError(404, 'not_found', {'found': False})
        return {'_id': id, 'found': True, '_source': copy.deepcopy(collection[id])}

    def update(self, index, id, body, **kwargs):
        if self.fail_writes:
            raise TransportError(500, 'internal_server_error', {})
        collection = self._collection(index)
        if id not in collection:
            collection[id] = copy.deepcopy(body['upsert'])
            result = 'created'
        elif 'script' in body:
            if body['script']['source'] != TOPIC_EXPLORED_SCRIPT:
                raise RequestError(400, 'illegal_argument_exception', {'reason': 'unknown script'})
            doc, params = collection[id], body['script']['params']
            doc['exploration_count'] += 1
            doc['updated_at'] = params['now']
            for field in ('description', 'tags', 'difficulty'):
                if not doc.get(field) and params.get(field):
                    doc[field] = copy.deepcopy(params[field])
            result = 'updated'
        else:
            collection[id].update(copy.deepcopy(body['doc']))
            result = 'updated'
        return {'_id': id, 'result': result, 'get': {'_source': copy.deepcopy(collection[id])}}

    def count(self, index, **kwargs):
        return {'count': len(self._collection(index))}

    def search(self, index, body, **kwargs):
        self.search_bodies.append(body)
        query = body.get('query', {'match_all': {}})
        query_type = next(iter(query))
        if query_type in self.failing_queries:
            raise RequestError(400, 'search_phase_execution_exception', {'reason': f'{query_type} unavailable'})

        hits = []
        for doc_id, doc in self._collection(index).items():
            score = _score(query, doc)
            if score:
                hits.append({'_id': doc_id, '_score': score, '_source': copy.deepcopy(doc)})

        if 'sort' in body:
            for clause in reversed(body['sort']):
                field, spec = next(iter(clause.items()))
                hits.sort(key=lambda h: h['_source'].get(field), reverse=spec.get('order') == 'desc')
        else:
            hits.sort(key=lambda h: h['_score'], reverse=True)

        hits = hits[:body.get('size', 10)]
        return {'hits': {'total': {'value': len(hits)}, 'hits': hits}}


def _field_text(doc, field):
    value = doc.get(field.split('.')[0])
    if isinstance(value, list):
        return ' '.join(str(v) for v in value)
    return '' if value is None else str(value)


def _wildcard_regex(pattern):
    out, i = [], 0
    while i < len(pattern):
        char = pattern[i]
        if char == '\\' and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        out.append('.*' if char == '*' else '.' if char == '?' else re.escape(char))
        i += 1
    return ''.join(out)


def _score(query, doc) -> float:
    query_type, spec = next(iter(query.items()))
    if query_type == 'match_all':
        return 1.0
    if query_type == 'term':
        field, value = next(iter(spec.items()))
        return 1.0 if doc.get(field) == value else 0.0
    if query_type == 'multi_match':
        tokens = spec['query'].lower().split()
        score = 0.0
        for field in spec['fields']:
            name, _, boost = field.partition('^')
            words = _field_text(doc, name).lower().split()
            score += sum(float(boost or 1) for token in tokens if token in words)
        return score
    if query_type == 'wildcard':
        field, clause = next(iter(spec.items()))
        flags = re.IGNORECASE | re.DOTALL if clause.get('case_insensitive') else re.DOTALL
        return 1.0 if re.fullmatch(_wildcard_regex(clause['value']), _field_text(doc, field), flags) else 0.0
    if query_type == 'bool':
        return sum(_score(clause, doc) for clause in spec.get('should', []))
    raise AssertionError(f'Unsupported query in fake: {query_type}')


class ScriptedLLM:
    """Stand-in for BedrockLLM replaying canned responses."""

    model_id = 'test-model'

    def __init__(self, *responses, delay: float = 0.0):
        self.responses = list(responses)
        self.delay = delay
        self.calls = []

    def generate_text(self, prompt, max_tokens=None, temperature=None):
        self.calls.append({'prompt': prompt, 'max_tokens': max_tokens, 'temperature': temperature})
        if self.delay:
            time.sleep(self.delay)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def app_config():
    return AppConfig(environment='test',
                     log_level='DEBUG',
                     bedrock_llm=BedrockLLMConfig(region='us-east-1',
                                                  model_id='test-model',
                                                  max_tokens=2048,
                                                  temperature=0.7,
                                                  validation_max_tokens=256,
                                                  validation_temperature=0.1,
                                                  timeout_ms=2000),
                     opensearch=OpenSearchConfig(url='http://localhost:9200',
                                                 aws_auth=False,
                                                 region='us-east-1',
                                                 service='es',
                                                 index_prefix='test_',
                                                 pool_maxsize=10,
                                                 connect_timeout=5,
                                                 request_timeout=45,
                                                 verify_certs=False),
                     exploration=ExplorationConfig(min_topic_length=2,
                                                   max_topic_length=100,
                                                   max_trail_depth=5,
                                                   max_connections_per_node=3),
                     mcp=MCPConfig(transport='stdio', host='127.0.0.1', port=8000))


@pytest.fixture
def fake_opensearch():
    return FakeOpenSearch()


@pytest.fixture
def store(app_config, fake_opensearch):
    return OpenSearchClient(app_config.opensearch, client=fake_opensearch)


@pytest.fixture
def exploration_json():
    """Factory for a well-formed exploration answer."""

    def build(connections=5, titles=None, summary='Jazz is an American art form. It grew from blues and ragtime.', **overrides):
        titles = titles or [f'Concept {i + 1}' for i in range(connections)]
        payload = {
            'summary': summary,
            'connections': [{
                'title': title,
                'description': f'{title} shares roots with the topic.',
                'relationship': 'related through history',
                'confidence': round(0.9 - i * 0.1, 2)
            } for i, title in enumerate(titles)],
            'keywords': ['music', 'improvisation'],
            'difficulty': 'intermediate',
            'estimatedReadingTime': 6
        }
        payload.update(overrides)
        return json.dumps(payload)

    return build


@pytest.fixture
def validation_json():

    def build(is_valid=True, cleaned='Jazz', reason=None, suggestions=None):
        return json.dumps({'isValid': is_valid, 'cleanedTopic': cleaned, 'reason': reason, 'suggestions': suggestions or []})

    return build


@pytest.fixture
def make_llm():
    return ScriptedLLM
