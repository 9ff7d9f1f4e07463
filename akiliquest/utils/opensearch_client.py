"""
OpenSearch client wrapper used as the document store.
"""

import threading
from typing import Any, Dict, List, Optional

import boto3
from opensearchpy import OpenSearch, RequestsHttpConnection
from opensearchpy.exceptions import NotFoundError, OpenSearchException
from requests_aws4auth import AWS4Auth

from .config import ConfigurationError, OpenSearchConfig
from .logging_config import get_logger

logger = get_logger(__name__)

TOPICS = 'topics'
TRAILS = 'trails'
SESSIONS = 'user_sessions'

_KEYWORD_SUBFIELD = {'raw': {'type': 'keyword', 'ignore_above': 2048}}

INDEX_BODIES = {
    TOPICS: {
        'mappings': {
            'properties': {
                # text fields back full-text search, .raw sub-fields back the substring fallback
                'title': {'type': 'text', 'fields': _KEYWORD_SUBFIELD},
                'title_key': {'type': 'keyword'},
                'description': {'type': 'text', 'fields': _KEYWORD_SUBFIELD},
                'tags': {'type': 'text', 'fields': _KEYWORD_SUBFIELD},
                'category': {'type': 'keyword'},
                'difficulty': {'type': 'keyword'},
                'embedding': {'type': 'float', 'index': False},
                'exploration_count': {'type': 'integer'},
                'created_at': {'type': 'date'},
                'updated_at': {'type': 'date'}
            }
        }
    },
    TRAILS: {
        'mappings': {
            'properties': {
                'topic_id': {'type': 'keyword'},
                'topic': {'type': 'text', 'fields': _KEYWORD_SUBFIELD},
                'summary': {'type': 'text'},
                'nodes': {'type': 'object', 'enabled': False},
                'total_connections': {'type': 'integer'},
                'max_depth': {'type': 'integer'},
                'generated_at': {'type': 'date'},
                'ai_model': {'type': 'keyword'},
                'processing_time': {'type': 'integer'}
            }
        }
    },
    SESSIONS: {
        'mappings': {
            'properties': {
                'session_id': {'type': 'keyword'},
                'topics_explored': {'type': 'keyword'},
                'trails_generated': {'type': 'integer'},
                'total_exploration_time': {'type': 'float'},
                'curiosity_score': {'type': 'integer'},
                'achievements': {'type': 'keyword'},
                'created_at': {'type': 'date'},
                'last_active_at': {'type': 'date'}
            }
        }
    }
}


class OpenSearchError(Exception):
    """Custom exception for OpenSearch errors."""
    pass


class OpenSearchClient:
    """Lazily connected OpenSearch handle shared by every persistence operation."""

    def __init__(self, config: OpenSearchConfig, client: Optional[OpenSearch] = None):
        """
        Initialize OpenSearch client wrapper. No network traffic happens until connect().

        Args:
            config: OpenSearchConfig instance with connection parameters
            client: Pre-built low-level client (tests, custom transports)
        """
        self.config = config
        self._client = client
        self._connected = False
        self._lock = threading.Lock()

    def index_name(self, collection: str) -> str:
        """Physical index name for a logical collection."""
        return f'{self.config.index_prefix}{collection}'

    def connect(self) -> OpenSearch:
        """
        Return the shared client, connecting on first use.

        Returns:
            Connected low-level OpenSearch client

        Raises:
            ConfigurationError: If no connection URL is configured
            OpenSearchError: If the cluster cannot be reached
        """
        # close() may clear the client concurrently; read it once
        client = self._client
        if self._connected and client is not None:
            return client

        with self._lock:
            if self._connected and self._client is not None:
                return self._client

            if self._client is None:
                self._client = self._build_client()

            try:
                reachable = self._client.ping(request_timeout=self.config.connect_timeout)
            except Exception as e:
                logger.error(f'OpenSearch connection failed: {e}')
                raise OpenSearchError(f'Database connection failed: {e}')
            if not reachable:
                logger.error('OpenSearch connection failed: ping returned False')
                raise OpenSearchError('Database connection failed: cluster did not answer ping')

            self._connected = True
            logger.info('Connected to OpenSearch')

            self.ensure_indexes()
            return self._client

    def _build_client(self) -> OpenSearch:
        if not self.config.url:
            raise ConfigurationError('OPENSEARCH_URL environment variable is not set')

        auth = None
        if self.config.aws_auth:
            # Get AWS credentials and create auth
            credentials = boto3.Session().get_credentials()
            auth = AWS4Auth(region=self.config.region, service=self.config.service, refreshable_credentials=credentials)

        logger.info('Connecting to OpenSearch...')
        return OpenSearch(hosts=[self.config.url],
                          http_auth=auth,
                          verify_certs=self.config.verify_certs,
                          connection_class=RequestsHttpConnection,
                          pool_maxsize=self.config.pool_maxsize,
                          timeout=self.config.request_timeout,
                          max_retries=0)

    def ensure_indexes(self) -> None:
        """Create any missing index. Failures are logged, never raised."""
        for collection, body in INDEX_BODIES.items():
            index = self.index_name(collection)
            try:
                if self._client.indices.exists(index=index):
                    logger.debug(f'Index {index} already exists')
                    continue
                self._client.indices.create(index=index, body=body)
                logger.info(f'Created index {index}')
            except Exception as e:
                logger.warning(f'Index creation failed for {index}: {e}')

    def close(self) -> None:
        """Close the underlying transport; the next connect() reconnects."""
        with self._lock:
            if self._client is not None and self._connected:
                try:
                    self._client.close()
                except Exception as e:
                    logger.warning(f'Error closing OpenSearch client: {e}')
                self._client = None
            self._connected = False
            logger.info('Database connection closed')

    def index_document(self, collection: str, document: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """
        Insert a document.

        Returns:
            The id of the stored document

        Raises:
            OpenSearchError: If the write fails
        """
        index = self.index_name(collection)
        try:
            response = self.connect().index(index=index, body=document, id=doc_id, refresh=True)
        except OpenSearchException as e:
            logger.error(f'Error indexing document in {index}: {e}')
            raise OpenSearchError(f'Failed to index document: {e}')

        if response.get('result') not in ('created', 'updated'):
            raise OpenSearchError(f'Unexpected result indexing document: {response}')
        logger.debug(f'Indexed document {response["_id"]} in {index}')
        return response['_id']

    def upsert(self, collection: str, doc_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply an update request with upsert semantics and return the stored source.

        Args:
            collection: Logical collection name
            doc_id: Document id
            body: Update body ('script' or 'doc' plus 'upsert')

        Raises:
            OpenSearchError: If the write fails
        """
        index = self.index_name(collection)
        try:
            response = self.connect().update(index=index,
                                             id=doc_id,
                                             body=body,
                                             refresh=True,
                                             retry_on_conflict=3,
                                             _source=True)
        except OpenSearchException as e:
            logger.error(f'Error upserting document {doc_id} in {index}: {e}')
            raise OpenSearchError(f'Failed to upsert document: {e}')

        source = response.get('get', {}).get('_source')
        if source is None:
            raise OpenSearchError(f'Upsert of {doc_id} returned no document: {response}')
        logger.debug(f'Upserted document {doc_id} in {index} ({response.get("result")})')
        return source

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetch a document by id.

        Returns:
            Document source, or None if it does not exist

        Raises:
            OpenSearchError: For failures other than not-found
        """
        index = self.index_name(collection)
        try:
            response = self.connect().get(index=index, id=doc_id)
        except NotFoundError:
            return None
        except OpenSearchException as e:
            logger.error(f'Error getting document {doc_id} from {index}: {e}')
            raise OpenSearchError(f'Failed to get document: {e}')
        return response.get('_source') if response.get('found', True) else None

    def search(self, collection: str, body: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Run a search request.

        Returns:
            List of hits as {'id', 'score', 'document'}

        Raises:
            OpenSearchError: If the search fails
        """
        index = self.index_name(collection)
        try:
            response = self.connect().search(index=index, body=body)
        except OpenSearchException as e:
            logger.error(f'Error searching {index}: {e}')
            raise OpenSearchError(f'Search failed: {e}')

        results = []
        for hit in response['hits']['hits']:
            results.append({'id': hit['_id'], 'score': hit.get('_score'), 'document': hit['_source']})
        logger.debug(f'Search on {index} returned {len(results)} results')
        return results

    def count(self, collection: str) -> int:
        """Number of documents in a collection."""
        index = self.index_name(collection)
        try:
            return int(self.connect().count(index=index)['count'])
        except OpenSearchException as e:
            logger.error(f'Error counting {index}: {e}')
            raise OpenSearchError(f'Count failed: {e}')

    def health_check(self) -> bool:
        """
        Perform a health check on the OpenSearch service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            return bool(self.connect().ping())

        except Exception as e:
            logger.error(f'OpenSearch health check failed: {e}')
            return False
