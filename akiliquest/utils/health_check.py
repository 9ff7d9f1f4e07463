"""
Health check utilities for the application.
"""

from typing import Any, Dict, Optional

from .bedrock_llm import BedrockLLM
from .config import config
from .logging_config import get_logger
from .opensearch_client import OpenSearchClient

logger = get_logger(__name__)


def check_health(llm: Optional[BedrockLLM] = None, store: Optional[OpenSearchClient] = None) -> bool:
    """Check the health of all system components.

    Returns:
        True if all components are healthy, False otherwise
    """
    try:
        health_status = get_health_status(llm, store)

        # Check if all components are healthy
        all_healthy = all(status.get('healthy', False) for status in health_status.values())

        if all_healthy:
            logger.info('All system components are healthy')
        else:
            logger.warning('Some system components are unhealthy')

        return all_healthy

    except Exception as e:
        logger.error(f'Health check failed: {e}')
        return False


def get_health_status(llm: Optional[BedrockLLM] = None, store: Optional[OpenSearchClient] = None) -> Dict[str, Any]:
    """Get detailed health status of all components.

    Args:
        llm: Existing Bedrock client; one is built from configuration if None
        store: Existing OpenSearch client; one is built from configuration if None

    Returns:
        Dictionary with health status of each component
    """
    health_status = {}

    # Check Bedrock LLM
    try:
        llm = llm or BedrockLLM(config.bedrock_llm)
        health_status['bedrock_llm'] = {
            'healthy': llm.health_check(),
            'service': 'Amazon Bedrock LLM',
            'model': llm.model_id
        }
    except Exception as e:
        health_status['bedrock_llm'] = {'healthy': False, 'service': 'Amazon Bedrock LLM', 'error': str(e)}

    # Check OpenSearch
    try:
        store = store or OpenSearchClient(config.opensearch)
        health_status['opensearch'] = {
            'healthy': store.health_check(),
            'service': 'OpenSearch',
            'index_prefix': store.config.index_prefix
        }
    except Exception as e:
        health_status['opensearch'] = {'healthy': False, 'service': 'OpenSearch', 'error': str(e)}

    return health_status


def get_system_info(llm: Optional[BedrockLLM] = None, store: Optional[OpenSearchClient] = None) -> Dict[str, Any]:
    """Get system information and configuration.

    Returns:
        Dictionary with system information
    """
    return {
        'service_name': 'AkiliQuest',
        'version': '0.1.0',
        'configuration': {
            'environment': config.environment,
            'bedrock_llm_model': config.bedrock_llm.model_id,
            'aws_region': config.bedrock_llm.region,
            'ai_timeout_ms': config.bedrock_llm.timeout_ms,
            'max_trail_depth': config.exploration.max_trail_depth,
            'max_connections_per_node': config.exploration.max_connections_per_node
        },
        'health_status': get_health_status(llm, store)
    }
