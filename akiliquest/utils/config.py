"""
Configuration management for AWS services and application settings.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(Exception):
    """Raised when a required setting is missing; indicates a deployment error."""
    pass


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class BedrockLLMConfig:
    """Configuration for Amazon Bedrock LLM service."""
    region: Optional[str]
    model_id: Optional[str]
    max_tokens: int
    temperature: float
    validation_max_tokens: int
    validation_temperature: float
    timeout_ms: int


@dataclass
class OpenSearchConfig:
    """Configuration for the OpenSearch document store."""
    url: Optional[str]
    aws_auth: bool
    region: str
    service: str
    index_prefix: str
    pool_maxsize: int
    connect_timeout: float
    request_timeout: float
    verify_certs: bool


@dataclass
class ExplorationConfig:
    """Limits applied to topic input and curiosity trail shape."""
    min_topic_length: int
    max_topic_length: int
    max_trail_depth: int
    max_connections_per_node: int


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_llm: BedrockLLMConfig
    opensearch: OpenSearchConfig
    exploration: ExplorationConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults.

    Required settings (Bedrock model id and region, OpenSearch URL) are not
    checked here; the clients that need them raise ConfigurationError when
    they are constructed.
    """
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock configuration
    bedrock_llm_config = BedrockLLMConfig(region=os.getenv('BEDROCK_LLM_AWS_REGION', 'us-east-1'),
                                          model_id=os.getenv('BEDROCK_LLM_MODEL_ID', 'anthropic.claude-3-haiku-20240307-v1:0'),
                                          max_tokens=int(os.getenv('BEDROCK_LLM_MAX_TOKENS', '2048')),
                                          temperature=float(os.getenv('BEDROCK_LLM_TEMPERATURE', '0.7')),
                                          validation_max_tokens=int(os.getenv('BEDROCK_LLM_VALIDATION_MAX_TOKENS', '256')),
                                          validation_temperature=float(os.getenv('BEDROCK_LLM_VALIDATION_TEMPERATURE', '0.1')),
                                          timeout_ms=int(os.getenv('BEDROCK_LLM_TIMEOUT_MS', '30000')))

    # Document store configuration
    opensearch_config = OpenSearchConfig(url=os.getenv('OPENSEARCH_URL'),
                                         aws_auth=_as_bool(os.getenv('OPENSEARCH_AWS_AUTH', 'false')),
                                         region=os.getenv('OPENSEARCH_AWS_REGION', 'us-east-1'),
                                         service=os.getenv('OPENSEARCH_AWS_SERVICE', 'es'),
                                         index_prefix=os.getenv('OPENSEARCH_INDEX_PREFIX', 'akiliquest_'),
                                         pool_maxsize=int(os.getenv('OPENSEARCH_POOL_MAXSIZE', '10')),
                                         connect_timeout=float(os.getenv('OPENSEARCH_CONNECT_TIMEOUT', '5')),
                                         request_timeout=float(os.getenv('OPENSEARCH_REQUEST_TIMEOUT', '45')),
                                         verify_certs=_as_bool(os.getenv('OPENSEARCH_VERIFY_CERTS', 'true')))

    exploration_config = ExplorationConfig(min_topic_length=int(os.getenv('MIN_TOPIC_LENGTH', '2')),
                                           max_topic_length=int(os.getenv('MAX_TOPIC_LENGTH', '100')),
                                           max_trail_depth=int(os.getenv('MAX_TRAIL_DEPTH', '5')),
                                           max_connections_per_node=int(os.getenv('MAX_CONNECTIONS_PER_NODE', '3')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'stdio'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_llm=bedrock_llm_config,
                     opensearch=opensearch_config,
                     exploration=exploration_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
