"""
Amazon Bedrock LLM client wrapper with error handling.
"""

from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockLLMConfig, ConfigurationError
from .logging_config import get_logger

logger = get_logger(__name__)


class BedrockLLMError(Exception):
    """Custom exception for Bedrock LLM errors."""
    pass


class BedrockLLM:
    """Amazon Bedrock LLM client using the Converse API."""

    def __init__(self, config: BedrockLLMConfig, runtime_client=None):
        """
        Initialize Bedrock LLM client.

        Args:
            config: BedrockLLMConfig instance with connection parameters
            runtime_client: Pre-built bedrock-runtime client (tests, custom sessions)

        Raises:
            ConfigurationError: If the model id or region is not configured
        """
        if not config.model_id:
            raise ConfigurationError('BEDROCK_LLM_MODEL_ID environment variable is required')
        if not config.region:
            raise ConfigurationError('BEDROCK_LLM_AWS_REGION environment variable is required')

        self.config = config
        self.model_id = config.model_id

        if runtime_client is None:
            # Socket timeout slightly above the application timeout so abandoned calls still end
            read_timeout = max(1, int(config.timeout_ms / 1000) + 5)
            runtime_client = boto3.client('bedrock-runtime',
                                          region_name=config.region,
                                          config=BotoConfig(connect_timeout=10,
                                                            read_timeout=read_timeout,
                                                            retries={'max_attempts': 0}))
        self.bedrock_runtime = runtime_client

        logger.info(f'Initialized Bedrock LLM client with model: {self.model_id} ({config.region})')

    def generate_response(self,
                          messages: List[Dict[str, Any]],
                          system_prompt: Optional[str] = None,
                          max_tokens: Optional[int] = None,
                          temperature: Optional[float] = None,
                          stop_sequences: Optional[List[str]] = None) -> Tuple[str, Optional[Dict[str, Any]]]:
        """
        Generate response using Bedrock LLM.

        Args:
            messages: List of message dictionaries in Bedrock format
            system_prompt: System prompt for the conversation
            max_tokens: Maximum tokens to generate (uses config default if None)
            temperature: Temperature for generation (uses config default if None)
            stop_sequences: Stop sequences for generation

        Returns:
            Tuple of (response_text, invoke_metrics)

        Raises:
            BedrockLLMError: If the call fails or returns no text
        """
        inf_params = {
            'maxTokens': max_tokens if max_tokens is not None else self.config.max_tokens,
            'temperature': temperature if temperature is not None else self.config.temperature,
        }
        if stop_sequences:
            inf_params['stopSequences'] = stop_sequences

        request = {'modelId': self.model_id, 'messages': messages, 'inferenceConfig': inf_params}
        if system_prompt:
            request['system'] = [{'text': system_prompt}]

        try:
            logger.debug(f'Bedrock LLM request to {self.model_id} (maxTokens={inf_params["maxTokens"]})')
            response = self.bedrock_runtime.converse(**request)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f'Bedrock LLM call failed: {e}')
            raise BedrockLLMError(f'Bedrock LLM call failed: {e}')
        except Exception as e:
            logger.error(f'Unexpected error in Bedrock LLM: {e}')
            raise BedrockLLMError(f'Unexpected Bedrock LLM error: {e}')

        content = response.get('output', {}).get('message', {}).get('content', [])
        msg = ''.join(block.get('text', '') for block in content)
        if not msg.strip():
            raise BedrockLLMError(f'Bedrock LLM returned no text (stopReason={response.get("stopReason")})')

        invoke_metrics = None
        if 'usage' in response or 'metrics' in response:
            invoke_metrics = {**response.get('usage', {}), **response.get('metrics', {})}

        logger.debug(f'Bedrock LLM response generated successfully (length: {len(msg)})')
        return msg, invoke_metrics

    def generate_text(self, prompt: str, max_tokens: Optional[int] = None, temperature: Optional[float] = None) -> str:
        """Send a single user prompt and return the text of the reply."""
        messages = [{'role': 'user', 'content': [{'text': prompt}]}]
        text, _ = self.generate_response(messages=messages, max_tokens=max_tokens, temperature=temperature)
        return text

    def health_check(self) -> bool:
        """
        Perform a health check on the Bedrock LLM service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            response = self.generate_text("Respond with just 'OK'.", max_tokens=10, temperature=0.0)
            return len(response.strip()) > 0

        except Exception as e:
            logger.error(f'Bedrock LLM health check failed: {e}')
            return False
