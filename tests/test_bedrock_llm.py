"""Tests for the Bedrock Converse wrapper."""

import dataclasses
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from akiliquest.utils.bedrock_llm import BedrockLLM, BedrockLLMError
from akiliquest.utils.config import ConfigurationError


def converse_reply(text, stop_reason='end_turn'):
    return {
        'output': {
            'message': {
                'role': 'assistant',
                'content': [{
                    'text': text
                }]
            }
        },
        'stopReason': stop_reason,
        'usage': {
            'inputTokens': 12,
            'outputTokens': 5
        },
        'metrics': {
            'latencyMs': 250
        }
    }


@pytest.fixture
def runtime():
    return MagicMock()


@pytest.fixture
def llm(app_config, runtime):
    return BedrockLLM(app_config.bedrock_llm, runtime_client=runtime)


class TestBedrockLLM:

    def test_requires_model_id(self, app_config):
        with pytest.raises(ConfigurationError, match='BEDROCK_LLM_MODEL_ID'):
            BedrockLLM(dataclasses.replace(app_config.bedrock_llm, model_id=''), runtime_client=MagicMock())

    def test_requires_region(self, app_config):
        with pytest.raises(ConfigurationError, match='BEDROCK_LLM_AWS_REGION'):
            BedrockLLM(dataclasses.replace(app_config.bedrock_llm, region=None), runtime_client=MagicMock())

    def test_generate_response(self, llm, runtime):
        runtime.converse.return_value = converse_reply('Hello')

        text, metrics = llm.generate_response([{'role': 'user', 'content': [{'text': 'Hi'}]}], system_prompt='Be brief')

        assert text == 'Hello'
        assert metrics == {'inputTokens': 12, 'outputTokens': 5, 'latencyMs': 250}
        request = runtime.converse.call_args.kwargs
        assert request['modelId'] == 'test-model'
        assert request['system'] == [{'text': 'Be brief'}]
        assert request['inferenceConfig'] == {'maxTokens': 2048, 'temperature': 0.7}

    def test_generate_text_overrides(self, llm, runtime):
        runtime.converse.return_value = converse_reply('{"isValid": true}')

        assert llm.generate_text('Check this', max_tokens=256, temperature=0.1) == '{"isValid": true}'

        request = runtime.converse.call_args.kwargs
        assert request['messages'] == [{'role': 'user', 'content': [{'text': 'Check this'}]}]
        assert request['inferenceConfig'] == {'maxTokens': 256, 'temperature': 0.1}
        assert 'system' not in request

    def test_client_error(self, llm, runtime):
        runtime.converse.side_effect = ClientError({'Error': {'Code': 'ThrottlingException', 'Message': 'Slow down'}}, 'Converse')
        with pytest.raises(BedrockLLMError, match='ThrottlingException'):
            llm.generate_text('Hi')

    def test_empty_reply(self, llm, runtime):
        runtime.converse.return_value = converse_reply('  ', stop_reason='max_tokens')
        with pytest.raises(BedrockLLMError, match='max_tokens'):
            llm.generate_text('Hi')

    def test_health_check(self, llm, runtime):
        runtime.converse.return_value = converse_reply('OK')
        assert llm.health_check() is True
        runtime.converse.side_effect = RuntimeError('no network')
        assert llm.health_check() is False
