"""Tests for health reporting and logging setup."""

import dataclasses
import logging
import sys
from unittest.mock import MagicMock

from akiliquest.utils.health_check import check_health, get_health_status, get_system_info
from akiliquest.utils.logging_config import _log_stream, get_logger


def make_llm(healthy=True):
    llm = MagicMock()
    llm.model_id = 'test-model'
    llm.health_check.return_value = healthy
    return llm


class TestHealthCheck:

    def test_all_healthy(self, store):
        assert check_health(llm=make_llm(), store=store) is True

    def test_unhealthy_store(self, store, fake_opensearch):
        fake_opensearch.reachable = False
        status = get_health_status(llm=make_llm(), store=store)

        assert status['bedrock_llm'] == {'healthy': True, 'service': 'Amazon Bedrock LLM', 'model': 'test-model'}
        assert status['opensearch']['healthy'] is False
        assert check_health(llm=make_llm(), store=store) is False

    def test_llm_error_is_reported(self, store):
        llm = make_llm()
        llm.health_check.side_effect = RuntimeError('credentials expired')
        status = get_health_status(llm=llm, store=store)
        assert status['bedrock_llm'] == {'healthy': False, 'service': 'Amazon Bedrock LLM', 'error': 'credentials expired'}

    def test_system_info(self, store):
        info = get_system_info(llm=make_llm(), store=store)
        assert info['service_name'] == 'AkiliQuest'
        assert set(info['health_status']) == {'bedrock_llm', 'opensearch'}
        assert 'max_trail_depth' in info['configuration']


class TestLogging:

    def test_stdio_transport_logs_to_stderr(self, app_config):
        assert _log_stream(app_config) is sys.stderr

    def test_network_transport_logs_to_stdout(self, app_config):
        cfg = dataclasses.replace(app_config, mcp=dataclasses.replace(app_config.mcp, transport='http'))
        assert _log_stream(cfg) is sys.stdout

    def test_get_logger_level(self, app_config):
        assert get_logger('akiliquest.test', app_config).level == logging.DEBUG
        bogus = dataclasses.replace(app_config, log_level='loud')
        assert get_logger('akiliquest.test', bogus).level == logging.INFO
