"""Tests for environment-driven configuration."""

from akiliquest.utils.config import load_config


class TestLoadConfig:

    def test_defaults(self, monkeypatch):
        for name in ('OPENSEARCH_URL', 'BEDROCK_LLM_TIMEOUT_MS', 'OPENSEARCH_INDEX_PREFIX', 'MAX_TRAIL_DEPTH', 'MCP_TRANSPORT'):
            monkeypatch.delenv(name, raising=False)

        cfg = load_config()

        assert cfg.opensearch.url is None
        assert cfg.opensearch.index_prefix == 'akiliquest_'
        assert cfg.bedrock_llm.timeout_ms == 30000
        assert cfg.exploration.max_trail_depth == 5
        assert cfg.mcp.transport == 'stdio'

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv('OPENSEARCH_URL', 'https://search.example.com:443')
        monkeypatch.setenv('OPENSEARCH_AWS_AUTH', 'True')
        monkeypatch.setenv('OPENSEARCH_VERIFY_CERTS', 'no')
        monkeypatch.setenv('BEDROCK_LLM_MODEL_ID', 'amazon.nova-lite-v1:0')
        monkeypatch.setenv('BEDROCK_LLM_TIMEOUT_MS', '1500')
        monkeypatch.setenv('MAX_CONNECTIONS_PER_NODE', '2')

        cfg = load_config()

        assert cfg.opensearch.url == 'https://search.example.com:443'
        assert cfg.opensearch.aws_auth is True
        assert cfg.opensearch.verify_certs is False
        assert cfg.bedrock_llm.model_id == 'amazon.nova-lite-v1:0'
        assert cfg.bedrock_llm.timeout_ms == 1500
        assert cfg.exploration.max_connections_per_node == 2
