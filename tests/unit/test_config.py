"""
Test configuration loading and validation
"""
import pytest
import tempfile
import os
from pydantic import ValidationError
from consul_bootstrap.core.config import (
    BootstrapConfig,
    DEFAULT_POLICY_RULES,
    DEFAULT_TOKEN_DESCRIPTION,
)
from consul_bootstrap.core.errors import ConfigurationMissingError, FatalBootstrapError


class TestBootstrapConfig:
    """Test configuration management"""

    def test_defaults(self):
        """Test the defaults match a stock Consul deployment"""
        config = BootstrapConfig(host="consul.local", acl_token="root")

        assert config.scheme == "http"
        assert config.port == 8500
        assert config.datacenter == "dc1"
        assert config.consensus_check_interval_ms == 5000
        assert config.policy_name == "agent"
        assert config.token_description == DEFAULT_TOKEN_DESCRIPTION
        assert config.api_address == "http://consul.local:8500"
        assert config.distribute_tokens is True

    def test_from_env(self):
        """Test creating a configuration from environment variables"""
        config = BootstrapConfig.from_env({
            "CONSUL_SCHEME": "https",
            "CONSUL_HOST": "10.0.0.5",
            "CONSUL_PORT": "8501",
            "CONSUL_DATACENTER": "eu-west",
            "CONSUL_HTTP_TOKEN": "management",
            "CONSENSUS_CHECK_TIMEOUT_MS": "250",
            "AGENT_TOKEN_SECRET_ID": "preset-secret",
            "AGENT_POLICY_NAME": "",
        })

        assert config.api_address == "https://10.0.0.5:8501"
        assert config.datacenter == "eu-west"
        assert config.acl_token == "management"
        assert config.consensus_check_interval_ms == 250
        assert config.policy_name == "agent"
        assert config.distribute_tokens is False

    def test_require_lists_every_missing_setting(self):
        """Test that validation reports all missing settings at once"""
        config = BootstrapConfig.from_env({})

        with pytest.raises(ConfigurationMissingError) as excinfo:
            config.require()

        assert excinfo.value.missing == ["CONSUL_HOST", "CONSUL_HTTP_TOKEN"]
        assert isinstance(excinfo.value, FatalBootstrapError)
        assert "CONSUL_HOST" in str(excinfo.value)

    def test_invalid_port(self):
        """Test that out of range ports are rejected"""
        with pytest.raises(ValidationError):
            BootstrapConfig(host="consul", port=70000)

    def test_policy_rules_file(self):
        """Test loading policy rules from a file"""
        assert BootstrapConfig().load_policy_rules() == DEFAULT_POLICY_RULES

        with tempfile.NamedTemporaryFile(mode='w', suffix='.hcl', delete=False) as f:
            f.write('node_prefix "web-" { policy = "write" }')

        try:
            config = BootstrapConfig(policy_rules_file=f.name)
            assert config.load_policy_rules() == 'node_prefix "web-" { policy = "write" }'
        finally:
            os.unlink(f.name)

        with pytest.raises(ConfigurationMissingError):
            BootstrapConfig(policy_rules_file=f.name).load_policy_rules()

    def test_masked_dump_hides_secrets(self):
        """Test that printed configuration never shows tokens"""
        config = BootstrapConfig(host="consul", acl_token="root-token", token_secret_id="s3cret")

        dumped = config.to_json()

        assert "root-token" not in dumped
        assert "s3cret" not in dumped
        assert config.masked()["host"] == "consul"


if __name__ == '__main__':
    pytest.main([__file__])
