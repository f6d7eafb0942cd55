"""
Configuration management for consul bootstrap
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import ConfigurationMissingError


DEFAULT_POLICY_NAME = "agent"
DEFAULT_POLICY_DESCRIPTION = (
    "Grants read/write access to all node information & "
    "read access to all service information"
)
DEFAULT_POLICY_RULES = """
node_prefix "" {
    policy = "write"
}
service_prefix "" {
    policy = "read"
}
"""
DEFAULT_TOKEN_DESCRIPTION = "Token for cluster agents"

# field name -> environment variable
ENV_VARS = {
    "scheme": "CONSUL_SCHEME",
    "host": "CONSUL_HOST",
    "port": "CONSUL_PORT",
    "datacenter": "CONSUL_DATACENTER",
    "acl_token": "CONSUL_HTTP_TOKEN",
    "consensus_check_interval_ms": "CONSENSUS_CHECK_TIMEOUT_MS",
    "repeat_interval_ms": "REPEAT_TIMEOUT_MS",
    "jitter_ms": "REPEAT_JITTER_MS",
    "request_timeout_s": "CONSUL_REQUEST_TIMEOUT_S",
    "token_accessor_id": "AGENT_TOKEN_ACCESSOR_ID",
    "token_secret_id": "AGENT_TOKEN_SECRET_ID",
    "policy_name": "AGENT_POLICY_NAME",
    "policy_description": "AGENT_POLICY_DESCRIPTION",
    "policy_rules_file": "AGENT_POLICY_RULES_FILE",
    "token_description": "AGENT_TOKEN_DESCRIPTION",
}

REQUIRED_FIELDS = ("host", "acl_token")


class BootstrapConfig(BaseModel):
    """Settings of a single bootstrap run"""
    scheme: str = "http"
    host: Optional[str] = None
    port: int = Field(default=8500, ge=1, le=65535)
    datacenter: str = "dc1"
    acl_token: Optional[str] = None
    consensus_check_interval_ms: int = Field(default=5000, ge=0)
    repeat_interval_ms: int = Field(default=5000, ge=0)
    jitter_ms: int = Field(default=0, ge=0)
    request_timeout_s: float = Field(default=10, gt=0)
    token_accessor_id: Optional[str] = None
    token_secret_id: Optional[str] = None
    policy_name: str = DEFAULT_POLICY_NAME
    policy_description: str = DEFAULT_POLICY_DESCRIPTION
    policy_rules_file: Optional[str] = None
    token_description: str = DEFAULT_TOKEN_DESCRIPTION

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "BootstrapConfig":
        """
        Create configuration from environment variables

        Empty variables count as unset so that defaults still apply.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for field_name, env_name in ENV_VARS.items():
            value = environ.get(env_name)
            if value:
                values[field_name] = value
        return cls(**values)

    @property
    def api_address(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def distribute_tokens(self) -> bool:
        """A preset secret means agents already carry the token in their config"""
        return not self.token_secret_id

    def missing_settings(self) -> List[str]:
        return [ENV_VARS[name] for name in REQUIRED_FIELDS if not getattr(self, name)]

    def require(self) -> "BootstrapConfig":
        """Raise ConfigurationMissingError unless every required setting is present"""
        missing = self.missing_settings()
        if missing:
            raise ConfigurationMissingError(missing)
        return self

    def load_policy_rules(self) -> str:
        """Return the policy rules from policy_rules_file, or the built-in rules"""
        if not self.policy_rules_file:
            return DEFAULT_POLICY_RULES
        path = Path(self.policy_rules_file)
        if not path.is_file():
            raise ConfigurationMissingError(
                [ENV_VARS["policy_rules_file"]],
                f"Policy rules file not found: {self.policy_rules_file}",
            )
        return path.read_text()

    def masked(self) -> Dict[str, Any]:
        """Configuration dump safe to print"""
        data = self.model_dump()
        for secret in ("acl_token", "token_secret_id"):
            if data.get(secret):
                data[secret] = "********"
        return data

    def to_json(self) -> str:
        return json.dumps(self.masked(), indent=2)
