"""
Idempotent provisioning of the agent ACL policy and token

Both operations look the resource up before creating it, so a bootstrap run
can be repeated any number of times without producing duplicates.
"""
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from ..core.config import (
    DEFAULT_POLICY_DESCRIPTION,
    DEFAULT_POLICY_NAME,
    DEFAULT_POLICY_RULES,
    DEFAULT_TOKEN_DESCRIPTION,
)
from ..core.errors import ApiResponseError
from ..core.models import AgentPolicy, AgentToken
from ..core.repeat import repeat_until_success
from ..utils.logger import get_logger
from .api import consul_request

logger = get_logger(__name__)


def _expect_list(entries: Any, failure_message: str) -> Iterable[dict]:
    if not isinstance(entries, list):
        raise ApiResponseError(f"{failure_message} Reason: expected a list")
    return [entry for entry in entries if isinstance(entry, dict)]


def _parse(model, data: Any, failure_message: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ApiResponseError(f"{failure_message} Reason: unexpected response body") from e


async def ensure_agent_policy(
    consul_api: str,
    consul_datacenter: str,
    auth_token: str,
    name: str = DEFAULT_POLICY_NAME,
    description: str = DEFAULT_POLICY_DESCRIPTION,
    rules: str = DEFAULT_POLICY_RULES,
    timeout: Optional[float] = None,
) -> AgentPolicy:
    """
    Return the policy called `name`, creating it first if it does not exist

    An existing policy is returned as-is, its rules are not compared or updated.
    """
    check_failure = "Failed to check agent policy state."
    policies = await consul_request(
        "GET", f"{consul_api}/v1/acl/policies", auth_token, check_failure, timeout=timeout
    )
    for policy in _expect_list(policies, check_failure):
        if policy.get("Name") == name:
            logger.info(f"Agent policy '{name}' already exists with ID {policy.get('ID')}")
            return _parse(AgentPolicy, policy, check_failure)

    create_failure = "Failed to create an agent policy."
    agent_policy = {
        "Name": name,
        "Description": description,
        "Rules": rules,
        "Datacenters": [consul_datacenter],
    }
    created = await consul_request(
        "PUT", f"{consul_api}/v1/acl/policy", auth_token, create_failure,
        payload=agent_policy, timeout=timeout,
    )
    policy = _parse(AgentPolicy, created, create_failure)
    logger.info(f"Created agent policy '{policy.name}' with ID {policy.id}")
    return policy


async def find_agent_token(
    consul_api: str,
    auth_token: str,
    accessor_id: str,
    timeout: Optional[float] = None,
) -> Optional[AgentToken]:
    check_failure = "Failed to check agent token state."
    tokens = await consul_request(
        "GET", f"{consul_api}/v1/acl/tokens", auth_token, check_failure, timeout=timeout
    )
    for token in _expect_list(tokens, check_failure):
        if token.get("AccessorID") == accessor_id:
            return _parse(AgentToken, token, check_failure)
    return None


async def ensure_agent_token(
    consul_api: str,
    auth_token: str,
    token_accessor_id: Optional[str],
    token_secret_id: Optional[str],
    agent_policy: AgentPolicy,
    description: str = DEFAULT_TOKEN_DESCRIPTION,
    timeout: Optional[float] = None,
) -> AgentToken:
    """
    Return the agent token, creating it when it cannot be found

    Args:
        consul_api: Base URL of the Consul API
        auth_token: Management token
        token_accessor_id: Accessor ID of a token created by an earlier run.
            Without it a new token is created on every call.
        token_secret_id: Secret to give a newly created token. Consul
            generates one when omitted.
        agent_policy: Policy the new token is linked to
        description: Description of a newly created token

    Returns:
        The existing token unchanged, or the token Consul just created
    """
    if token_accessor_id:
        existing = await find_agent_token(consul_api, auth_token, token_accessor_id, timeout)
        if existing is not None:
            logger.info(f"Agent token {existing.accessor_id} already exists")
            return existing

    agent_token = {
        "Description": description,
        "Policies": [{"ID": agent_policy.id}],
    }
    if token_accessor_id:
        # Reuse the requested accessor so the next run finds this token
        agent_token["AccessorID"] = token_accessor_id
    if token_secret_id:
        agent_token["SecretID"] = token_secret_id

    create_failure = "Failed to create agent token."
    created = await consul_request(
        "PUT", f"{consul_api}/v1/acl/token", auth_token, create_failure,
        payload=agent_token, timeout=timeout,
    )
    token = _parse(AgentToken, created, create_failure)
    logger.info(f"Created agent token {token.accessor_id} linked to policy {agent_policy.id}")
    return token


async def repeat_until_ensure_agent_policy(
    consul_api: str,
    consul_datacenter: str,
    auth_token: str,
    repeat_interval_ms: int,
    name: str = DEFAULT_POLICY_NAME,
    description: str = DEFAULT_POLICY_DESCRIPTION,
    rules: str = DEFAULT_POLICY_RULES,
    timeout: Optional[float] = None,
    jitter_ms: int = 0,
) -> AgentPolicy:
    async def ensure():
        return await ensure_agent_policy(
            consul_api, consul_datacenter, auth_token, name, description, rules, timeout
        )

    return await repeat_until_success("Create consul agent policy", repeat_interval_ms, ensure, jitter_ms=jitter_ms)


async def repeat_until_ensure_agent_token(
    consul_api: str,
    auth_token: str,
    token_accessor_id: Optional[str],
    token_secret_id: Optional[str],
    agent_policy: AgentPolicy,
    repeat_interval_ms: int,
    description: str = DEFAULT_TOKEN_DESCRIPTION,
    timeout: Optional[float] = None,
    jitter_ms: int = 0,
) -> AgentToken:
    async def ensure():
        return await ensure_agent_token(
            consul_api, auth_token, token_accessor_id, token_secret_id, agent_policy, description, timeout
        )

    return await repeat_until_success("Create consul agent token", repeat_interval_ms, ensure, jitter_ms=jitter_ms)
