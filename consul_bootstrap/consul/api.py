"""
HTTP plumbing shared by the Consul API clients
"""
import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp

from ..core.errors import ApiResponseError, ApiUnreachableError
from ..utils.logger import get_logger

DEFAULT_REQUEST_TIMEOUT = 10  # seconds

logger = get_logger(__name__)


def consul_headers(auth_token: str, with_body: bool = False) -> Dict[str, str]:
    headers = {"X-Consul-Token": auth_token or ""}
    if with_body:
        headers["Content-Type"] = "application/json"
    return headers


def client_timeout(timeout: Optional[float]) -> aiohttp.ClientTimeout:
    return aiohttp.ClientTimeout(total=timeout or DEFAULT_REQUEST_TIMEOUT)


async def consul_request(
    method: str,
    url: str,
    auth_token: str,
    failure_message: str,
    payload: Optional[Dict[str, Any]] = None,
    expect_json: bool = True,
    timeout: Optional[float] = None,
) -> Any:
    """
    Send one request to a Consul API and decode the answer

    Args:
        method: HTTP method
        url: Full request URL
        auth_token: Value of the X-Consul-Token header
        failure_message: Prefix of the error message, e.g. 'Failed to create an agent policy.'
        payload: JSON body (optional)
        expect_json: Decode the response body as JSON
        timeout: Total request timeout in seconds

    Returns:
        Decoded JSON body, or None when expect_json is False

    Raises:
        ApiResponseError: non-2xx status or undecodable body
        ApiUnreachableError: transport failure or timeout
    """
    logger.debug(f"{method} {url}")
    try:
        async with aiohttp.ClientSession(timeout=client_timeout(timeout)) as session:
            async with session.request(
                method,
                url,
                json=payload,
                headers=consul_headers(auth_token, with_body=payload is not None),
            ) as response:
                if not 200 <= response.status < 300:
                    raise ApiResponseError(
                        f"{failure_message} Reason: API Response status: {response.reason}",
                        status=response.status,
                    )
                if not expect_json:
                    return None
                text = await response.text()

    except aiohttp.ClientError as e:
        raise ApiUnreachableError(f"{failure_message} Reason: {str(e) or type(e).__name__}") from e
    except asyncio.TimeoutError as e:
        raise ApiUnreachableError(f"{failure_message} Reason: request timed out") from e

    try:
        return json.loads(text)
    except ValueError as e:
        raise ApiResponseError(f"{failure_message} Reason: invalid JSON response") from e
