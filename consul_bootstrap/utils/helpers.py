"""
Utility functions for addressing Consul nodes
"""
from urllib.parse import quote


def create_consul_api_address(scheme: str, host: str, port) -> str:
    """
    Build the base URL of a Consul HTTP API

    Args:
        scheme: 'http' or 'https'
        host: Host name or IP address
        port: API port

    Returns:
        Address in the form scheme://host:port
    """
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"{scheme}://{host}:{port}"


def strip_port(address: str) -> str:
    """
    Remove the trailing ':port' from a raft address

    Args:
        address: Address such as '10.0.0.1:8300' or '[::1]:8300'

    Returns:
        Host part only; addresses without a port are returned unchanged
    """
    if address.startswith("["):
        closing = address.find("]")
        if closing != -1:
            return address[1:closing]
        return address

    # A bare IPv6 address has several colons and no port
    if address.count(":") != 1:
        return address

    host, _, port = address.rpartition(":")
    if port.isdigit():
        return host
    return address


def datacenter_query(datacenter: str) -> str:
    """Query string selecting a datacenter"""
    return f"dc={quote(datacenter, safe='')}"
