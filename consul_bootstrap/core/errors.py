"""
Error kinds raised while bootstrapping agent tokens
"""
from typing import List, Optional


class ConsulBootstrapError(Exception):
    """Base class for every error raised by consul_bootstrap"""


class ApiUnreachableError(ConsulBootstrapError):
    """The Consul API could not be reached or did not answer with 2xx"""


class LeaderNotDeclaredError(ConsulBootstrapError):
    """The cluster has not elected a leader yet"""


class PeersNotDeclaredError(ConsulBootstrapError):
    """The cluster has not published its raft peer set yet"""


class ApiResponseError(ConsulBootstrapError):
    """The Consul API answered with a non-2xx status or an unreadable body"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class FatalBootstrapError(ConsulBootstrapError):
    """
    Errors that must never be retried.

    The retry engine re-raises these immediately instead of looping.
    """


class ConfigurationMissingError(FatalBootstrapError):
    """Required settings are missing or unusable"""

    def __init__(self, missing: List[str], message: Optional[str] = None):
        self.missing = list(missing)
        super().__init__(message or f"Missing required configuration: {', '.join(self.missing)}")
