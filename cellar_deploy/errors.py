"""
Exceptions raised by the deployer.
"""
from typing import Optional


class CellarDeployError(Exception):
    """Base class for every fatal deployer error."""


class ConfigurationError(CellarDeployError, ValueError):
    """Raised when a sync configuration is incomplete or invalid."""


class ScanError(CellarDeployError):
    """Raised when the local folder cannot be enumerated."""


class ClearError(CellarDeployError):
    """Raised when the bucket cannot be cleared."""


class DeployAborted(CellarDeployError):
    """Raised when a deployment stops before reaching the done state.

    Args:
        state: The deployment state in which the run failed
        message: Human readable reason
    """

    def __init__(self, state, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.state = state
        self.cause = cause
