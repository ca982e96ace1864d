"""
Exceptions raised while preparing, attaching and decommissioning nodes.
"""
from typing import Optional


class NodeCtlError(Exception):
    """Base exception for nodectl errors."""
    pass


class ConfigError(NodeCtlError):
    """Exception raised when required configuration is missing or invalid."""
    pass


class ExecutorError(NodeCtlError):
    """Exception raised when a command executor cannot be created or used."""
    pass


class CommandError(ExecutorError):
    """Exception raised when a command exits with a non-zero status."""

    def __init__(self, command: str, exit_code: int, output: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.output = output
        super().__init__(f"Command '{command}' failed with exit code {exit_code}")


class DetectionError(NodeCtlError):
    """Exception raised when the host OS is unreadable or unsupported."""
    pass


class PreconditionError(NodeCtlError):
    """Exception raised when the host is not in a state that allows the run to proceed."""
    pass


class DownloadError(NodeCtlError):
    """Exception raised when the hostagent installer cannot be located or fetched."""
    pass


class InstallerExecutionError(NodeCtlError):
    """Exception raised when the hostagent installer exits with a non-zero status."""

    def __init__(self, exit_code: int, message: str):
        self.exit_code = exit_code
        super().__init__(f"error while running installer script: {message}")


class RegistrationError(NodeCtlError):
    """Exception raised when no host ID is produced by the installer."""
    pass


class AuthenticationError(NodeCtlError):
    """Exception raised when the control plane rejects the supplied credentials."""
    pass


class AuthorizationError(NodeCtlError):
    """Exception raised when a host cannot be authorized on the control plane."""
    pass


class ClusterOperationError(NodeCtlError):
    """Exception raised when a detach, deauthorize or attach call fails."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(message)


class ResolutionError(NodeCtlError):
    """Exception raised when an IP address cannot be resolved to a host ID."""
    pass


class APIError(NodeCtlError):
    """Exception raised for unexpected control-plane responses."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
