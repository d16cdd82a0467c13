"""Custom exception hierarchy for AI-Pods.

All aipods-specific exceptions inherit from AiPodsError, so the CLI can
turn any of them into a non-zero exit with a single except clause.
"""

from __future__ import annotations


class AiPodsError(Exception):
    """Base exception for all AI-Pods errors."""


class InvalidNameError(AiPodsError):
    """Raised when a service name is empty or not a safe path segment."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid service name {name!r}: {reason}")


class AlreadyExistsError(AiPodsError):
    """Raised when registering a service that is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Service {name!r} already exists")


class ServiceNotFoundError(AiPodsError):
    """Raised when a command names a service that is not registered."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        self.available = available or []
        listing = ", ".join(self.available) or "none"
        super().__init__(f"Service {name!r} not found. Available: {listing}")


class IOFailureError(AiPodsError):
    """Raised when creating a directory or writing a file fails."""


class PortRangeExhaustedError(AiPodsError):
    """Raised when the next port block would run past the last TCP port."""

    def __init__(self, base: int) -> None:
        self.base = base
        super().__init__(f"No port block available: base {base} exceeds the TCP port range")


class ConfigurationError(AiPodsError):
    """Raised for invalid configuration or missing required settings."""


class RuntimeCommandError(AiPodsError):
    """Raised when an external command (docker, compose, pip) fails."""

    def __init__(self, command: list[str], returncode: int, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"{' '.join(command)} failed (exit {returncode}){detail}")
