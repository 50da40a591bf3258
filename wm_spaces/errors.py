"""
Error taxonomy for wm-spaces.

Every failure on the fetch and focus paths is raised as a SpacesError
subclass carrying a structured ErrorCode, so the scheduler and CLI can log
and report failures uniformly.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """
    Error codes for wm-spaces.

    - 1000-1099: Backend command errors
    - 1100-1199: Decode errors
    - 1200-1299: Fetch errors
    - 1300-1399: Provider selection errors
    - 1400-1499: Configuration errors
    """

    # Backend command errors (1000-1099)
    PROCESS_SPAWN_FAILED = 1000
    COMMAND_FAILED = 1001
    COMMAND_TIMEOUT = 1002

    # Decode errors (1100-1199)
    INVALID_JSON = 1100
    UNEXPECTED_SHAPE = 1101

    # Fetch errors (1200-1299)
    PARTIAL_FETCH = 1200

    # Provider selection errors (1300-1399)
    NO_PROVIDER_AVAILABLE = 1300

    # Configuration errors (1400-1499)
    CONFIG_LOAD_FAILED = 1400


class SpacesError(Exception):
    """Base exception for wm-spaces errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        suggestion: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            suggestion: Suggested recovery action
            context: Additional context for debugging
        """
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert error to a JSON-ready dictionary.

        Returns:
            Error dictionary with code, message, suggestion, and context
        """
        result: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.message
        }

        if self.suggestion:
            result["suggestion"] = self.suggestion

        if self.context:
            result["context"] = self.context

        return result


class BackendCommandError(SpacesError):
    """An external window manager command could not be completed."""

    def __init__(self, code: ErrorCode, args: List[str], message: str, **kwargs):
        context = kwargs.pop("context", None) or {}
        context["command"] = args
        super().__init__(code, message, context=context, **kwargs)
        self.command = args


class ProcessSpawnFailure(BackendCommandError):
    """The backend executable is missing, not executable, or failed to spawn."""

    def __init__(self, args: List[str], reason: str):
        super().__init__(
            ErrorCode.PROCESS_SPAWN_FAILED,
            args,
            f"Failed to launch {args[0]}: {reason}",
            suggestion="Check the executable path in the wm-spaces config",
        )


class CommandFailed(BackendCommandError):
    """The backend command ran but exited with a non-zero status."""

    def __init__(self, args: List[str], returncode: int, stderr: str = ""):
        super().__init__(
            ErrorCode.COMMAND_FAILED,
            args,
            f"{args[0]} exited with status {returncode}: {stderr.strip()}",
            context={"returncode": returncode},
        )
        self.returncode = returncode
        self.stderr = stderr


class CommandTimeout(BackendCommandError):
    """The backend command did not finish within the configured timeout."""

    def __init__(self, args: List[str], timeout: float):
        super().__init__(
            ErrorCode.COMMAND_TIMEOUT,
            args,
            f"{args[0]} did not respond within {timeout:.1f}s",
            context={"timeout": timeout},
        )
        self.timeout = timeout


class DecodeFailure(SpacesError):
    """Backend output was not valid JSON or did not match the expected shape."""

    def __init__(self, what: str, reason: str, invalid_json: bool = False):
        super().__init__(
            ErrorCode.INVALID_JSON if invalid_json else ErrorCode.UNEXPECTED_SHAPE,
            f"Could not decode {what}: {reason}",
            context={"query": what},
        )
        self.what = what


class PartialFetchFailure(SpacesError):
    """One of the concurrent queries failed while the other succeeded."""

    def __init__(self, failed_query: str, cause: Exception):
        super().__init__(
            ErrorCode.PARTIAL_FETCH,
            f"{failed_query} query failed: {cause}",
            context={"failed_query": failed_query},
        )
        self.failed_query = failed_query
        self.cause = cause


class NoProviderAvailable(SpacesError):
    """Neither window manager backend is installed and reachable."""

    def __init__(self, tried: List[str]):
        super().__init__(
            ErrorCode.NO_PROVIDER_AVAILABLE,
            f"No window manager backend reachable (tried: {', '.join(tried) or 'none'})",
            suggestion="Install and start yabai or AeroSpace, or fix the paths in the config",
            context={"tried": tried},
        )
        self.tried = tried


class ConfigurationError(SpacesError):
    """Configuration file could not be loaded."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            ErrorCode.CONFIG_LOAD_FAILED,
            f"Failed to load configuration from {path}: {reason}",
            context={"path": path},
        )
