"""
Error taxonomy for GhostComment.

Every failure surfaced to callers carries an ``ErrorKind`` and a
human-readable message. Lower-level causes are chained for diagnostics.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Kinds of failures that can occur during GhostComment operations."""
    CONFIG_ERROR = "CONFIG_ERROR"
    FILE_ERROR = "FILE_ERROR"
    GIT_ERROR = "GIT_ERROR"
    GITHUB_API_ERROR = "GITHUB_API_ERROR"
    GITLAB_API_ERROR = "GITLAB_API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"


class GhostCommentError(Exception):
    """Base error for GhostComment operations."""

    kind = ErrorKind.CONFIG_ERROR

    def __init__(self, message: str, cause: Optional[BaseException] = None,
                 kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if kind is not None:
            self.kind = kind

    def __str__(self) -> str:
        return self.message


class ConfigError(GhostCommentError):
    kind = ErrorKind.CONFIG_ERROR


class FileError(GhostCommentError):
    kind = ErrorKind.FILE_ERROR


class GitError(GhostCommentError):
    kind = ErrorKind.GIT_ERROR


class GitHubApiError(GhostCommentError):
    kind = ErrorKind.GITHUB_API_ERROR


class GitLabApiError(GhostCommentError):
    kind = ErrorKind.GITLAB_API_ERROR


class NetworkError(GhostCommentError):
    kind = ErrorKind.NETWORK_ERROR


class AuthError(GhostCommentError):
    kind = ErrorKind.AUTH_ERROR


class RateLimitError(GhostCommentError):
    kind = ErrorKind.RATE_LIMIT_ERROR


ERROR_CLASSES = {
    ErrorKind.CONFIG_ERROR: ConfigError,
    ErrorKind.FILE_ERROR: FileError,
    ErrorKind.GIT_ERROR: GitError,
    ErrorKind.GITHUB_API_ERROR: GitHubApiError,
    ErrorKind.GITLAB_API_ERROR: GitLabApiError,
    ErrorKind.NETWORK_ERROR: NetworkError,
    ErrorKind.AUTH_ERROR: AuthError,
    ErrorKind.RATE_LIMIT_ERROR: RateLimitError,
}


def error_for(kind: ErrorKind, message: str,
              cause: Optional[BaseException] = None) -> GhostCommentError:
    """Build the taxonomy exception matching ``kind``."""
    return ERROR_CLASSES[kind](message, cause)
