"""Core functionality modules."""

from .cleaner import Cleaner, CleanOptions, list_backups
from .config import Config, ConfigManager, ScanConfig, PlatformConfig, CleanConfig
from .errors import ErrorKind, GhostCommentError
from .github_client import GitHubClient
from .gitlab_client import GitLabClient
from .pipeline import CleanPolicy, Pipeline, PipelineReport
from .scanner import Scanner

__all__ = [
    # Cleaner
    "Cleaner",
    "CleanOptions",
    "list_backups",
    # Config
    "Config",
    "ConfigManager",
    "ScanConfig",
    "PlatformConfig",
    "CleanConfig",
    # Errors
    "ErrorKind",
    "GhostCommentError",
    # Clients
    "GitHubClient",
    "GitLabClient",
    # Pipeline
    "CleanPolicy",
    "Pipeline",
    "PipelineReport",
    # Scanner
    "Scanner",
]
