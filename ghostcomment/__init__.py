"""
Post transient developer annotations as review comments, then strip them.

GhostComment finds prefix-marked lines (``//_gc_ explain this``) in a source
tree, publishes them as inline comments on a GitHub pull request or a GitLab
merge request, and removes them from the working tree afterwards.

Typical usage example:

from ghostcomment import Scanner, Cleaner, ScanConfig
annotations = Scanner().scan(ScanConfig(), ".")
Cleaner().clean(annotations, root_directory=".")
"""

__version__ = "1.0.0"
__author__ = "GhostComment Maintainers"

from .src.cleaner import Cleaner, CleanOptions
from .src.config import Config, ConfigManager, ScanConfig
from .src.errors import ErrorKind, GhostCommentError
from .src.models import Annotation, CleanResult, GitContext, PlatformPostResult
from .src.scanner import Scanner

__all__ = [
    "Annotation",
    "Cleaner",
    "CleanOptions",
    "CleanResult",
    "Config",
    "ConfigManager",
    "ErrorKind",
    "GhostCommentError",
    "GitContext",
    "PlatformPostResult",
    "ScanConfig",
    "Scanner",
]
