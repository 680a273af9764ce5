"""
Core data structures for GhostComment.

Annotations are produced by the scanner and never mutated afterwards; the
result types are produced once per pipeline run and handed back to the
caller for reporting.
"""

import os
import re
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigError, ErrorKind, GhostCommentError, GitError


@dataclass(frozen=True)
class Annotation:
    """A single prefix-marked line found in a source file."""
    file_path: str       # relative to the scan root, POSIX separators
    line_number: int     # 1-based
    content: str
    prefix: str
    original_line: str   # verbatim line text, checked again before cleaning

    @property
    def location(self) -> str:
        return f"{self.file_path}:{self.line_number}"


@dataclass
class GitContext:
    """Identifies a pull request (GitHub) or merge request (GitLab)."""
    owner: str
    repo: str
    pull_number: int
    commit_sha: str = ""
    base_sha: str = ""

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_repo_string(cls, repository: str, pull_number: int,
                         commit_sha: str = "") -> 'GitContext':
        """
        Build a context from an ``owner/repo`` string.

        GitLab namespaces may be nested (``group/subgroup/project``); everything
        before the last slash is treated as the owner.

        Raises:
            ConfigError: If the repository string is not ``owner/repo``.
        """
        owner, _, repo = (repository or "").strip().strip('/').rpartition('/')
        if not owner or not repo:
            raise ConfigError(f'Repository must be in format "owner/repo", got: {repository!r}')
        return cls(owner=owner, repo=repo, pull_number=int(pull_number),
                   commit_sha=commit_sha)

    @classmethod
    def from_environment(cls, env: Optional[Mapping[str, str]] = None) -> 'GitContext':
        """
        Build a context from hosted CI environment variables.

        Supports GitHub Actions pull_request events and GitLab merge request
        pipelines.

        Args:
            env: Environment mapping. Defaults to ``os.environ``.

        Returns:
            GitContext for the current pull/merge request

        Raises:
            GitError: If no pull/merge request can be identified.
        """
        env = os.environ if env is None else env

        if env.get("GITHUB_ACTIONS") and env.get("GITHUB_REPOSITORY"):
            match = re.match(r"refs/pull/(\d+)/merge", env.get("GITHUB_REF", ""))
            if not match:
                raise GitError("Unable to determine PR number from GITHUB_REF. "
                               "Is this a pull_request workflow?")
            context = cls.from_repo_string(env["GITHUB_REPOSITORY"], int(match.group(1)),
                                           commit_sha=env.get("GITHUB_SHA", ""))
            return context

        if env.get("GITLAB_CI") and env.get("CI_PROJECT_PATH"):
            iid = env.get("CI_MERGE_REQUEST_IID")
            if not iid:
                raise GitError("Unable to determine MR number. "
                               "Is this a merge request pipeline?")
            context = cls.from_repo_string(env["CI_PROJECT_PATH"], int(iid),
                                           commit_sha=env.get("CI_COMMIT_SHA", ""))
            context.base_sha = env.get("CI_MERGE_REQUEST_DIFF_BASE_SHA", "")
            return context

        raise GitError("Not running in a pull/merge request CI context; "
                       "pass the repository and PR number explicitly")


class AttemptStatus(Enum):
    """Terminal and intermediate states of a single post attempt."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    AUTH_FAILED = "auth_failed"
    RATE_LIMITED = "rate_limited"
    RETRY = "retry"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """
    Tagged result of an operation: either a value or a classified error.

    Attributes:
        ok: True when the operation succeeded
        value: Payload on success
        error_kind: Taxonomy kind on failure
        message: Human-readable message on failure
        cause: Lower-level exception, for diagnostics only
        status: Post attempt state, when the outcome describes an attempt
    """
    ok: bool
    value: Any = None
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    cause: Optional[BaseException] = None
    status: Optional[AttemptStatus] = None

    @classmethod
    def success(cls, value: Any = None,
                status: Optional[AttemptStatus] = None) -> 'Outcome':
        return cls(ok=True, value=value, status=status)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str,
                cause: Optional[BaseException] = None,
                status: Optional[AttemptStatus] = None) -> 'Outcome':
        return cls(ok=False, error_kind=kind, message=message, cause=cause, status=status)

    @classmethod
    def from_error(cls, error: GhostCommentError,
                   status: Optional[AttemptStatus] = None) -> 'Outcome':
        return cls.failure(error.kind, error.message, error.cause, status)


@dataclass
class PostError:
    """A failed comment post."""
    annotation: Annotation
    message: str
    code: Optional[ErrorKind] = None


@dataclass
class PlatformPostResult:
    """
    Aggregate result of posting annotations to a review platform.

    ``posted + failed + skipped`` always equals the number of annotations
    submitted.
    """
    posted: int = 0
    failed: int = 0
    skipped: int = 0
    successes: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[PostError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.posted + self.failed + self.skipped


@dataclass
class CleanResult:
    """Result of removing annotations from files."""
    files_processed: int = 0
    comments_removed: int = 0
    modified_files: List[str] = field(default_factory=list)
    error_files: List[str] = field(default_factory=list)
    rolled_back_files: List[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.error_files)


@dataclass
class ValidationResult:
    """Result of a read-only pre-flight check before cleaning."""
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class RunContext:
    """
    Per-run settings passed explicitly to each pipeline stage.

    Attributes:
        working_directory: Root of the tree being scanned and cleaned
        dry_run: Report what would happen without posting or writing
        verbose: Enable debug logging and HTTP tracing
        cancel_event: Set from another thread to stop long operations
    """
    working_directory: Path = field(default_factory=Path.cwd)
    dry_run: bool = False
    verbose: bool = False
    cancel_event: threading.Event = field(default_factory=threading.Event)

    def __post_init__(self):
        self.working_directory = Path(self.working_directory).resolve()
