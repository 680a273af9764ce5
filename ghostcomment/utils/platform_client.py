"""
Review platform client base for posting ghost comments.

Provides the shared request plumbing, the sequential post loop and the
per-attempt classification used by the GitHub and GitLab clients, with
client selection via Factory pattern.

Each comment post is a small state machine:

    Pending -> Success | Skipped | AuthFailed | RateLimited | Failed
    Pending -> Retry -> Pending   (transient 5xx, bounded by max_retries)
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from ..src import constants
from ..src.errors import AuthError, ConfigError, ErrorKind, GhostCommentError, NetworkError
from ..src.models import (
    Annotation,
    AttemptStatus,
    GitContext,
    Outcome,
    PlatformPostResult,
    PostError,
)
from .logger_setup import get_logger
from .retry import run_with_backoff, wait

logger = get_logger(__name__)


def response_json(response: requests.Response) -> Any:
    """Decode a JSON body, returning an empty dict when there is none."""
    try:
        return response.json()
    except ValueError:
        return {}


class BasePlatformClient(ABC):
    """Base class for review platform clients."""

    platform_name = "Platform"
    noun = "comment"
    default_base_url = ""
    default_request_delay = 0.0
    api_error_kind = ErrorKind.NETWORK_ERROR

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: float = constants.REQUEST_TIMEOUT,
        max_retries: int = constants.MAX_RETRY_ATTEMPTS,
        retry_base_delay: float = constants.RETRY_BASE_DELAY,
        request_delay: Optional[float] = None,
        debug: bool = False,
        session: Optional[requests.Session] = None,
        cancel_event: Optional[threading.Event] = None
    ):
        """
        Initialize the client.

        Args:
            token: Bearer token for the platform API
            base_url: API root; the platform default when omitted
            timeout: Per-request timeout in seconds
            max_retries: Maximum attempts for a transient failure
            retry_base_delay: Delay before the first retry, in seconds
            request_delay: Pause between consecutive comment posts, in seconds
            debug: Log every request and response
            session: Pre-built requests session (tests inject fakes here)
            cancel_event: Stops retries and remaining posts when set

        Raises:
            AuthError: If no token is given.
        """
        if not token:
            raise AuthError(f"{self.platform_name} token is required")

        self.base_url = self._normalize_base_url(base_url or self.default_base_url)
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_base_delay = retry_base_delay
        self.request_delay = self.default_request_delay if request_delay is None else request_delay
        self.debug = debug
        self.cancel_event = cancel_event

        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "User-Agent": constants.USER_AGENT,
        })
        self.session.headers.update(self._default_headers())

    def _normalize_base_url(self, base_url: str) -> str:
        return base_url.rstrip('/')

    def _default_headers(self) -> Dict[str, str]:
        return {}

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Send one HTTP request.

        Raises:
            NetworkError: If the request could not be completed.
        """
        url = f"{self.base_url}{path}"
        if self.debug:
            logger.debug(f"{self.platform_name} API Request: {method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise NetworkError(f"Network error during {method} {path}: {e}", e) from e
        if self.debug:
            logger.debug(f"{self.platform_name} API Response: {response.status_code} {response.reason}")
        return response

    def test_connection(self):
        """
        Check that the API is reachable and the token is valid.

        Raises:
            AuthError: If the token is invalid or lacks permissions.
            NetworkError: If the API cannot be reached.
        """
        try:
            response = self._request("GET", "/user")
        except NetworkError as e:
            raise NetworkError(f"Failed to connect to {self.platform_name} API", e.cause) from e

        if response.status_code == 401:
            raise AuthError(f"{self.platform_name} token is invalid or expired")
        if response.status_code == 403:
            raise AuthError(f"{self.platform_name} token does not have sufficient permissions")
        if not response.ok:
            raise NetworkError(
                f"Failed to connect to {self.platform_name} API: "
                f"HTTP {response.status_code} {response.reason}"
            )

    def format_body(self, annotation: Annotation) -> str:
        """Wrap annotation content in the machine-posted comment marker."""
        return constants.COMMENT_TEMPLATE.format(content=annotation.content)

    def format_error(self, response: requests.Response) -> str:
        """Build ``HTTP <status>: <reason> - <message> (<details>)`` for a failed call."""
        message = f"HTTP {response.status_code}: {response.reason}"
        detail = self._error_detail(response_json(response))
        if detail:
            message += f" - {detail}"
        return message

    @abstractmethod
    def _error_detail(self, data: Any) -> str:
        """Extract the platform's error message and field details."""

    @abstractmethod
    def _prepare(self, context: GitContext) -> Any:
        """Resolve everything needed to post (commit SHA, project ID, ...)."""

    @abstractmethod
    def _send(self, annotation: Annotation, body: str, target: Any) -> requests.Response:
        """Send one comment creation request."""

    @abstractmethod
    def _classify_platform(self, response: requests.Response,
                           annotation: Annotation) -> Optional[Outcome]:
        """Platform-specific classification of a failed response, or None."""

    @abstractmethod
    def _describe_target(self, context: GitContext) -> str:
        """Human-readable reference such as ``PR #12`` or ``MR !12``."""

    def _classify(self, response: requests.Response, annotation: Annotation) -> Outcome:
        """Map one response onto the attempt state machine."""
        status = response.status_code
        if 200 <= status < 300:
            return Outcome.success(response_json(response), AttemptStatus.SUCCESS)

        outcome = self._classify_platform(response, annotation)
        if outcome is not None:
            return outcome

        if status == 401:
            return Outcome.failure(ErrorKind.AUTH_ERROR,
                                   f"{self.platform_name} token is invalid or expired",
                                   status=AttemptStatus.AUTH_FAILED)
        if status == 429:
            return Outcome.failure(ErrorKind.RATE_LIMIT_ERROR,
                                   f"{self.platform_name} API rate limit exceeded",
                                   status=AttemptStatus.RATE_LIMITED)
        if status in constants.TRANSIENT_STATUS_CODES:
            return Outcome.failure(self.api_error_kind, self.format_error(response),
                                   status=AttemptStatus.RETRY)
        return Outcome.failure(self.api_error_kind, self.format_error(response),
                               status=AttemptStatus.FAILED)

    def _attempt(self, annotation: Annotation, body: str, target: Any) -> Outcome:
        try:
            response = self._send(annotation, body, target)
        except GhostCommentError as e:
            return Outcome.from_error(e, AttemptStatus.FAILED)
        return self._classify(response, annotation)

    def post_single(self, annotation: Annotation, target: Any) -> Outcome:
        """
        Post one comment, retrying transient failures with exponential backoff.

        Returns:
            Outcome whose status is terminal (never RETRY)
        """
        body = self.format_body(annotation)

        def on_retry(attempt: int, delay: float, outcome: Outcome):
            logger.warning(
                f"{outcome.message} posting {annotation.location}; "
                f"retrying in {delay:.1f}s (attempt {attempt}/{self.max_retries})"
            )

        outcome = run_with_backoff(
            lambda attempt: self._attempt(annotation, body, target),
            max_attempts=self.max_retries,
            base_delay=self.retry_base_delay,
            should_retry=lambda o: o.status == AttemptStatus.RETRY,
            cancel_event=self.cancel_event,
            on_retry=on_retry
        )
        if outcome.status == AttemptStatus.RETRY:
            return Outcome.failure(outcome.error_kind, outcome.message, outcome.cause,
                                   AttemptStatus.FAILED)
        return outcome

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def post(self, annotations: List[Annotation], context: GitContext) -> PlatformPostResult:
        """
        Post annotations as review comments, one at a time.

        Requests are sequential with a fixed pause between them. Lines outside
        the diff are counted as skipped; other failures are collected.

        Args:
            annotations: Annotations to publish
            context: Pull/merge request to comment on

        Returns:
            PlatformPostResult with ``posted + failed + skipped == len(annotations)``

        Raises:
            AuthError: If the platform rejects the token while posting.
            GhostCommentError: If the pull/merge request cannot be resolved.
        """
        result = PlatformPostResult()
        if not annotations:
            return result

        target = self._prepare(context)
        reference = self._describe_target(context)
        logger.info(f"Posting {len(annotations)} {self.noun}s to {self.platform_name} {reference}...")

        for index, annotation in enumerate(annotations):
            if self._cancelled():
                for remaining in annotations[index:]:
                    result.failed += 1
                    result.errors.append(PostError(remaining, "Posting cancelled",
                                                   ErrorKind.NETWORK_ERROR))
                logger.warning(f"Posting cancelled with {len(annotations) - index} {self.noun}(s) left")
                break

            outcome = self.post_single(annotation, target)
            if outcome.status == AttemptStatus.SUCCESS:
                result.posted += 1
                result.successes.append(outcome.value)
                logger.info(f"✓ Posted {self.noun} on {annotation.location}")
            elif outcome.status == AttemptStatus.SKIPPED:
                result.skipped += 1
                logger.info(f"⚠ Skipped {annotation.location} - line not in diff")
            elif outcome.status == AttemptStatus.AUTH_FAILED:
                raise AuthError(outcome.message, outcome.cause)
            else:
                result.failed += 1
                result.errors.append(PostError(annotation, outcome.message, outcome.error_kind))
                logger.error(f"✗ Failed to post {self.noun} on {annotation.location}: {outcome.message}")

            if index < len(annotations) - 1:
                wait(self.request_delay, self.cancel_event)

        logger.info(
            f"{self.platform_name} posting complete: {result.posted} posted, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result


class PlatformClientFactory:
    """Factory for creating review platform clients."""

    PLATFORMS = ('github', 'gitlab')

    @classmethod
    def create(cls, platform: str, token: str, base_url: Optional[str] = None,
               **kwargs) -> BasePlatformClient:
        """
        Create a client for a platform.

        Args:
            platform: 'github' or 'gitlab'
            token: Bearer token
            base_url: API root override
            **kwargs: Passed through to the client constructor

        Returns:
            BasePlatformClient: Client instance for the platform

        Raises:
            ConfigError: If the platform is unknown.
        """
        platform = platform.lower()
        if platform == 'github':
            from ..src.github_client import GitHubClient
            client_class = GitHubClient
        elif platform == 'gitlab':
            from ..src.gitlab_client import GitLabClient
            client_class = GitLabClient
        else:
            raise ConfigError(f"Platform '{platform}' not supported. "
                             f"Available platforms: {list(cls.PLATFORMS)}")

        logger.debug(f"Creating {platform} client (base_url={base_url or client_class.default_base_url})")
        return client_class(token=token, base_url=base_url, **kwargs)
