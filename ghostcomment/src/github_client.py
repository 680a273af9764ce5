"""
GitHub API client for posting pull request review comments.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from . import constants
from .errors import ErrorKind, GitHubApiError, NetworkError
from .models import Annotation, AttemptStatus, GitContext, Outcome
from ..utils.logger_setup import get_logger
from ..utils.platform_client import BasePlatformClient, response_json

logger = get_logger(__name__)


class GitHubClient(BasePlatformClient):
    """Posts ghost comments as review comments on a GitHub pull request."""

    platform_name = "GitHub"
    noun = "comment"
    default_base_url = constants.GITHUB_API_URL
    default_request_delay = constants.GITHUB_REQUEST_DELAY
    api_error_kind = ErrorKind.GITHUB_API_ERROR

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _repo_path(self, context: GitContext) -> str:
        return f"/repos/{context.owner}/{context.repo}"

    def _describe_target(self, context: GitContext) -> str:
        return f"PR #{context.pull_number}"

    def get_pull_request(self, context: GitContext) -> Dict[str, Any]:
        """
        Fetch pull request metadata.

        Args:
            context: Pull request to look up

        Returns:
            Dict with ``number``, ``head_sha`` and ``base_sha``

        Raises:
            GitHubApiError: If the pull request is missing or the call fails.
        """
        try:
            response = self._request("GET", f"{self._repo_path(context)}/pulls/{context.pull_number}")
        except NetworkError as e:
            raise GitHubApiError("Failed to get pull request information", e) from e

        if response.status_code == 404:
            raise GitHubApiError(
                f"Pull request #{context.pull_number} not found in {context.slug}"
            )
        if not response.ok:
            raise GitHubApiError(
                f"Failed to get pull request information: {self.format_error(response)}"
            )

        data = response_json(response)
        return {
            "number": data.get("number"),
            "head_sha": (data.get("head") or {}).get("sha", ""),
            "base_sha": (data.get("base") or {}).get("sha", ""),
        }

    def _prepare(self, context: GitContext) -> GitContext:
        """Fill in the head commit SHA from the pull request when missing."""
        if context.commit_sha:
            return context
        pull = self.get_pull_request(context)
        logger.debug(f"Resolved head commit {pull['head_sha']} for {self._describe_target(context)}")
        return replace(
            context,
            commit_sha=pull["head_sha"],
            base_sha=context.base_sha or pull["base_sha"]
        )

    def _send(self, annotation: Annotation, body: str, target: GitContext) -> requests.Response:
        payload = {
            "body": body,
            "commit_id": target.commit_sha,
            "path": annotation.file_path,
            "line": annotation.line_number,
            "side": "RIGHT",
        }
        if self.debug:
            logger.debug(f"Posting comment to {annotation.location}")
        return self._request(
            "POST",
            f"{self._repo_path(target)}/pulls/{target.pull_number}/comments",
            json=payload
        )

    def _classify_platform(self, response: requests.Response,
                           annotation: Annotation) -> Optional[Outcome]:
        status = response.status_code
        if status == 422:
            # Line not in diff
            return Outcome.failure(
                ErrorKind.GITHUB_API_ERROR,
                f"Line {annotation.line_number} not in diff for {annotation.file_path}",
                status=AttemptStatus.SKIPPED
            )
        if status == 403 and self._is_rate_limited(response):
            reset = response.headers.get("x-ratelimit-reset") or "unknown"
            return Outcome.failure(
                ErrorKind.RATE_LIMIT_ERROR,
                f"GitHub API rate limit exceeded. Reset at: {reset}",
                status=AttemptStatus.RATE_LIMITED
            )
        return None

    @staticmethod
    def _is_rate_limited(response: requests.Response) -> bool:
        """
        Detect a rate-limit 403.

        GitHub sends ``x-ratelimit-reset`` on every response, so a 403 only
        counts as rate limiting when the quota is spent or a retry delay is given.
        """
        headers = response.headers
        if headers.get("retry-after"):
            return True
        remaining = headers.get("x-ratelimit-remaining")
        return bool(headers.get("x-ratelimit-reset")) and remaining in (None, "0")

    def _error_detail(self, data: Any) -> str:
        if not isinstance(data, dict):
            return ""
        detail = str(data.get("message") or "")
        errors = data.get("errors") or []
        if errors:
            parts = []
            for error in errors:
                if isinstance(error, dict):
                    parts.append(f"{error.get('field', '?')}: {error.get('code', error.get('message', '?'))}")
                else:
                    parts.append(str(error))
            detail += f" ({', '.join(parts)})"
        return detail.strip()

    def list_review_comments(self, context: GitContext) -> List[Dict[str, Any]]:
        """
        List existing review comments on a pull request.

        Raises:
            GitHubApiError: If the call fails.
        """
        try:
            response = self._request(
                "GET", f"{self._repo_path(context)}/pulls/{context.pull_number}/comments",
                params={"per_page": 100}
            )
        except NetworkError as e:
            raise GitHubApiError("Failed to list review comments", e) from e
        if not response.ok:
            raise GitHubApiError(f"Failed to list review comments: {self.format_error(response)}")
        return response_json(response) or []

    def get_rate_limit(self) -> Dict[str, Any]:
        """
        Get the core API rate limit status.

        Returns:
            Dict with ``remaining``, ``limit`` and ``reset`` (aware datetime)

        Raises:
            GitHubApiError: If the call fails.
        """
        try:
            response = self._request("GET", "/rate_limit")
        except NetworkError as e:
            raise GitHubApiError("Failed to get rate limit status", e) from e
        if not response.ok:
            raise GitHubApiError(f"Failed to get rate limit status: {self.format_error(response)}")

        core = response_json(response).get("rate") or {}
        return {
            "remaining": core.get("remaining"),
            "limit": core.get("limit"),
            "reset": datetime.fromtimestamp(core.get("reset", 0), tz=timezone.utc),
        }
