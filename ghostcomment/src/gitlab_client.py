"""
GitLab API client for posting merge request discussions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from . import constants
from .errors import ErrorKind, GitLabApiError, NetworkError
from .models import Annotation, AttemptStatus, GitContext, Outcome
from ..utils.logger_setup import get_logger
from ..utils.platform_client import BasePlatformClient, response_json

logger = get_logger(__name__)


@dataclass
class MergeRequestTarget:
    """Resolved identifiers needed to open discussions on a merge request."""
    project_id: int
    iid: int
    head_sha: str
    diff_refs: Dict[str, str] = field(default_factory=dict)


class GitLabClient(BasePlatformClient):
    """Posts ghost comments as discussions on a GitLab merge request."""

    platform_name = "GitLab"
    noun = "discussion"
    default_base_url = constants.GITLAB_URL
    default_request_delay = constants.GITLAB_REQUEST_DELAY
    api_error_kind = ErrorKind.GITLAB_API_ERROR

    def _normalize_base_url(self, base_url: str) -> str:
        base_url = base_url.rstrip('/')
        if not base_url.endswith('/api/v4'):
            base_url += '/api/v4'
        return base_url

    def _describe_target(self, context: GitContext) -> str:
        return f"MR !{context.pull_number}"

    def get_project_id(self, context: GitContext) -> int:
        """
        Look up the numeric project ID for ``owner/repo``.

        Raises:
            GitLabApiError: If the project is missing or the call fails.
        """
        project_path = quote(context.slug, safe='')
        try:
            response = self._request("GET", f"/projects/{project_path}")
        except NetworkError as e:
            raise GitLabApiError("Failed to get project ID", e) from e

        if response.status_code == 404:
            raise GitLabApiError(f"Project {context.slug} not found")
        if not response.ok:
            raise GitLabApiError(f"Failed to get project ID: {self.format_error(response)}")

        project_id = response_json(response).get("id")
        if project_id is None:
            raise GitLabApiError(f"Project {context.slug} response has no ID")
        return project_id

    def get_merge_request(self, context: GitContext,
                          project_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Fetch merge request metadata.

        Args:
            context: Merge request to look up
            project_id: Known project ID; looked up when omitted

        Returns:
            Dict with ``id``, ``project_id``, ``iid``, ``sha`` and ``diff_refs``

        Raises:
            GitLabApiError: If the merge request is missing or the call fails.
        """
        if project_id is None:
            project_id = self.get_project_id(context)
        try:
            response = self._request(
                "GET", f"/projects/{project_id}/merge_requests/{context.pull_number}"
            )
        except NetworkError as e:
            raise GitLabApiError("Failed to get merge request information", e) from e

        if response.status_code == 404:
            raise GitLabApiError(
                f"Merge request !{context.pull_number} not found in {context.slug}"
            )
        if not response.ok:
            raise GitLabApiError(
                f"Failed to get merge request information: {self.format_error(response)}"
            )

        data = response_json(response)
        return {
            "id": data.get("id"),
            "project_id": project_id,
            "iid": data.get("iid", context.pull_number),
            "sha": data.get("sha", ""),
            "diff_refs": data.get("diff_refs") or {},
        }

    def _prepare(self, context: GitContext) -> MergeRequestTarget:
        """Resolve the project ID and diff SHAs for the merge request."""
        merge_request = self.get_merge_request(context)
        diff_refs = dict(merge_request["diff_refs"])
        head_sha = context.commit_sha or diff_refs.get("head_sha") or merge_request["sha"]
        diff_refs.setdefault("head_sha", head_sha)
        if context.base_sha:
            diff_refs.setdefault("base_sha", context.base_sha)
        logger.debug(f"Resolved project {merge_request['project_id']} for {self._describe_target(context)}")
        return MergeRequestTarget(
            project_id=merge_request["project_id"],
            iid=merge_request["iid"],
            head_sha=head_sha,
            diff_refs=diff_refs
        )

    def _send(self, annotation: Annotation, body: str,
              target: MergeRequestTarget) -> requests.Response:
        payload: Dict[str, Any] = {"body": body}
        if annotation.line_number > 0:
            refs = target.diff_refs
            position = {
                "position_type": "text",
                "new_path": annotation.file_path,
                "old_path": annotation.file_path,
                "new_line": annotation.line_number,
                "head_sha": refs.get("head_sha", target.head_sha),
            }
            for key in ("base_sha", "start_sha"):
                if refs.get(key):
                    position[key] = refs[key]
            payload["position"] = position

        if self.debug:
            logger.debug(f"Creating discussion on {annotation.location}")
        return self._request(
            "POST",
            f"/projects/{target.project_id}/merge_requests/{target.iid}/discussions",
            json=payload
        )

    def _classify_platform(self, response: requests.Response,
                           annotation: Annotation) -> Optional[Outcome]:
        status = response.status_code
        if status == 400:
            detail = self._error_detail(response_json(response)).lower()
            if "line" in detail or "position" in detail:
                return Outcome.failure(
                    ErrorKind.GITLAB_API_ERROR,
                    f"Line {annotation.line_number} not in diff for {annotation.file_path}",
                    status=AttemptStatus.SKIPPED
                )
        if status == 403:
            return Outcome.failure(
                ErrorKind.AUTH_ERROR,
                "Insufficient permissions to post to this merge request",
                status=AttemptStatus.FAILED
            )
        return None

    def _error_detail(self, data: Any) -> str:
        if not isinstance(data, dict):
            return ""
        message = data.get("message", data.get("error", ""))
        if isinstance(message, list):
            return ", ".join(str(item) for item in message)
        if isinstance(message, dict):
            parts = []
            for key, value in message.items():
                if isinstance(value, list):
                    value = ", ".join(str(item) for item in value)
                parts.append(f"{key}: {value}")
            return "; ".join(parts)
        return str(message or "")

    def list_discussions(self, context: GitContext) -> List[Dict[str, Any]]:
        """
        List existing discussions on a merge request.

        Raises:
            GitLabApiError: If the call fails.
        """
        project_id = self.get_project_id(context)
        try:
            response = self._request(
                "GET", f"/projects/{project_id}/merge_requests/{context.pull_number}/discussions",
                params={"per_page": 100}
            )
        except NetworkError as e:
            raise GitLabApiError("Failed to list discussions", e) from e
        if not response.ok:
            raise GitLabApiError(f"Failed to list discussions: {self.format_error(response)}")
        return response_json(response) or []
