"""Tests for the GitHub review comment client."""

import threading

import pytest
import requests

from ghostcomment.src.errors import AuthError, ErrorKind, GitHubApiError, NetworkError
from ghostcomment.src.github_client import GitHubClient
from ghostcomment.src.models import GitContext

from conftest import FakeResponse, FakeSession, make_annotation

CONTEXT = GitContext(owner="acme", repo="widgets", pull_number=7, commit_sha="abc123")


def make_client(*responses, **kwargs):
    session = FakeSession(*responses)
    kwargs.setdefault("request_delay", 0)
    client = GitHubClient(token="ghp_test", session=session, **kwargs)
    return client, session


def test_requires_token():
    with pytest.raises(AuthError):
        GitHubClient(token="", session=FakeSession())


def test_session_headers():
    client, session = make_client()

    assert session.headers["Authorization"] == "Bearer ghp_test"
    assert session.headers["Accept"] == "application/vnd.github+json"
    assert session.headers["X-GitHub-Api-Version"] == "2022-11-28"
    assert session.headers["User-Agent"].startswith("GhostComment/")
    assert client.base_url == "https://api.github.com"


def test_post_success_and_diff_skip(sleeps):
    client, session = make_client(
        FakeResponse(201, {"id": 1, "html_url": "https://github.com/acme/widgets/pull/7#r1"}),
        FakeResponse(422, {"message": "Validation Failed",
                           "errors": [{"field": "line", "code": "invalid"}]}),
    )
    annotations = [make_annotation("a.ts", 3, "remove me"),
                   make_annotation("a.ts", 9, "keep this too")]

    result = client.post(annotations, CONTEXT)

    assert (result.posted, result.skipped, result.failed) == (1, 1, 0)
    assert result.total == len(annotations)
    assert result.successes[0]["id"] == 1

    call = session.posts[0]
    assert call["url"] == "https://api.github.com/repos/acme/widgets/pulls/7/comments"
    assert call["json"] == {
        "body": "🧩 _remove me_",
        "commit_id": "abc123",
        "path": "a.ts",
        "line": 3,
        "side": "RIGHT",
    }
    assert call["timeout"] == 30


def test_transient_errors_are_retried_then_fail(sleeps):
    client, session = make_client(*[FakeResponse(503) for _ in range(3)])

    result = client.post([make_annotation()], CONTEXT)

    assert (result.posted, result.skipped, result.failed) == (0, 0, 1)
    assert len(session.posts) == 3
    assert sleeps == [1.0, 2.0]
    assert result.errors[0].code == ErrorKind.GITHUB_API_ERROR
    assert "HTTP 503" in result.errors[0].message


def test_transient_error_then_success(sleeps):
    client, session = make_client(FakeResponse(502), FakeResponse(201, {"id": 9}))

    result = client.post([make_annotation()], CONTEXT)

    assert result.posted == 1
    assert sleeps == [1.0]


def test_unauthorized_aborts_the_whole_post(sleeps):
    client, session = make_client(FakeResponse(201, {"id": 1}), FakeResponse(401))

    with pytest.raises(AuthError):
        client.post([make_annotation(line_number=1), make_annotation(line_number=2),
                     make_annotation(line_number=3)], CONTEXT)

    assert len(session.posts) == 2


def test_rate_limit_is_recorded_without_retry(sleeps):
    client, session = make_client(
        FakeResponse(403, {"message": "API rate limit exceeded"},
                     headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1700000000"}),
        FakeResponse(429, {"message": "slow down"}),
    )

    result = client.post([make_annotation(line_number=1), make_annotation(line_number=2)], CONTEXT)

    assert result.failed == 2
    assert [e.code for e in result.errors] == [ErrorKind.RATE_LIMIT_ERROR] * 2
    assert "1700000000" in result.errors[0].message
    assert len(session.posts) == 2
    assert sleeps == []


def test_forbidden_without_rate_limit_headers_is_an_api_error(sleeps):
    client, _ = make_client(
        FakeResponse(403, {"message": "Resource not accessible by integration"},
                     headers={"x-ratelimit-remaining": "4999", "x-ratelimit-reset": "1700000000"}),
    )

    result = client.post([make_annotation()], CONTEXT)

    assert result.errors[0].code == ErrorKind.GITHUB_API_ERROR
    assert "Resource not accessible" in result.errors[0].message


def test_other_errors_include_field_details(sleeps):
    client, session = make_client(
        FakeResponse(400, {"message": "Bad things", "errors": [{"field": "path", "code": "missing"}]}),
    )

    result = client.post([make_annotation()], CONTEXT)

    assert result.errors[0].message == "HTTP 400: Bad Request - Bad things (path: missing)"
    assert len(session.posts) == 1


def test_network_errors_are_failed_items(sleeps):
    client, _ = make_client(requests.ConnectionError("boom"), FakeResponse(201, {"id": 2}))

    result = client.post([make_annotation(line_number=1), make_annotation(line_number=2)], CONTEXT)

    assert (result.posted, result.failed) == (1, 1)
    assert result.errors[0].code == ErrorKind.NETWORK_ERROR


def test_post_arithmetic_holds_for_mixed_outcomes(sleeps):
    statuses = [201, 422, 500, 500, 500, 404, 429, 201]
    client, _ = make_client(*[FakeResponse(s, {}) for s in statuses])
    annotations = [make_annotation(line_number=n) for n in range(1, 7)]

    result = client.post(annotations, CONTEXT)

    assert result.posted + result.failed + result.skipped == len(annotations)
    assert (result.posted, result.skipped, result.failed) == (2, 1, 3)


def test_missing_commit_sha_is_resolved_from_pull_request(sleeps):
    client, session = make_client(
        FakeResponse(200, {"number": 7, "head": {"sha": "head999"}, "base": {"sha": "base000"}}),
        FakeResponse(201, {"id": 1}),
    )
    context = GitContext(owner="acme", repo="widgets", pull_number=7)

    client.post([make_annotation()], context)

    assert session.calls[0]["method"] == "GET"
    assert session.calls[0]["url"].endswith("/repos/acme/widgets/pulls/7")
    assert session.posts[0]["json"]["commit_id"] == "head999"
    assert context.commit_sha == ""


def test_get_pull_request_not_found():
    client, _ = make_client(FakeResponse(404, {"message": "Not Found"}))

    with pytest.raises(GitHubApiError, match="not found"):
        client.get_pull_request(CONTEXT)


def test_empty_annotation_list_makes_no_requests():
    client, session = make_client()

    result = client.post([], CONTEXT)

    assert result.total == 0
    assert session.calls == []


def test_cancelled_post_counts_remaining_as_failed():
    cancel = threading.Event()
    cancel.set()
    client, session = make_client(cancel_event=cancel)

    result = client.post([make_annotation(line_number=1), make_annotation(line_number=2)], CONTEXT)

    assert result.failed == 2
    assert session.posts == []
    assert result.errors[0].message == "Posting cancelled"


def test_request_delay_between_posts(sleeps):
    client, _ = make_client(FakeResponse(201, {}), FakeResponse(201, {}), request_delay=0.1)

    client.post([make_annotation(line_number=1), make_annotation(line_number=2)], CONTEXT)

    assert sleeps == [0.1]


@pytest.mark.parametrize("status, error", [
    (401, AuthError),
    (403, AuthError),
    (500, NetworkError),
])
def test_test_connection_failures(status, error):
    client, _ = make_client(FakeResponse(status, {}))

    with pytest.raises(error):
        client.test_connection()


def test_test_connection_success():
    client, session = make_client(FakeResponse(200, {"login": "bot"}))

    client.test_connection()

    assert session.calls[0]["url"] == "https://api.github.com/user"


def test_test_connection_network_failure():
    client, _ = make_client(requests.Timeout("slow"))

    with pytest.raises(NetworkError, match="Failed to connect"):
        client.test_connection()


def test_get_rate_limit():
    client, _ = make_client(FakeResponse(200, {"rate": {"remaining": 10, "limit": 5000, "reset": 0}}))

    status = client.get_rate_limit()

    assert status["remaining"] == 10
    assert status["limit"] == 5000
    assert status["reset"].year == 1970


def test_list_review_comments():
    client, session = make_client(FakeResponse(200, [{"id": 1}, {"id": 2}]))

    comments = client.list_review_comments(CONTEXT)

    assert [c["id"] for c in comments] == [1, 2]
    assert session.calls[0]["params"] == {"per_page": 100}
