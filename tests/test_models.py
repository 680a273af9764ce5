"""Tests for core data structures and the error taxonomy."""

from pathlib import Path

import pytest

from ghostcomment.src.constants import EXIT_CODES
from ghostcomment.src.errors import (
    ConfigError,
    ErrorKind,
    GitError,
    NetworkError,
    RateLimitError,
    error_for,
)
from ghostcomment.src.models import (
    AttemptStatus,
    GitContext,
    Outcome,
    PlatformPostResult,
    RunContext,
)

from conftest import make_annotation


def test_annotation_is_immutable():
    annotation = make_annotation()

    assert annotation.location == "a.ts:3"
    with pytest.raises(AttributeError):
        annotation.line_number = 4


def test_git_context_from_repo_string():
    context = GitContext.from_repo_string("acme/widgets", "7", commit_sha="abc")

    assert (context.owner, context.repo, context.pull_number) == ("acme", "widgets", 7)
    assert context.commit_sha == "abc"
    assert context.slug == "acme/widgets"


def test_git_context_keeps_nested_namespaces():
    context = GitContext.from_repo_string("group/sub/project", 3)

    assert context.owner == "group/sub"
    assert context.repo == "project"


@pytest.mark.parametrize("repository", ["widgets", "", "/widgets", "acme/"])
def test_git_context_rejects_bad_repository(repository):
    with pytest.raises(ConfigError):
        GitContext.from_repo_string(repository, 1)


def test_git_context_from_github_actions():
    env = {
        "GITHUB_ACTIONS": "true",
        "GITHUB_REPOSITORY": "acme/widgets",
        "GITHUB_REF": "refs/pull/42/merge",
        "GITHUB_SHA": "deadbeef",
    }

    context = GitContext.from_environment(env)

    assert context.pull_number == 42
    assert context.commit_sha == "deadbeef"


def test_git_context_from_gitlab_ci():
    env = {
        "GITLAB_CI": "true",
        "CI_PROJECT_PATH": "group/project",
        "CI_MERGE_REQUEST_IID": "5",
        "CI_COMMIT_SHA": "cafe",
        "CI_MERGE_REQUEST_DIFF_BASE_SHA": "f00d",
    }

    context = GitContext.from_environment(env)

    assert (context.owner, context.repo, context.pull_number) == ("group", "project", 5)
    assert context.base_sha == "f00d"


@pytest.mark.parametrize("env", [
    {},
    {"GITHUB_ACTIONS": "true", "GITHUB_REPOSITORY": "a/b", "GITHUB_REF": "refs/heads/main"},
    {"GITLAB_CI": "true", "CI_PROJECT_PATH": "a/b"},
])
def test_git_context_outside_review_ci_fails(env):
    with pytest.raises(GitError):
        GitContext.from_environment(env)


def test_outcome_variants():
    ok = Outcome.success({"id": 1}, AttemptStatus.SUCCESS)
    err = Outcome.from_error(NetworkError("down", ValueError("x")), AttemptStatus.FAILED)

    assert ok.ok and ok.value == {"id": 1}
    assert not err.ok
    assert err.error_kind == ErrorKind.NETWORK_ERROR
    assert err.message == "down"
    assert isinstance(err.cause, ValueError)


def test_post_result_total():
    result = PlatformPostResult(posted=2, failed=1, skipped=3)

    assert result.total == 6


def test_run_context_resolves_directory(tmp_path):
    (tmp_path / "sub").mkdir()
    context = RunContext(working_directory=str(tmp_path / "sub" / ".."))

    assert context.working_directory == Path(tmp_path).resolve()
    assert not context.cancel_event.is_set()


def test_error_for_builds_matching_class():
    error = error_for(ErrorKind.RATE_LIMIT_ERROR, "slow down")

    assert isinstance(error, RateLimitError)
    assert error.kind == ErrorKind.RATE_LIMIT_ERROR
    assert str(error) == "slow down"


def test_every_error_kind_has_a_distinct_exit_code():
    codes = [EXIT_CODES[kind] for kind in ErrorKind]

    assert len(set(codes)) == len(ErrorKind)
    assert EXIT_CODES[ErrorKind.CONFIG_ERROR] == 1
    assert EXIT_CODES[ErrorKind.NETWORK_ERROR] == 8
