"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from ghostcomment.src.cli import cli
from ghostcomment.src.github_client import GitHubClient
from ghostcomment.utils.logger_setup import LoggerManager
from ghostcomment.utils.platform_client import PlatformClientFactory

from conftest import FakeResponse, FakeSession

A_TS = "const a = 1;\n//_gc_ first\nconst b = 2;\n"


@pytest.fixture(autouse=True)
def no_ci_env(monkeypatch):
    for name in ("GITHUB_TOKEN", "GITLAB_TOKEN", "GITHUB_ACTIONS", "GITLAB_CI",
                 "GITHUB_API_URL", "GITLAB_URL"):
        monkeypatch.delenv(name, raising=False)
    yield
    # drop the console handler bound to the runner's captured stderr
    LoggerManager.setup_logging()


@pytest.fixture
def tree(tmp_path):
    (tmp_path / "a.ts").write_text(A_TS, encoding="utf-8")
    return tmp_path


def run(*args):
    return CliRunner().invoke(cli, list(args))


def test_scan_lists_annotations(tree):
    result = run("-C", str(tree), "scan")

    assert result.exit_code == 0
    assert "a.ts:2  first" in result.output
    assert "Found 1 ghost comment(s)" in result.output


def test_scan_json(tree):
    result = run("-C", str(tree), "scan", "--json")

    # log lines may share the captured output
    payload = result.output[result.output.index("["):result.output.rindex("]") + 1]
    assert json.loads(payload) == [{"file": "a.ts", "line": 2, "content": "first"}]


def test_check_fails_when_configured(tree):
    (tree / ".ghostcomment.yaml").write_text("scanning:\n  fail_on_found: true\n", encoding="utf-8")

    result = run("-C", str(tree), "check")

    assert result.exit_code == 1
    assert "Found 1 ghost comment(s)" in result.output


def test_check_passes_by_default(tree):
    assert run("-C", str(tree), "check").exit_code == 0


def test_invalid_config_exits_with_config_code(tree):
    (tree / ".ghostcomment.yaml").write_text("scanning:\n  prefix: ''\n", encoding="utf-8")

    result = run("-C", str(tree), "scan")

    assert result.exit_code == 1
    assert "CONFIG_ERROR" in result.output


def test_clean_removes_annotations(tree):
    result = run("-C", str(tree), "clean", "--no-backup")

    assert result.exit_code == 0
    assert "Comments removed: 1" in result.output
    assert (tree / "a.ts").read_text(encoding="utf-8") == "const a = 1;\nconst b = 2;\n"


def test_dry_run_clean_leaves_files(tree):
    result = run("-C", str(tree), "--dry-run", "clean")

    assert result.exit_code == 0
    assert (tree / "a.ts").read_text(encoding="utf-8") == A_TS


def test_validate_command(tree):
    assert run("-C", str(tree), "validate").exit_code == 0


def test_post_without_token_exits_with_auth_code(tree):
    result = run("-C", str(tree), "post", "--platform", "github", "--repo", "acme/widgets", "--pr", "7")

    assert result.exit_code == 6
    assert "AUTH_ERROR" in result.output


def test_post_outside_ci_without_repo_exits_with_git_code(tree):
    result = run("-C", str(tree), "post", "--token", "t")

    assert result.exit_code == 3


def test_post_with_bad_repo_exits_with_config_code(tree):
    result = run("-C", str(tree), "post", "--token", "t", "--repo", "nope", "--pr", "1")

    assert result.exit_code == 1


def test_dry_run_post_makes_no_requests(tree):
    result = run("-C", str(tree), "--dry-run", "post", "--token", "t",
                 "--repo", "acme/widgets", "--pr", "7", "--sha", "abc")

    assert result.exit_code == 0
    assert "Would post 1 comment(s)" in result.output
    assert (tree / "a.ts").read_text(encoding="utf-8") == A_TS


def test_init_and_config_show(tree, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_secret")

    assert run("-C", str(tree), "init").exit_code == 0
    assert (tree / ".ghostcomment.yaml").exists()

    result = run("-C", str(tree), "config", "show")

    assert result.exit_code == 0
    assert "ghp_secret" not in result.output
    assert "'***'" in result.output


def test_backups_command(tree):
    run("-C", str(tree), "clean")

    result = run("-C", str(tree), "backups")

    assert ".a.ts.ghostcomment-backup-" in result.output


def test_rate_limited_post_exits_with_rate_limit_code(tree, monkeypatch, sleeps):
    session = FakeSession(
        FakeResponse(200, {"login": "bot"}),
        FakeResponse(429, {"message": "slow down"}),
    )
    monkeypatch.setattr(
        PlatformClientFactory, "create",
        lambda *args, **kwargs: GitHubClient(token="t", request_delay=0, session=session)
    )

    result = run("-C", str(tree), "post", "--platform", "github", "--token", "t",
                 "--repo", "acme/widgets", "--pr", "7", "--sha", "abc")

    assert result.exit_code == 7
    assert "RATE_LIMIT_ERROR: a.ts:2" in result.output
    assert (tree / "a.ts").read_text(encoding="utf-8") == A_TS
