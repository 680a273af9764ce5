"""
Command-line interface for GhostComment.

Thin, non-interactive commands over the scan -> post -> clean pipeline.
Failures exit with the code mapped from their ErrorKind.
"""

import json
import os
import sys

import click
import yaml

from .. import __version__
from .cleaner import list_backups
from .config import ConfigManager
from .constants import EXIT_CODES, EXIT_UNKNOWN
from .errors import ErrorKind, GhostCommentError, error_for
from .models import GitContext, RunContext
from .pipeline import CleanPolicy, Pipeline
from ..utils.logger_setup import LoggerManager, get_logger
from ..utils.platform_client import PlatformClientFactory

logger = get_logger(__name__)


def _exit_with_error(error: Exception):
    """Print an error and exit with the code for its kind."""
    if isinstance(error, GhostCommentError):
        click.echo(f"❌ {error.kind.value}: {error.message}", err=True)
        if error.cause is not None:
            logger.debug(f"Caused by: {error.cause!r}")
        sys.exit(EXIT_CODES.get(error.kind, EXIT_UNKNOWN))
    click.echo(f"❌ Error: {error}", err=True)
    sys.exit(EXIT_UNKNOWN)


def _load(run_context: RunContext):
    config_manager = ConfigManager(str(run_context.working_directory))
    return config_manager, config_manager.load()


def _detect_platform() -> str:
    return 'gitlab' if os.getenv('GITLAB_CI') else 'github'


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.option('--dry-run', is_flag=True, help='Report what would happen without posting or writing')
@click.option('--cwd', '-C', 'cwd', type=click.Path(exists=True, file_okay=False),
              default='.', help='Working directory to operate on')
@click.pass_context
def cli(ctx, verbose, dry_run, cwd):
    """GhostComment - turn inline annotations into review comments."""
    LoggerManager.setup_logging(console=True, level="DEBUG" if verbose else "INFO")
    ctx.obj = RunContext(working_directory=cwd, dry_run=dry_run, verbose=verbose)


@cli.command()
@click.option('--overwrite', is_flag=True, help='Overwrite existing configuration')
@click.pass_obj
def init(run_context, overwrite):
    """Initialize configuration in the working directory."""
    config_manager = ConfigManager(str(run_context.working_directory))

    if config_manager.init_config(overwrite=overwrite):
        click.echo("✓ Configuration initialized successfully")
        click.echo(f"  Config file: {config_manager.config_file}")
        click.echo("\nNext steps:")
        click.echo("  1. Export GITHUB_TOKEN or GITLAB_TOKEN")
        click.echo("  2. Run 'ghostcomment scan' to list ghost comments")
    else:
        click.echo("Configuration already exists. Use --overwrite to replace it.")


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print annotations as JSON')
@click.pass_obj
def scan(run_context, as_json):
    """List ghost comments in the working tree."""
    try:
        _, config = _load(run_context)
        annotations = Pipeline(run_context, config).scan()
    except GhostCommentError as e:
        _exit_with_error(e)

    if as_json:
        click.echo(json.dumps([
            {
                "file": a.file_path,
                "line": a.line_number,
                "content": a.content,
            }
            for a in annotations
        ], indent=2))
        return

    for annotation in annotations:
        click.echo(f"  {annotation.location}  {annotation.content}")
    click.echo(f"\n🔍 Found {len(annotations)} ghost comment(s)")


@cli.command()
@click.pass_obj
def check(run_context):
    """Count ghost comments; fail if any are found and fail_on_found is set."""
    try:
        _, config = _load(run_context)
        pipeline = Pipeline(run_context, config)
        found = pipeline.scanner.count(config.scanning, run_context.working_directory)
    except GhostCommentError as e:
        _exit_with_error(e)

    click.echo(f"Found {found} ghost comment(s)")
    if found and config.scanning.fail_on_found:
        click.echo("✗ Ghost comments must be removed before merging", err=True)
        sys.exit(1)


@cli.command()
@click.option('--platform', type=click.Choice(list(PlatformClientFactory.PLATFORMS)),
              help='Review platform (detected from CI when omitted)')
@click.option('--repo', help='Repository as owner/repo')
@click.option('--pr', 'pull_number', type=int, help='Pull/merge request number')
@click.option('--sha', 'commit_sha', default='', help='Head commit SHA (resolved when omitted)')
@click.option('--token', help='API token (defaults to GITHUB_TOKEN/GITLAB_TOKEN)')
@click.option('--base-url', help='API base URL override')
@click.option('--clean-policy', type=click.Choice([p.value for p in CleanPolicy]),
              default=CleanPolicy.ON_SUCCESS.value, show_default=True,
              help='When to remove annotations after posting')
@click.pass_obj
def post(run_context, platform, repo, pull_number, commit_sha, token, base_url, clean_policy):
    """Post ghost comments to a pull/merge request, then clean them."""
    try:
        config_manager, config = _load(run_context)
        platform = platform or _detect_platform()

        if repo and pull_number:
            git_context = GitContext.from_repo_string(repo, pull_number, commit_sha)
        else:
            git_context = GitContext.from_environment()

        if not base_url:
            base_url = (config.platform.gitlab_url if platform == 'gitlab'
                        else config.platform.github_api_url)
        client = PlatformClientFactory.create(
            platform,
            token or config_manager.get_token(config, platform),
            base_url,
            timeout=config.platform.timeout,
            debug=run_context.verbose,
            cancel_event=run_context.cancel_event
        )
        if not run_context.dry_run:
            client.test_connection()

        report = Pipeline(run_context, config).run(client, git_context,
                                                   CleanPolicy(clean_policy))
    except GhostCommentError as e:
        _exit_with_error(e)

    if report.post_result is not None:
        result = report.post_result
        click.echo(f"\n📤 Posted: {result.posted}  Skipped: {result.skipped}  Failed: {result.failed}")
        for error in result.errors:
            click.echo(f"  ✗ {error.annotation.location}: {error.message}")
    elif report.annotations and run_context.dry_run:
        click.echo(f"\n[dry-run] Would post {len(report.annotations)} comment(s)")

    if report.clean_result is not None:
        _echo_clean_result(report.clean_result)

    if not report.succeeded:
        errors = report.post_result.errors if report.post_result else []
        if errors and errors[0].code is not None:
            first = errors[0]
            _exit_with_error(error_for(first.code, f"{first.annotation.location}: {first.message}"))
        sys.exit(1)


@cli.command()
@click.option('--no-backup', is_flag=True, help='Do not create backup files')
@click.option('--remove-backups', is_flag=True, help='Delete backup files after a successful clean')
@click.pass_obj
def clean(run_context, no_backup, remove_backups):
    """Remove ghost comments from the working tree without posting."""
    try:
        _, config = _load(run_context)
        if no_backup:
            config.cleaning.create_backups = False
        if remove_backups:
            config.cleaning.remove_backups = True

        pipeline = Pipeline(run_context, config)
        annotations = pipeline.scan()
        if not annotations:
            click.echo("No ghost comments found")
            return
        result = pipeline.clean(annotations)
    except GhostCommentError as e:
        _exit_with_error(e)

    _echo_clean_result(result)
    if result.has_errors:
        sys.exit(EXIT_CODES[ErrorKind.FILE_ERROR])


@cli.command()
@click.pass_obj
def validate(run_context):
    """Check that every ghost comment can be removed cleanly."""
    try:
        _, config = _load(run_context)
        pipeline = Pipeline(run_context, config)
        result = pipeline.validate(pipeline.scan())
    except GhostCommentError as e:
        _exit_with_error(e)

    if result.valid:
        click.echo("✓ All ghost comments can be removed")
        return
    click.echo(f"❌ Validation Errors ({len(result.errors)}):")
    for error in result.errors:
        click.echo(f"  {error}")
    sys.exit(1)


@cli.command()
@click.pass_obj
def backups(run_context):
    """List backup files left by previous clean runs."""
    found = list_backups(run_context.working_directory)
    if not found:
        click.echo("No backup files found")
        return
    for path in found:
        click.echo(f"  {path.relative_to(run_context.working_directory)}")


@cli.group()
def config():
    """Inspect configuration."""


@config.command('show')
@click.pass_obj
def config_show(run_context):
    """Print the effective configuration (tokens redacted)."""
    try:
        _, loaded = _load(run_context)
    except GhostCommentError as e:
        _exit_with_error(e)
    click.echo(yaml.dump(loaded.to_dict(redact=True), default_flow_style=False, sort_keys=False))


def _echo_clean_result(result):
    click.echo(f"\n🧹 Files processed: {result.files_processed}")
    click.echo(f"  Comments removed: {result.comments_removed}")
    for path in result.modified_files:
        click.echo(f"  ✓ {path}")
    for path in result.error_files:
        click.echo(f"  ✗ {path}")
    for path in result.rolled_back_files:
        click.echo(f"  ↺ {path} restored")


def main():
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        _exit_with_error(e)


if __name__ == '__main__':
    main()
