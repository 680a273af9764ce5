"""
Pipeline orchestrator: scan -> post -> clean.

Sequences the Scanner, a review platform client and the Cleaner for one
run. Per-run settings travel in an explicit RunContext; nothing here is
process-wide state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .cleaner import Cleaner, CleanOptions
from .config import Config
from .models import (
    Annotation,
    CleanResult,
    GitContext,
    PlatformPostResult,
    RunContext,
    ValidationResult,
)
from .scanner import Scanner
from ..utils.logger_setup import get_logger
from ..utils.platform_client import BasePlatformClient

logger = get_logger(__name__)


class CleanPolicy(Enum):
    """When to strip annotations after posting."""
    NEVER = "never"
    ON_SUCCESS = "on-success"   # only when no annotation failed to post
    ALWAYS = "always"


@dataclass
class PipelineReport:
    """Everything one pipeline run produced."""
    annotations: List[Annotation] = field(default_factory=list)
    post_result: Optional[PlatformPostResult] = None
    clean_result: Optional[CleanResult] = None
    fail_on_found_triggered: bool = False

    @property
    def succeeded(self) -> bool:
        if self.fail_on_found_triggered:
            return False
        if self.post_result is not None and self.post_result.failed:
            return False
        return not (self.clean_result is not None and self.clean_result.has_errors)


class Pipeline:
    """Runs the scan -> post -> clean sequence for one working tree."""

    def __init__(self, run_context: RunContext, config: Config):
        """
        Initialize Pipeline.

        Args:
            run_context: Working directory, dry-run flag and cancellation
            config: Loaded configuration
        """
        self.context = run_context
        self.config = config
        self.scanner = Scanner(cancel_event=run_context.cancel_event)
        self.cleaner = Cleaner()

    def scan(self) -> List[Annotation]:
        """Scan the working directory for annotations."""
        return self.scanner.scan(self.config.scanning, self.context.working_directory)

    def post(self, client: BasePlatformClient, git_context: GitContext,
             annotations: List[Annotation]) -> Optional[PlatformPostResult]:
        """
        Post annotations through a platform client.

        Returns:
            The post result, or None in dry-run mode
        """
        if self.context.dry_run:
            for annotation in annotations:
                logger.info(f"[dry-run] Would post {annotation.location}: {annotation.content}")
            return None
        return client.post(annotations, git_context)

    def clean_options(self) -> CleanOptions:
        cleaning = self.config.cleaning
        return CleanOptions(
            create_backups=cleaning.create_backups,
            restore_on_error=cleaning.restore_on_error,
            remove_backups=cleaning.remove_backups,
            dry_run=self.context.dry_run
        )

    def clean(self, annotations: List[Annotation]) -> CleanResult:
        """Remove annotations from the working tree (verification only in dry-run mode)."""
        return self.cleaner.clean(annotations, self.clean_options(),
                                  self.context.working_directory)

    def validate(self, annotations: List[Annotation]) -> ValidationResult:
        """Check that the annotations can still be removed."""
        return self.cleaner.validate(annotations, self.context.working_directory)

    def run(self, client: Optional[BasePlatformClient], git_context: Optional[GitContext],
            clean_policy: CleanPolicy = CleanPolicy.ON_SUCCESS) -> PipelineReport:
        """
        Run scan, post and clean in order.

        Posting is skipped when no client is given. Cleaning follows
        ``clean_policy``; ``ON_SUCCESS`` never removes lines when any
        annotation failed to post.

        Args:
            client: Platform client, or None to skip posting
            git_context: Pull/merge request to post to
            clean_policy: When to clean after posting

        Returns:
            PipelineReport for the run

        Raises:
            GhostCommentError: On configuration, scan, auth or context errors.
        """
        report = PipelineReport(annotations=self.scan())
        if not report.annotations:
            logger.info("No ghost comments found")
            return report

        if self.config.scanning.fail_on_found:
            report.fail_on_found_triggered = True
            logger.warning(f"{len(report.annotations)} ghost comment(s) found and fail_on_found is set")

        if client is not None and git_context is not None:
            report.post_result = self.post(client, git_context, report.annotations)

        if self._should_clean(report, clean_policy):
            report.clean_result = self.clean(report.annotations)
        else:
            logger.info("Skipping clean step")
        return report

    def _should_clean(self, report: PipelineReport, clean_policy: CleanPolicy) -> bool:
        if clean_policy == CleanPolicy.NEVER:
            return False
        if clean_policy == CleanPolicy.ALWAYS:
            return True
        if report.post_result is not None and report.post_result.failed:
            logger.warning(f"{report.post_result.failed} comment(s) failed to post; "
                           f"leaving annotations in place")
            return False
        return True
