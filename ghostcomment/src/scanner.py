"""
File scanner for detecting ghost comments.

Walks the include/exclude file set, reads candidate files in bounded
concurrent batches, and turns every prefix-marked line into an Annotation.
"""

import os
import re
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Pattern, TypeVar

from . import constants
from .config import ScanConfig
from .errors import ConfigError, FileError, GhostCommentError
from .models import Annotation
from ..utils.glob_patterns import PatternSet
from ..utils.logger_setup import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def build_prefix_pattern(prefix: str) -> Pattern:
    """Regex matching ``<ws><prefix><ws><content>`` on a single line."""
    return re.compile(r'^\s*' + re.escape(prefix) + r'\s*(.+)$')


def read_text(file_path: Path) -> str:
    """
    Read a file as UTF-8 text after checking its size.

    Line endings are preserved as-is so that the text read here matches what
    the cleaner reads later.

    Raises:
        FileError: If the file is too large or cannot be read.
    """
    try:
        size = file_path.stat().st_size
    except OSError as e:
        raise FileError(f"Failed to check file size: {file_path}", e) from e

    if size > constants.MAX_FILE_SIZE:
        raise FileError(
            f"File {file_path} is too large ({size} bytes, max: {constants.MAX_FILE_SIZE})"
        )

    try:
        with open(file_path, 'r', encoding='utf-8', newline='') as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileError(f"Failed to read file: {file_path}", e) from e


class Scanner:
    """Scans files for ghost comments."""

    def __init__(self, concurrency: int = constants.SCAN_CONCURRENCY,
                 cancel_event: Optional[threading.Event] = None):
        """
        Initialize Scanner.

        Args:
            concurrency: Number of files read in parallel per batch
            cancel_event: Checked between batches; aborts the scan when set
        """
        self.concurrency = max(1, concurrency)
        self.cancel_event = cancel_event

    def scan(self, config: ScanConfig, root_directory=None) -> List[Annotation]:
        """
        Scan files for ghost comments.

        Args:
            config: Scan configuration (prefix and patterns)
            root_directory: Root of the tree. Defaults to the current directory.

        Returns:
            Annotations ordered by file path, then line number

        Raises:
            ConfigError: If the configuration is invalid or an annotation is
                longer than the allowed maximum.
            FileError: If too many files match or the scan is cancelled.
        """
        config.validate()
        root = self._resolve_root(root_directory)
        files = self._collect_files(config, root)
        if not files:
            logger.info("No files matched the include patterns")
            return []

        logger.info(f"Scanning {len(files)} file(s) for '{config.prefix}' comments")
        pattern = build_prefix_pattern(config.prefix)

        annotations: List[Annotation] = []
        for found in self._run_batches(files, lambda rel: self._scan_file(root, rel, config.prefix, pattern)):
            annotations.extend(found)

        logger.info(f"Found {len(annotations)} ghost comment(s)")
        return annotations

    def count(self, config: ScanConfig, root_directory=None) -> int:
        """
        Count ghost comments without building Annotation objects.

        Args:
            config: Scan configuration
            root_directory: Root of the tree. Defaults to the current directory.

        Returns:
            Number of matching lines
        """
        config.validate()
        root = self._resolve_root(root_directory)
        files = self._collect_files(config, root)
        pattern = build_prefix_pattern(config.prefix)

        def count_file(rel: str) -> int:
            content = read_text(root / rel)
            return sum(1 for line in content.split('\n') if self._match_content(pattern, line))

        return sum(self._run_batches(files, count_file))

    def scan_file(self, file_path: str, config: ScanConfig, root_directory=None) -> List[Annotation]:
        """
        Scan a single file.

        Args:
            file_path: Path to the file, absolute or relative to the root
            config: Scan configuration
            root_directory: Root used to compute relative paths

        Returns:
            Annotations found in the file

        Raises:
            FileError: If the file cannot be read.
        """
        config.validate()
        root = self._resolve_root(root_directory)
        path = (root / file_path).resolve()
        try:
            rel = path.relative_to(root).as_posix()
        except ValueError as e:
            raise FileError(f"File {file_path} is outside of {root}", e) from e
        return self._scan_file(root, rel, config.prefix, build_prefix_pattern(config.prefix))

    def _resolve_root(self, root_directory) -> Path:
        root = Path(root_directory or os.getcwd()).resolve()
        if not root.is_dir():
            raise FileError(f"Scan root is not a directory: {root}")
        return root

    def _collect_files(self, config: ScanConfig, root: Path) -> List[str]:
        """
        Resolve include/exclude patterns into relative file paths.

        Raises:
            FileError: If more files match than the hard ceiling allows.
        """
        patterns = PatternSet(config.include, config.exclude)
        files = []
        try:
            for rel in patterns.walk(root):
                files.append(rel)
                if len(files) > constants.MAX_FILES:
                    break
        except OSError as e:
            raise FileError(f"Failed to list files under {root}", e) from e

        if len(files) > constants.MAX_FILES:
            raise FileError(
                f"Too many files to process: more than {constants.MAX_FILES}. "
                f"Consider refining your include/exclude patterns."
            )
        return files

    def _run_batches(self, files: List[str], work: Callable[[str], T]) -> List[T]:
        """
        Run ``work`` over files in fixed-size concurrent batches.

        Every future in a batch is awaited before the next batch starts. A
        FileError in one file is logged and skipped; a ConfigError aborts the
        whole run once its batch has settled.
        """
        results: List[T] = []
        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            for start in range(0, len(files), self.concurrency):
                if self.cancel_event is not None and self.cancel_event.is_set():
                    raise FileError(f"Scan cancelled after {start} of {len(files)} file(s)")

                batch = files[start:start + self.concurrency]
                futures = [executor.submit(work, rel) for rel in batch]

                fatal: Optional[ConfigError] = None
                for rel, future in zip(batch, futures):
                    try:
                        results.append(future.result())
                    except ConfigError as e:
                        fatal = fatal or e
                    except (GhostCommentError, OSError) as e:
                        logger.warning(f"Failed to scan {rel}: {e}")
                if fatal is not None:
                    raise fatal
        return results

    @staticmethod
    def _match_content(pattern: Pattern, line: str) -> Optional[str]:
        match = pattern.match(line)
        if not match:
            return None
        return match.group(1).strip() or None

    def _scan_file(self, root: Path, rel: str, prefix: str, pattern: Pattern) -> List[Annotation]:
        """
        Extract annotations from one file.

        Raises:
            FileError: If the file cannot be read.
            ConfigError: If an annotation exceeds the maximum length.
        """
        content = read_text(root / rel)
        annotations = []
        for index, line in enumerate(content.split('\n')):
            text = self._match_content(pattern, line)
            if text is None:
                continue
            if len(text) > constants.MAX_COMMENT_LENGTH:
                raise ConfigError(
                    f"Comment too long at {rel}:{index + 1} "
                    f"({len(text)} chars, max: {constants.MAX_COMMENT_LENGTH})"
                )
            annotations.append(Annotation(
                file_path=rel,
                line_number=index + 1,
                content=text,
                prefix=prefix,
                original_line=line
            ))
        return annotations
