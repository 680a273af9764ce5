"""
Cleaner for removing ghost comments from files.

Line Number Convention:
    Annotation line numbers are 1-indexed (as shown in editors); list access
    uses ``line_number - 1``.

Consistency:
    Each file is verified line-by-line against the text recorded at scan
    time before anything is written. When any file in a run fails and
    ``restore_on_error`` is enabled, every file already cleaned in the same
    run is restored from its backup. This is a whole-run rollback, not an
    atomic commit: a crash between writing and restoring leaves files
    partially cleaned, with the backup sidecars still on disk.
"""

import os
import shutil
import stat
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import constants
from .errors import FileError
from .models import Annotation, CleanResult, Outcome, ValidationResult
from ..utils.logger_setup import get_logger

logger = get_logger(__name__)


@dataclass
class CleanOptions:
    """Options for a clean run."""
    create_backups: bool = True
    restore_on_error: bool = True
    remove_backups: bool = False
    dry_run: bool = False


@dataclass
class FileStats:
    """Permission bits and timestamps captured before a file is rewritten."""
    mode: int
    atime_ns: int
    mtime_ns: int


@dataclass
class CleanedFile:
    """Bookkeeping for one successfully cleaned file."""
    file_path: str
    resolved_path: Path
    comments_removed: int
    stats: FileStats
    original_bytes: bytes = field(repr=False, default=b"")
    backup_path: Optional[Path] = None


def group_by_file(annotations: List[Annotation]) -> "OrderedDict[str, List[Annotation]]":
    """
    Group annotations by file, each group sorted by descending line number.

    Bottom-to-top order keeps the earlier line numbers of a file valid while
    lines are removed. Files keep the order in which they were first seen.
    """
    grouped: "OrderedDict[str, List[Annotation]]" = OrderedDict()
    for annotation in annotations:
        grouped.setdefault(annotation.file_path, []).append(annotation)
    for file_annotations in grouped.values():
        file_annotations.sort(key=lambda a: a.line_number, reverse=True)
    return grouped


def _read_lines(path: Path) -> List[str]:
    with open(path, 'r', encoding='utf-8', newline='') as f:
        return f.read().split('\n')


def _check_line(annotation: Annotation, lines: List[str]) -> Optional[str]:
    """Return a mismatch description, or None when the line is unchanged."""
    index = annotation.line_number - 1
    if index < 0 or index >= len(lines):
        return (f"Comment line {annotation.line_number} is out of range in "
                f"{annotation.file_path} (file has {len(lines)} lines)")
    if lines[index] != annotation.original_line:
        return (f"Line {annotation.line_number} in {annotation.file_path} has changed since "
                f"scanning. Expected: {annotation.original_line!r}, Found: {lines[index]!r}")
    return None


class Cleaner:
    """Removes ghost comment lines from source files."""

    def __init__(self, options: Optional[CleanOptions] = None):
        """
        Initialize Cleaner.

        Args:
            options: Default options used when ``clean`` is called without any
        """
        self.options = options or CleanOptions()

    def clean(self, annotations: List[Annotation], options: Optional[CleanOptions] = None,
              root_directory=None) -> CleanResult:
        """
        Remove annotated lines from their files.

        Files are processed one at a time. A failure in one file does not stop
        the others, but when ``restore_on_error`` is set every file cleaned in
        this run is restored and ``comments_removed`` is reported as zero.

        Args:
            annotations: Annotations from a previous scan
            options: Clean options (defaults to the instance options)
            root_directory: Root the annotation paths are relative to

        Returns:
            CleanResult describing the run
        """
        options = options or self.options
        root = Path(root_directory or os.getcwd()).resolve()
        result = CleanResult()
        if not annotations:
            return result

        grouped = group_by_file(annotations)
        result.files_processed = len(grouped)
        cleaned: List[CleanedFile] = []

        for file_path, file_annotations in grouped.items():
            outcome = self._clean_file(root, file_path, file_annotations, options)
            if outcome.ok:
                cleaned.append(outcome.value)
                result.comments_removed += outcome.value.comments_removed
            else:
                result.error_files.append(file_path)
                logger.error(f"Error cleaning {file_path}: {outcome.message}")

        result.modified_files = [entry.file_path for entry in cleaned]

        if result.has_errors and options.restore_on_error and not options.dry_run:
            logger.info("Errors occurred during cleaning. Restoring files from backups...")
            for entry in cleaned:
                restored = self._restore(entry)
                if restored.ok:
                    result.rolled_back_files.append(entry.file_path)
                    logger.info(f"Restored {entry.file_path} from backup")
                else:
                    logger.error(f"Failed to restore {entry.file_path}: {restored.message}")
            result.comments_removed = 0
            result.modified_files = [
                path for path in result.modified_files if path not in result.rolled_back_files
            ]
            if options.remove_backups:
                for entry in cleaned:
                    if entry.file_path in result.rolled_back_files:
                        self._remove_backup(entry.backup_path)

        if options.remove_backups and not options.dry_run and not result.has_errors:
            for entry in cleaned:
                self._remove_backup(entry.backup_path)

        return result

    def validate(self, annotations: List[Annotation], root_directory=None) -> ValidationResult:
        """
        Check, without writing anything, that every annotation can be removed.

        Args:
            annotations: Annotations from a previous scan
            root_directory: Root the annotation paths are relative to

        Returns:
            ValidationResult listing every problem found
        """
        root = Path(root_directory or os.getcwd()).resolve()
        errors: List[str] = []

        for file_path, file_annotations in group_by_file(annotations).items():
            resolved = root / file_path
            if not os.access(resolved, os.R_OK | os.W_OK):
                errors.append(f"{file_path} - File is missing or not readable/writable")
                continue
            try:
                lines = _read_lines(resolved)
            except (OSError, UnicodeDecodeError) as e:
                errors.append(f"{file_path} - File access error: {e}")
                continue

            for annotation in file_annotations:
                index = annotation.line_number - 1
                if index < 0 or index >= len(lines):
                    errors.append(f"{annotation.location} - Line number out of range "
                                  f"(file has {len(lines)} lines)")
                elif lines[index] != annotation.original_line:
                    errors.append(f"{annotation.location} - Line content has changed since scanning")

        return ValidationResult(valid=not errors, errors=errors)

    def _clean_file(self, root: Path, file_path: str, annotations: List[Annotation],
                    options: CleanOptions) -> Outcome:
        """
        Clean a single file.

        Returns:
            Outcome holding a CleanedFile, or the FileError that stopped it
        """
        resolved = root / file_path
        backup_path = None
        keep_backup = False
        try:
            stats = self._get_stats(resolved)
            if options.create_backups and not options.dry_run:
                backup_path = self._create_backup(resolved)

            try:
                with open(resolved, 'rb') as f:
                    original_bytes = f.read()
                lines = original_bytes.decode('utf-8').split('\n')
            except (OSError, UnicodeDecodeError) as e:
                raise FileError(f"Failed to read {file_path}", e) from e

            to_remove = set()
            for annotation in annotations:
                mismatch = _check_line(annotation, lines)
                if mismatch:
                    raise FileError(mismatch)
                to_remove.add(annotation.line_number - 1)

            entry = CleanedFile(
                file_path=file_path,
                resolved_path=resolved,
                comments_removed=len(to_remove),
                stats=stats,
                original_bytes=original_bytes,
                backup_path=backup_path
            )

            if not options.dry_run:
                kept = [line for index, line in enumerate(lines) if index not in to_remove]
                try:
                    with open(resolved, 'w', encoding='utf-8', newline='') as f:
                        f.write('\n'.join(kept))
                except OSError as e:
                    keep_backup = not self._write_back(resolved, original_bytes)
                    raise FileError(f"Failed to write {file_path}", e) from e
                self._restore_stats(resolved, stats)
                logger.debug(f"Removed {len(to_remove)} line(s) from {file_path}")

            return Outcome.success(entry)
        except FileError as e:
            if backup_path is not None and not keep_backup:
                self._remove_backup(backup_path)
            return Outcome.from_error(e)

    def _get_stats(self, path: Path) -> FileStats:
        try:
            st = os.stat(path)
        except OSError as e:
            raise FileError(f"Failed to get file stats for {path}", e) from e
        return FileStats(mode=stat.S_IMODE(st.st_mode), atime_ns=st.st_atime_ns, mtime_ns=st.st_mtime_ns)

    def _restore_stats(self, path: Path, stats: FileStats):
        """Restore permissions and timestamps; failures are only logged."""
        try:
            os.chmod(path, stats.mode)
            os.utime(path, ns=(stats.atime_ns, stats.mtime_ns))
        except OSError as e:
            logger.warning(f"Failed to restore file stats for {path}: {e}")

    def _backup_path(self, path: Path) -> Path:
        timestamp = datetime.now().strftime("%Y%m%dT%H%M%S%f")
        return path.parent / f".{path.name}.{constants.BACKUP_SUFFIX}-{timestamp}"

    def _create_backup(self, path: Path) -> Path:
        """
        Copy a file to its backup sidecar.

        Raises:
            FileError: If the copy fails.
        """
        backup_path = self._backup_path(path)
        try:
            shutil.copy2(path, backup_path)
        except OSError as e:
            raise FileError(f"Failed to create backup for {path}", e) from e
        return backup_path

    def _write_back(self, path: Path, data: bytes) -> bool:
        try:
            with open(path, 'wb') as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Failed to write back original content of {path}: {e}")
            return False
        return True

    def _restore(self, entry: CleanedFile) -> Outcome:
        """
        Restore a cleaned file to its pre-clean bytes.

        Uses the backup sidecar when one exists, else the bytes held in memory.
        """
        try:
            if entry.backup_path is not None and entry.backup_path.exists():
                shutil.copy2(entry.backup_path, entry.resolved_path)
            else:
                with open(entry.resolved_path, 'wb') as f:
                    f.write(entry.original_bytes)
                self._restore_stats(entry.resolved_path, entry.stats)
        except OSError as e:
            source = entry.backup_path or "memory"
            return Outcome.from_error(
                FileError(f"Failed to restore {entry.file_path} from backup {source}", e)
            )
        return Outcome.success(entry.file_path)

    def _remove_backup(self, backup_path: Optional[Path]):
        """Delete a backup sidecar; failures are only logged."""
        if backup_path is None:
            return
        try:
            backup_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove backup {backup_path}: {e}")


def list_backups(root_directory) -> List[Path]:
    """
    List backup sidecars left under a directory, newest first.

    Args:
        root_directory: Directory to search recursively

    Returns:
        Backup file paths
    """
    root = Path(root_directory)
    return sorted(
        root.rglob(f".*.{constants.BACKUP_SUFFIX}-*"),
        key=lambda p: p.stat().st_mtime,
        reverse=True
    )
