"""
Glob pattern matching for include/exclude file selection.

Patterns use forward slashes and are matched against paths relative to the
scan root:

- ``*`` and ``?`` match within one path segment
- ``**`` as a whole segment matches zero or more directories
- ``{a,b}`` alternation, nested groups allowed
- ``[abc]`` / ``[!abc]`` character classes

Include patterns do not match dot-files or descend into dot-directories
unless the pattern spells the dot out. Exclude patterns match dot entries
too, and an exclude pattern ending in ``/**`` prunes the whole directory.
"""

import os
import re
from pathlib import Path
from typing import Iterator, List, Pattern, Sequence


def expand_braces(pattern: str) -> List[str]:
    """
    Expand ``{a,b}`` alternation into a list of plain patterns.

    Args:
        pattern: Glob pattern possibly containing brace groups

    Returns:
        List of patterns with every brace group expanded
    """
    depth = 0
    start = None
    for index, char in enumerate(pattern):
        if char == '{':
            if depth == 0:
                start = index
            depth += 1
        elif char == '}' and depth:
            depth -= 1
            if depth == 0:
                options = _split_top_level(pattern[start + 1:index])
                head, tail = pattern[:start], pattern[index + 1:]
                expanded = []
                for option in options:
                    expanded.extend(expand_braces(head + option + tail))
                return expanded
    return [pattern]


def _split_top_level(body: str) -> List[str]:
    """Split a brace body on commas that are not nested in another group."""
    parts, depth, current = [], 0, []
    for char in body:
        if char == ',' and depth == 0:
            parts.append(''.join(current))
            current = []
            continue
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
        current.append(char)
    parts.append(''.join(current))
    return parts


def _translate_segment(segment: str, dot: bool) -> str:
    """Translate one path segment (no slashes, no braces) to a regex."""
    regex = []
    if not dot and not segment.startswith('.'):
        regex.append(r'(?!\.)')

    i = 0
    while i < len(segment):
        char = segment[i]
        if char == '*':
            regex.append('[^/]*')
        elif char == '?':
            regex.append('[^/]')
        elif char == '[':
            end = segment.find(']', i + 2 if segment[i + 1:i + 2] in ('!', '^') else i + 1)
            if end == -1:
                regex.append(re.escape(char))
            else:
                body = segment[i + 1:end]
                if body[:1] in ('!', '^'):
                    body = '^' + body[1:]
                regex.append('[' + body.replace('\\', '\\\\') + ']')
                i = end
        else:
            regex.append(re.escape(char))
        i += 1
    return ''.join(regex)


def translate_glob(pattern: str, dot: bool = False) -> str:
    """
    Translate a brace-free glob pattern into an anchored regex string.

    Args:
        pattern: Glob pattern without brace groups
        dot: Whether wildcards may match names starting with a dot

    Returns:
        Regex source matching the whole relative path
    """
    any_segment = '[^/]+' if dot else r'(?!\.)[^/]+'
    parts = [part for part in pattern.strip('/').split('/') if part]

    regex = ''
    need_sep = False
    for index, part in enumerate(parts):
        last = index == len(parts) - 1
        if part == '**':
            if last:
                if need_sep:
                    regex += f'(?:/{any_segment})*'
                else:
                    regex += f'(?:{any_segment}(?:/{any_segment})*)?'
            else:
                regex += ('/' if need_sep else '') + f'(?:{any_segment}/)*'
                need_sep = False
            continue
        if need_sep:
            regex += '/'
        regex += _translate_segment(part, dot)
        need_sep = True

    return '^' + regex + '$'


def _strip_current_dir(pattern: str) -> str:
    while pattern.startswith('./'):
        pattern = pattern[2:].lstrip('/')
    return pattern


def compile_patterns(patterns: Sequence[str], dot: bool = False) -> List[Pattern]:
    """
    Compile glob patterns (with brace expansion) into regexes.

    A leading ``./`` names the scan root itself and is dropped, so
    ``./src/**/*.ts`` selects the same files as ``src/**/*.ts``.
    """
    compiled = []
    for pattern in patterns:
        for expanded in expand_braces(pattern.replace('\\', '/')):
            expanded = _strip_current_dir(expanded)
            compiled.append(re.compile(translate_glob(expanded, dot=dot)))
    return compiled


class PatternSet:
    """Resolves include/exclude glob patterns against a directory tree."""

    def __init__(self, include: Sequence[str], exclude: Sequence[str] = ()):
        """
        Initialize PatternSet.

        Args:
            include: Patterns a file must match to be selected
            exclude: Patterns that remove files or whole directories
        """
        self.include = compile_patterns(include)
        self.exclude = compile_patterns(exclude or (), dot=True)

    def is_included(self, relative_path: str) -> bool:
        """Check a relative POSIX path against the include and exclude sets."""
        if self.is_excluded(relative_path):
            return False
        return any(regex.match(relative_path) for regex in self.include)

    def is_excluded(self, relative_path: str) -> bool:
        return any(regex.match(relative_path) for regex in self.exclude)

    def walk(self, root: Path) -> Iterator[str]:
        """
        Yield relative POSIX paths of matching regular files under ``root``.

        Symbolic links are neither followed nor reported. Paths are yielded in
        sorted order so repeated walks of an unchanged tree agree.

        Args:
            root: Directory to walk

        Yields:
            Relative paths using forward slashes
        """
        root = Path(root)
        for current, dirs, filenames in os.walk(root, followlinks=False):
            rel_dir = Path(current).relative_to(root).as_posix()
            rel_dir = '' if rel_dir == '.' else rel_dir

            kept = []
            for name in sorted(dirs):
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if os.path.islink(os.path.join(current, name)) or self.is_excluded(rel):
                    continue
                kept.append(name)
            dirs[:] = kept

            for name in sorted(filenames):
                full = os.path.join(current, name)
                if os.path.islink(full) or not os.path.isfile(full):
                    continue
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if self.is_included(rel):
                    yield rel
