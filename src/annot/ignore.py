# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Exclude source files from elaboration using .gitignore patterns."""

import logging
from collections.abc import Iterable
from pathlib import Path

import pathspec

logger = logging.getLogger(__name__)

GIT_DIRECTORY = ".git"


class IgnoreMatcher:
    """Match project-relative paths against the project's .gitignore rules.

    Patterns from nested .gitignore files are rebased onto the project root
    and appended after their parents, so deeper files take precedence.
    """

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        """Initialize matcher.

        Args:
            patterns: Root-relative gitignore lines.
        """
        self._patterns: list[str] = list(patterns)
        self._spec = pathspec.GitIgnoreSpec.from_lines(self._patterns)

    @classmethod
    def from_project_root(cls, root_path: Path) -> "IgnoreMatcher":
        """Load .gitignore files breadth first, skipping ignored directories.

        A .gitignore inside an ignored directory is never read, as with git.

        Args:
            root_path: Project root.

        Returns:
            Configured ignore matcher; matches nothing when no .gitignore exists.

        Raises:
            OSError: If .gitignore files cannot be read.
            UnicodeDecodeError: If .gitignore files contain invalid UTF-8.
        """
        matcher = cls()
        pending = [root_path]
        while pending:
            directory = pending.pop(0)
            relative = directory.relative_to(root_path).as_posix()
            base = "" if relative == "." else relative
            ignore_path = directory / ".gitignore"
            if ignore_path.is_file():
                matcher.extend(ignore_path.read_text(encoding="utf-8").splitlines(), base=base)
            for child in sorted(directory.iterdir(), key=lambda item: item.name):
                if not child.is_dir() or child.name == GIT_DIRECTORY:
                    continue
                if not matcher.matches(child.relative_to(root_path).as_posix(), is_dir=True):
                    pending.append(child)
        logger.debug(
            f"Loaded ignore patterns (root_path={root_path} patterns={len(matcher._patterns)})"
        )
        return matcher

    def extend(self, lines: Iterable[str], base: str = "") -> None:
        """Append the lines of a .gitignore found in directory ``base``."""
        self._patterns.extend(_rebase_pattern(line=line, base=base) for line in lines)
        self._spec = pathspec.GitIgnoreSpec.from_lines(self._patterns)

    def matches(self, relative_path: str, is_dir: bool) -> bool:
        """Check whether a path should be skipped.

        Args:
            relative_path: Project-relative POSIX path.
            is_dir: Whether the path is a directory; directory-only patterns
                such as ``build/`` only match when this is set.

        Returns:
            True when the path is ignored.
        """
        normalized = relative_path.strip("/")
        if not normalized:
            return False
        if is_dir:
            return self._spec.match_file(f"{normalized}/")
        return self._spec.match_file(normalized)


def iter_source_files(
    root_path: Path, suffix: str = ".py", ignore: IgnoreMatcher | None = None
) -> list[Path]:
    """List files with ``suffix`` under ``root_path`` in sorted path order.

    Ignored directories are pruned without being listed; ``.git`` is always skipped.

    Args:
        root_path: Project root.
        suffix: File suffix to collect.
        ignore: Optional matcher for paths to skip.

    Returns:
        Matching file paths.
    """
    found: list[Path] = []
    pending = [root_path]
    while pending:
        directory = pending.pop(0)
        for child in sorted(directory.iterdir(), key=lambda item: item.name):
            relative = child.relative_to(root_path).as_posix()
            is_dir = child.is_dir()
            if is_dir and child.name == GIT_DIRECTORY:
                continue
            if ignore is not None and ignore.matches(relative, is_dir=is_dir):
                logger.debug(f"Skipping ignored path (path={relative} is_dir={is_dir})")
                continue
            if is_dir:
                pending.append(child)
            elif child.suffix == suffix:
                found.append(child)
    return sorted(found)


def _rebase_pattern(line: str, base: str) -> str:
    """Rewrite a nested .gitignore line relative to the project root."""
    if not base or not line or line.lstrip().startswith("#"):
        return line
    if line.startswith(r"\!") or line.startswith(r"\#"):
        return line
    is_negation = line.startswith("!")
    pattern = line[1:] if is_negation else line
    anchored = pattern.startswith("/")
    pattern = pattern[1:] if anchored else pattern
    if not anchored and "/" not in pattern.rstrip("/"):
        # A bare name matches at any depth below its .gitignore.
        pattern = f"**/{pattern}"
    prefixed = f"{base}/{pattern}" if pattern else base
    if anchored:
        prefixed = f"/{prefixed}"
    return f"!{prefixed}" if is_negation else prefixed
