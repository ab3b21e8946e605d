"""
LogTrace - Project Indexer
==========================

Walks a source tree and builds an immutable, language-classified inventory
of its files. Also locates a project's root by ascending from a starting
directory until an ecosystem marker is found.
"""

import fnmatch
import os
import time
from collections import Counter
from pathlib import Path
from typing import Iterator, Optional, Sequence

from logtrace.api.schemas import ProjectIndex, SourceFile
from logtrace.config import get_settings
from logtrace.constants import ProgrammingLanguage
from logtrace.core.errors import ProjectIndexError
from logtrace.core.language_detector import (
    EXTENSION_MAP,
    detect_language,
    display_name,
    is_source_file,
)
from logtrace.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_INCLUDE_PATTERNS = [f"**/*{ext}" for ext in EXTENSION_MAP]

DEFAULT_EXCLUDE_PATTERNS = [
    "**/node_modules/**",
    "**/target/**",
    "**/build/**",
    "**/dist/**",
    "**/out/**",
    "**/bin/**",
    "**/obj/**",
    "**/.git/**",
    "**/.svn/**",
    "**/.hg/**",
    "**/vendor/**",
    "**/__pycache__/**",
    "**/.venv/**",
    "**/venv/**",
    "**/.tox/**",
    "**/.idea/**",
    "**/.vscode/**",
    "**/*.pyc",
    "**/*.class",
    "**/*.jar",
    "**/*.war",
    "**/*.dll",
    "**/*.exe",
    "**/*.so",
    "**/*.dylib",
]

ROOT_MARKERS = [
    "package.json",       # Node.js
    "pom.xml",            # Maven
    "build.gradle",       # Gradle
    "build.gradle.kts",
    "Cargo.toml",         # Rust
    "go.mod",             # Go
    "requirements.txt",   # Python
    "Pipfile",
    "pyproject.toml",
    "composer.json",      # PHP
    "Gemfile",            # Ruby
]
ROOT_MARKER_SUFFIXES = (".csproj", ".sln")


def _match_segments(parts: Sequence[str], pattern_parts: Sequence[str]) -> bool:
    if not pattern_parts:
        return not parts
    head, rest = pattern_parts[0], pattern_parts[1:]
    if head == "**":
        # a trailing ** only matches something inside the directory
        start = 1 if not rest else 0
        return any(_match_segments(parts[i:], rest) for i in range(start, len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _match_segments(parts[1:], rest)


def glob_match(rel_path: str, pattern: str) -> bool:
    """
    Match a POSIX relative path against a glob.

    Wildcards apply within one path segment. Only `**` crosses directories,
    and `**/` may match nothing. Directory paths end with `/`.
    """
    return _match_segments(rel_path.split("/"), pattern.split("/"))


def iter_project_files(
    root: Path,
    include_patterns: Sequence[str],
    exclude_patterns: Sequence[str],
    follow_symlinks: bool = False,
) -> Iterator[Path]:
    """
    Yield files under `root` matching any include and no exclude pattern.

    Excluded directories are pruned without being entered. Directories
    that cannot be listed are logged and skipped.
    """
    def on_error(error: OSError) -> None:
        logger.warning(
            f"Skipping unreadable directory: {error.filename}",
            extra={"reason": error.strerror}
        )

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error, followlinks=follow_symlinks):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"

        dirnames[:] = sorted(
            d for d in dirnames
            if not any(glob_match(f"{prefix}{d}/", p) for p in exclude_patterns)
        )

        for name in sorted(filenames):
            rel_path = f"{prefix}{name}"
            if any(glob_match(rel_path, p) for p in exclude_patterns):
                continue
            if any(glob_match(rel_path, p) for p in include_patterns):
                yield Path(dirpath) / name


class ProjectIndexer:
    """
    Builds ProjectIndex snapshots of source trees.

    Files are deduplicated by real path, classified by extension and
    skipped (with a warning) when their extension is unknown, they are
    larger than the size cutoff or they cannot be stat'ed.
    """

    def __init__(self, max_file_size_mb: Optional[float] = None):
        self.max_file_size_mb = max_file_size_mb or get_settings().project_max_file_size_mb

    def build_index(
        self,
        root_path: str | Path,
        include_patterns: Optional[Sequence[str]] = None,
        exclude_patterns: Optional[Sequence[str]] = None,
        max_file_size_mb: Optional[float] = None,
        follow_symlinks: bool = False,
    ) -> ProjectIndex:
        """
        Index every source file under a root directory.

        Args:
            root_path: Project root
            include_patterns: Globs to include, defaults to all known source extensions
            exclude_patterns: Extra globs to exclude, added to the defaults
            max_file_size_mb: Size cutoff, defaults to the indexer's
            follow_symlinks: Descend into symlinked directories

        Raises:
            ProjectIndexError: the root does not exist or is not a directory
        """
        started = time.perf_counter()
        root = Path(os.path.abspath(root_path))

        if not root.exists():
            raise ProjectIndexError(str(root), "path does not exist")
        if not root.is_dir():
            raise ProjectIndexError(str(root), "path is not a directory")

        include = list(include_patterns or DEFAULT_INCLUDE_PATTERNS)
        exclude = DEFAULT_EXCLUDE_PATTERNS + list(exclude_patterns or [])
        max_bytes = (max_file_size_mb or self.max_file_size_mb) * 1024 * 1024

        logger.info(f"Scanning project: {root}")

        files: list[SourceFile] = []
        counts: Counter = Counter()
        seen: set[str] = set()

        for path in iter_project_files(root, include, exclude, follow_symlinks):
            real_path = os.path.realpath(path)
            if real_path in seen:
                continue
            seen.add(real_path)

            relative_path = path.relative_to(root).as_posix()
            language = detect_language(path)
            if language == ProgrammingLanguage.UNKNOWN:
                logger.warning(f"Skipping file with unknown language: {relative_path}")
                continue

            try:
                size = path.stat().st_size
            except OSError as e:
                logger.warning(
                    f"Failed to stat {relative_path}: {e.strerror or e}",
                    extra={"path": str(path)}
                )
                continue

            if size > max_bytes:
                logger.warning(
                    f"Skipping large file: {relative_path} ({size / 1024 / 1024:.2f}MB)",
                    extra={"path": str(path), "size_bytes": size}
                )
                continue

            files.append(SourceFile(
                absolute_path=str(path),
                relative_path=relative_path,
                extension=path.suffix.lower(),
                size_bytes=size,
                language=language,
            ))
            counts[language] += 1

        index = ProjectIndex(
            root_path=str(root),
            files=tuple(files),
            language_counts=dict(counts),
        )

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Indexed {index.total_files} source files in {elapsed_ms:.0f}ms",
            extra={
                "root": str(root),
                "total_files": index.total_files,
                "languages": {display_name(lang): n for lang, n in counts.items()},
            }
        )
        return index

    def find_project_root(self, start_path: str | Path) -> Optional[str]:
        """
        Ascend from `start_path` to the nearest directory that looks like a
        project root (a manifest/build file or a `src/` directory).

        Returns:
            The detected root, or None when the filesystem root is reached
        """
        current = Path(os.path.abspath(start_path))
        if current.is_file():
            current = current.parent

        while current.parent != current:
            if self._is_project_root(current):
                return str(current)
            current = current.parent

        return None

    def get_directory_stats(self, dir_path: str | Path) -> dict:
        """File totals, per-language counts and the largest file under a directory."""
        root = Path(os.path.abspath(dir_path))
        stats = {
            "total_files": 0,
            "source_files": 0,
            "languages": {},
            "largest_file": None,
        }

        for path in iter_project_files(root, ["**/*"], DEFAULT_EXCLUDE_PATTERNS):
            try:
                size = path.stat().st_size
            except OSError as e:
                logger.warning(f"Failed to stat {path}: {e.strerror or e}")
                continue

            stats["total_files"] += 1
            if is_source_file(path):
                stats["source_files"] += 1
                name = display_name(detect_language(path))
                stats["languages"][name] = stats["languages"].get(name, 0) + 1

            largest = stats["largest_file"]
            if largest is None or size > largest["size"]:
                stats["largest_file"] = {"path": path.relative_to(root).as_posix(), "size": size}

        return stats

    @staticmethod
    def _is_project_root(directory: Path) -> bool:
        for marker in ROOT_MARKERS:
            if (directory / marker).exists():
                return True

        try:
            names = os.listdir(directory)
        except OSError:
            return False

        if any(name.endswith(ROOT_MARKER_SUFFIXES) for name in names):
            return True

        return (directory / "src").is_dir()
