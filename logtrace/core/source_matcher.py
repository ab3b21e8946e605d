"""
LogTrace - Source Matcher
=========================

Maps stack frames to candidate locations in a project's source code.

Each frame is matched four ways and the results are pooled:

1. Exact file name      -> Confidence.EXACT_FILE, line number taken from the frame
2. Class definition     -> Confidence.CLASS_DEFINITION per defining line
3. Method definition    -> Confidence.METHOD_WITH_CLASS when the defining line
                           names the frame's class, else Confidence.METHOD_DEFINITION
4. Fuzzy file name      -> Confidence.FUZZY_PATH (opt-in)

Candidates are ranked by confidence (ties keep discovery order), duplicates
of the same (file, line, method) keep the strongest, and the list is cut to
`max_results`.
"""

import functools
import glob
import os
import re
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, NamedTuple, Optional, Sequence

from logtrace.api.schemas import CodeLocation, LocationResult, ProjectIndex, StackFrame
from logtrace.config import get_settings
from logtrace.constants import Confidence, ProgrammingLanguage
from logtrace.core.errors import MatchError
from logtrace.core.language_detector import detect_language
from logtrace.core.project_indexer import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_INCLUDE_PATTERNS,
    iter_project_files,
)
from logtrace.utils.logging import get_logger

logger = get_logger(__name__)

IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")

# Statements and comments that look like C-style declarations but are not
C_NON_DECLARATION = re.compile(
    r"^(?:(?:return|new|throw|else|await|yield|delete|case)\b|//|/?\*)"
)


def _c_family_skip(line: str) -> bool:
    stripped = line.strip()
    return stripped.endswith(";") or bool(C_NON_DECLARATION.match(stripped))


class LanguageFamily(NamedTuple):
    """Definition patterns shared by a group of languages.

    Templates take the regex-escaped name as `{name}`. `skip_line` rejects
    lines before the method pattern is tried.
    """
    languages: frozenset
    class_template: str
    method_template: str
    skip_line: Optional[Callable[[str], bool]] = None


C_FAMILY_METHOD = r"^\s*(?:[\w<>\[\],.*&:~?@]+\s+)+(?:\w+::)*~?{name}\s*\("

LANGUAGE_FAMILIES = [
    LanguageFamily(
        frozenset({ProgrammingLanguage.JAVA, ProgrammingLanguage.KOTLIN, ProgrammingLanguage.SCALA}),
        r"\b(?:class|interface|enum|object|trait)\s+{name}\b",
        C_FAMILY_METHOD,
        _c_family_skip,
    ),
    LanguageFamily(
        frozenset({ProgrammingLanguage.CSHARP, ProgrammingLanguage.CPP}),
        r"\b(?:class|struct|interface|enum)\s+{name}\b",
        C_FAMILY_METHOD,
        _c_family_skip,
    ),
    LanguageFamily(
        frozenset({ProgrammingLanguage.PYTHON}),
        r"^\s*class\s+{name}\s*[(:]",
        r"^\s*(?:async\s+)?def\s+{name}\s*\(",
    ),
    LanguageFamily(
        frozenset({ProgrammingLanguage.JAVASCRIPT, ProgrammingLanguage.TYPESCRIPT}),
        r"\bclass\s+{name}\b",
        r"(?:\bfunction\s*\*?\s*{name}\s*\("
        r"|\b{name}\s*[:=]\s*(?:async\s+)?(?:function\b|\([^)]*\)\s*=>|\w+\s*=>)"
        r"|^\s*(?:(?:public|private|protected|static|async|get|set|readonly)\s+)*"
        r"{name}\s*\([^)]*\)\s*(?::[^{{]*)?\{{)",
    ),
    LanguageFamily(
        frozenset({ProgrammingLanguage.GO}),
        r"\btype\s+{name}\s+(?:struct|interface)\b",
        r"^func\s+(?:\([^)]*\)\s*)?{name}\s*[(\[]",
    ),
    LanguageFamily(
        frozenset({ProgrammingLanguage.RUST}),
        r"\b(?:struct|enum|trait)\s+{name}\b",
        r"\bfn\s+{name}\s*[(<]",
    ),
    LanguageFamily(
        frozenset({ProgrammingLanguage.RUBY}),
        r"^\s*(?:class|module)\s+{name}\b",
        r"^\s*def\s+(?:self\.)?{name}\b",
    ),
    LanguageFamily(
        frozenset({ProgrammingLanguage.PHP}),
        r"\b(?:class|interface|trait)\s+{name}\b",
        r"\bfunction\s+&?{name}\s*\(",
    ),
]

DEFAULT_FAMILY = LanguageFamily(frozenset(), r"\bclass\s+{name}\b", r"\b{name}\s*\(")

FAMILY_BY_LANGUAGE = {
    language: family
    for family in LANGUAGE_FAMILIES
    for language in family.languages
}


@functools.lru_cache(maxsize=1024)
def _definition_pattern(template: str, name: str) -> re.Pattern:
    return re.compile(template.format(name=re.escape(name)))


def _basename(file_name: str) -> str:
    """Last path segment of a frame's file name, for either separator."""
    return re.split(r"[\\/]", file_name.strip())[-1]


def simple_class_name(class_name: str) -> str:
    return class_name.split(".")[-1]


class _Candidate(NamedTuple):
    absolute_path: str
    relative_path: str
    language: ProgrammingLanguage


class SourceMatcher:
    """
    Finds code locations for stack frames.

    With a ProjectIndex the indexed files are searched and their contents
    cached for one find_locations call. Without one, every strategy walks
    the project tree afresh. Files are scanned on a thread pool when
    `scan_workers` is above one.
    """

    def __init__(
        self,
        project_index: Optional[ProjectIndex] = None,
        scan_workers: Optional[int] = None,
    ):
        settings = get_settings()
        self.project_index = project_index
        self.scan_workers = scan_workers or settings.scan_workers
        self.default_max_results = settings.max_results
        self.default_fuzzy_match = settings.fuzzy_match

    def set_project_index(self, index: Optional[ProjectIndex]) -> None:
        self.project_index = index

    def find_locations(
        self,
        frames: Sequence[StackFrame],
        project_root: str | Path,
        max_results: Optional[int] = None,
        fuzzy_match: Optional[bool] = None,
    ) -> LocationResult:
        """
        Rank candidate code locations for a list of stack frames.

        Args:
            frames: Frames of one error in the order they were logged
            project_root: Root searched when no index is set
            max_results: Cap on returned locations, defaults to settings
            fuzzy_match: Enable the fuzzy file name strategy, defaults to settings

        Returns:
            LocationResult with locations ordered by descending confidence
        """
        started = time.perf_counter()
        max_results = max_results or self.default_max_results
        if fuzzy_match is None:
            fuzzy_match = self.default_fuzzy_match

        root = Path(os.path.abspath(project_root))
        cache: Optional[dict[str, Optional[list[str]]]] = {} if self.project_index else None

        if self.scan_workers > 1:
            with ThreadPoolExecutor(max_workers=self.scan_workers) as pool:
                candidates = self._collect(frames, root, cache, pool.map, fuzzy_match)
        else:
            candidates = self._collect(frames, root, cache, map, fuzzy_match)

        locations = self._rank(candidates)[:max_results]

        related_files: list[str] = []
        for location in locations:
            if location.file_path not in related_files:
                related_files.append(location.file_path)

        result = LocationResult(
            locations=locations,
            related_files=related_files,
            search_time_ms=(time.perf_counter() - started) * 1000,
            index_used=self.project_index is not None,
        )

        logger.debug(
            f"Matched {len(frames)} frames to {len(locations)} locations",
            extra={
                "frame_count": len(frames),
                "candidate_count": len(candidates),
                "index_used": result.index_used,
            }
        )
        return result

    # =========================================================================
    # STRATEGIES
    # =========================================================================

    def _collect(
        self,
        frames: Sequence[StackFrame],
        root: Path,
        cache: Optional[dict[str, Optional[list[str]]]],
        mapper: Callable,
        fuzzy_match: bool,
    ) -> list[CodeLocation]:
        candidates: list[CodeLocation] = []
        for frame in frames:
            if frame.file_name:
                candidates.extend(self._match_file_name(frame, root))
            if frame.class_name:
                candidates.extend(self._match_class(frame, root, cache, mapper))
            if frame.method_name:
                candidates.extend(self._match_method(frame, root, cache, mapper))
            if fuzzy_match and frame.file_name:
                candidates.extend(self._match_fuzzy(frame, root))
        return candidates

    def _match_file_name(self, frame: StackFrame, root: Path) -> list[CodeLocation]:
        base_name = _basename(frame.file_name)
        if not base_name:
            return []

        if self.project_index is not None:
            matches = [
                f.absolute_path for f in self.project_index.files
                if os.path.basename(f.absolute_path) == base_name
            ]
        else:
            matches = [
                str(path) for path in
                iter_project_files(root, [f"**/{glob.escape(base_name)}"], DEFAULT_EXCLUDE_PATTERNS)
            ]

        return [
            CodeLocation(
                file_path=path,
                line_number=frame.line_number,
                class_name=frame.class_name,
                method_name=frame.method_name,
                confidence=Confidence.EXACT_FILE,
                match_reason=f"exact file name match: {base_name}",
            )
            for path in matches
        ]

    def _match_class(self, frame: StackFrame, root: Path, cache, mapper) -> list[CodeLocation]:
        class_name = simple_class_name(frame.class_name)
        if not IDENTIFIER.match(class_name):
            return []

        def scan(candidate: _Candidate) -> list[CodeLocation]:
            lines = self._read_lines(candidate.absolute_path, cache)
            if lines is None:
                return []
            family = FAMILY_BY_LANGUAGE.get(candidate.language, DEFAULT_FAMILY)
            pattern = _definition_pattern(family.class_template, class_name)
            return [
                CodeLocation(
                    file_path=candidate.absolute_path,
                    line_number=number,
                    class_name=class_name,
                    confidence=Confidence.CLASS_DEFINITION,
                    match_reason=f"class definition: {class_name}",
                )
                for number, line in enumerate(lines, 1)
                if pattern.search(line)
            ]

        return self._scan_files(self._source_files(root), scan, mapper)

    def _match_method(self, frame: StackFrame, root: Path, cache, mapper) -> list[CodeLocation]:
        method_name = frame.method_name.strip()
        if not IDENTIFIER.match(method_name):
            return []
        class_name = simple_class_name(frame.class_name) if frame.class_name else None

        def scan(candidate: _Candidate) -> list[CodeLocation]:
            lines = self._read_lines(candidate.absolute_path, cache)
            if lines is None:
                return []
            family = FAMILY_BY_LANGUAGE.get(candidate.language, DEFAULT_FAMILY)
            pattern = _definition_pattern(family.method_template, method_name)

            found = []
            for number, line in enumerate(lines, 1):
                if family.skip_line is not None and family.skip_line(line):
                    continue
                if not pattern.search(line):
                    continue
                confidence = (
                    Confidence.METHOD_WITH_CLASS
                    if class_name and class_name in line
                    else Confidence.METHOD_DEFINITION
                )
                found.append(CodeLocation(
                    file_path=candidate.absolute_path,
                    line_number=number,
                    class_name=frame.class_name,
                    method_name=method_name,
                    confidence=confidence,
                    match_reason=f"method definition: {method_name}",
                ))
            return found

        return self._scan_files(self._source_files(root), scan, mapper)

    def _match_fuzzy(self, frame: StackFrame, root: Path) -> list[CodeLocation]:
        stem = os.path.splitext(_basename(frame.file_name))[0]
        if not stem:
            return []

        if self.project_index is not None:
            paths = [
                f.absolute_path for f in self.project_index.files
                if stem in f.relative_path
            ]
        else:
            paths = [
                str(path) for path in iter_project_files(root, ["**/*"], DEFAULT_EXCLUDE_PATTERNS)
                if stem in path.relative_to(root).as_posix()
            ]

        return [
            CodeLocation(
                file_path=path,
                line_number=frame.line_number,
                confidence=Confidence.FUZZY_PATH,
                match_reason=f"fuzzy file name match: {stem}",
            )
            for path in paths
        ]

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _source_files(self, root: Path) -> list[_Candidate]:
        if self.project_index is not None:
            return [
                _Candidate(f.absolute_path, f.relative_path, f.language)
                for f in self.project_index.files
            ]

        return [
            _Candidate(str(path), path.relative_to(root).as_posix(), detect_language(path))
            for path in iter_project_files(root, DEFAULT_INCLUDE_PATTERNS, DEFAULT_EXCLUDE_PATTERNS)
        ]

    @staticmethod
    def _scan_files(
        candidates: Iterable[_Candidate],
        scan: Callable[[_Candidate], list[CodeLocation]],
        mapper,
    ) -> list[CodeLocation]:
        # map keeps file order regardless of which worker finished first
        found: list[CodeLocation] = []
        for locations in mapper(scan, candidates):
            found.extend(locations)
        return found

    @staticmethod
    def _read_lines(path: str, cache: Optional[dict]) -> Optional[list[str]]:
        if cache is not None and path in cache:
            return cache[path]

        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                lines = [line.rstrip("\r") for line in f.read().split("\n")]
        except OSError as e:
            error = MatchError(path, e.strerror or str(e))
            logger.warning(str(error), extra={"path": path})
            lines = None

        if cache is not None:
            cache[path] = lines
        return lines

    @staticmethod
    def _rank(candidates: list[CodeLocation]) -> list[CodeLocation]:
        ranked = sorted(candidates, key=lambda loc: loc.confidence, reverse=True)

        seen = set()
        unique = []
        for location in ranked:
            if location.dedup_key in seen:
                continue
            seen.add(location.dedup_key)
            unique.append(location)
        return unique
