"""
LogTrace - Language Detector
============================

Maps source file extensions to programming languages.
"""

from pathlib import Path

from logtrace.constants import ProgrammingLanguage


EXTENSION_MAP: dict[str, ProgrammingLanguage] = {
    ".java": ProgrammingLanguage.JAVA,
    ".js": ProgrammingLanguage.JAVASCRIPT,
    ".jsx": ProgrammingLanguage.JAVASCRIPT,
    ".mjs": ProgrammingLanguage.JAVASCRIPT,
    ".cjs": ProgrammingLanguage.JAVASCRIPT,
    ".ts": ProgrammingLanguage.TYPESCRIPT,
    ".tsx": ProgrammingLanguage.TYPESCRIPT,
    ".py": ProgrammingLanguage.PYTHON,
    ".pyw": ProgrammingLanguage.PYTHON,
    ".cs": ProgrammingLanguage.CSHARP,
    ".cpp": ProgrammingLanguage.CPP,
    ".cxx": ProgrammingLanguage.CPP,
    ".cc": ProgrammingLanguage.CPP,
    ".c": ProgrammingLanguage.CPP,
    ".hpp": ProgrammingLanguage.CPP,
    ".hxx": ProgrammingLanguage.CPP,
    ".h": ProgrammingLanguage.CPP,
    ".go": ProgrammingLanguage.GO,
    ".rs": ProgrammingLanguage.RUST,
    ".php": ProgrammingLanguage.PHP,
    ".rb": ProgrammingLanguage.RUBY,
    ".kt": ProgrammingLanguage.KOTLIN,
    ".kts": ProgrammingLanguage.KOTLIN,
    ".scala": ProgrammingLanguage.SCALA,
    ".sc": ProgrammingLanguage.SCALA,
}

DISPLAY_NAMES: dict[ProgrammingLanguage, str] = {
    ProgrammingLanguage.JAVA: "Java",
    ProgrammingLanguage.JAVASCRIPT: "JavaScript",
    ProgrammingLanguage.TYPESCRIPT: "TypeScript",
    ProgrammingLanguage.PYTHON: "Python",
    ProgrammingLanguage.CSHARP: "C#",
    ProgrammingLanguage.CPP: "C/C++",
    ProgrammingLanguage.GO: "Go",
    ProgrammingLanguage.RUST: "Rust",
    ProgrammingLanguage.PHP: "PHP",
    ProgrammingLanguage.RUBY: "Ruby",
    ProgrammingLanguage.KOTLIN: "Kotlin",
    ProgrammingLanguage.SCALA: "Scala",
    ProgrammingLanguage.UNKNOWN: "Unknown",
}


def detect_language(file_path: str | Path) -> ProgrammingLanguage:
    """Language of a file judged by its extension."""
    return EXTENSION_MAP.get(Path(file_path).suffix.lower(), ProgrammingLanguage.UNKNOWN)


def is_source_file(file_path: str | Path) -> bool:
    return Path(file_path).suffix.lower() in EXTENSION_MAP


def supported_extensions() -> list[str]:
    return list(EXTENSION_MAP)


def display_name(language: ProgrammingLanguage) -> str:
    return DISPLAY_NAMES[language]
