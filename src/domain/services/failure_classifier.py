"""Heuristic classification of failed CI check runs.

Rules are an ordered list of (predicate, ErrorType) pairs. The first rule
whose predicate matches decides the type, no matter where in the output the
match occurs, so a leaked AWS key is a security issue even when the same log
also reports failing tests.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from src.domain.entities.check_run import Annotation, CheckRun
from src.domain.value_objects.check_enums import ErrorType

# Upper bound on scanned characters per field; CI logs can be megabytes.
MAX_SCAN_CHARS = 100_000

_FLAGS = re.IGNORECASE | re.MULTILINE


@dataclass(frozen=True)
class ClassificationInput:
    name: str = ""
    title: str = ""
    summary: str = ""
    text: str = ""
    annotation_text: str = ""

    @classmethod
    def from_check(cls, check: CheckRun) -> "ClassificationInput":
        annotation_text = "\n".join(
            f"{a.path}: {a.title} {a.message}".strip() for a in check.annotations
        )
        return cls(
            name=check.name or "",
            title=check.title or "",
            summary=check.summary or "",
            text=check.text or "",
            annotation_text=annotation_text,
        )

    @property
    def body(self) -> str:
        parts = (self.title, self.summary, self.text, self.annotation_text)
        return "\n".join(part[:MAX_SCAN_CHARS] for part in parts if part)


Predicate = Callable[[ClassificationInput], bool]


def _word(*alternatives: str) -> str:
    """Alternation bounded by non-alphanumerics, so 'unit_tests' matches 'tests'."""
    return r"(?<![a-z0-9])(?:" + "|".join(alternatives) + r")(?![a-z0-9])"


def matches_any(body_patterns: list[str], name_pattern: str | None = None) -> Predicate:
    compiled = [re.compile(p, _FLAGS) for p in body_patterns]
    name_re = re.compile(name_pattern, re.IGNORECASE) if name_pattern else None

    def predicate(source: ClassificationInput) -> bool:
        if name_re is not None and name_re.search(source.name):
            return True
        body = source.body
        return any(p.search(body) for p in compiled)

    return predicate


SECURITY_PATTERNS = [
    r"AKIA[0-9A-Z]{16}",
    r"(?<![A-Za-z0-9])gh[pousr]_[A-Za-z0-9]{36}",
    r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----",
    r"\bCVE-\d{4}-\d{4,}\b",
    r"\bGHSA(?:-[0-9a-z]{4}){3}\b",
    r"\bvulnerabilit(?:y|ies)\b",
    r"\b(?:secrets?|credentials?|tokens?) (?:detected|found|leaked|exposed)\b",
    _word(
        "gitleaks",
        "trufflehog",
        "detect-secrets",
        "codeql",
        "snyk",
        "npm audit",
        "pip-audit",
        "cargo audit",
        "govulncheck",
    ),
]

TEST_PATTERNS = [
    r"^[ \t]*FAILED\s+\S+::",
    # pytest summary: ===== 2 failed, 10 passed in 1.2s =====
    r"(?<!=)={3,} .{0,200}?\b\d+ failed\b.{0,200}? ={3,}",
    r"\b\d+ (?:tests?|specs?|examples?) failed\b",
    r"^Tests?:\s+\d+ failed",
    r"(?-i:^[ \t]*FAIL\s+\S+)",
    r"^--- FAIL: ",
    r"test result: FAILED",
    r"\bAssertionError\b",
    r"\bassertion failed\b",
]

TYPE_PATTERNS = [
    r"\berror TS\d{4,5}\b",
    r"^\S+\.pyi?:\d+: error: .*\[[a-z-]+\]\s*$",
    r"\bFound \d+ errors? in \d+ files? \(checked",
    r"\bincompatible types?\b",
    r"\bis not assignable to (?:type|parameter)\b",
    r"(?-i:\breport[A-Z][A-Za-z]+\b)",
    _word("mypy", "pyright", "vue-tsc", r"tsc --noemit"),
]

LINT_PATTERNS = [
    _word("eslint", "ruff", "flake8", "pylint", "golangci-lint", "clippy", "stylelint"),
    r"(?-i:^\S+:\d+:\d+: [A-Z]{1,3}\d{3,4}\b)",
    r"\b\d+ problems? \(\d+ errors?",
    r"^Found \d+ errors?\.\s*$",
    r"\[\*\] \d+ fixable",
]

BUILD_PATTERNS = [
    r"\bbuild failed\b",
    r"\bcompilation failed\b",
    r"\bfailed to compile\b",
    r"\berror\[E\d{4}\]",
    r"\bcould not compile `",
    r"\bundefined reference to\b",
    r"\bld returned \d+ exit status\b",
    r"\blinker command failed\b",
    r"\bModule not found: Error\b",
    r"(?-i:^ERROR in \S+)",
    r"\bcannot find package\b",
]

FORMAT_PATTERNS = [
    r"\bwould reformat\b",
    r"\b\d+ files? would be reformatted\b",
    r"\bCode style issues found\b",
    r"(?-i:^Diff in \S+ at line \d+)",
    r"\bnot (?:properly )?formatted\b",
    _word("prettier", "black", "gofmt", "rustfmt", "cargo fmt", "ruff format"),
]

CLASSIFICATION_RULES: list[tuple[Predicate, ErrorType]] = [
    (
        matches_any(
            SECURITY_PATTERNS,
            _word("security", "codeql", "secrets?", r"vuln\w*", "audit", "dependency-review"),
        ),
        ErrorType.SECURITY_ISSUE,
    ),
    (
        matches_any(
            TEST_PATTERNS,
            _word("tests?", "specs?", "pytest", "jest", "vitest", "mocha", "unittest", "e2e"),
        ),
        ErrorType.TEST_FAILURE,
    ),
    (
        matches_any(
            TYPE_PATTERNS,
            _word("types?", "typecheck", "type-check", "typing", "mypy", "pyright", "tsc"),
        ),
        ErrorType.TYPE_ERROR,
    ),
    (
        matches_any(
            LINT_PATTERNS,
            _word("lint", "linter", "linting", "eslint", "ruff", "flake8", "pylint", "clippy"),
        ),
        ErrorType.LINTING_ERROR,
    ),
    (
        matches_any(
            BUILD_PATTERNS,
            _word("build", "compile", "webpack", "rollup", "vite", "bundle"),
        ),
        ErrorType.BUILD_ERROR,
    ),
    (
        matches_any(
            FORMAT_PATTERNS,
            _word("format", "formatting", "fmt", "prettier", "black", "gofmt", "rustfmt"),
        ),
        ErrorType.FORMAT_ERROR,
    ),
]


_EXT = r"(?:pyi?|tsx?|jsx?|mjs|cjs|go|rs)"
# Paths start at a token boundary and are at most 256 characters long.
_PATH = r"(?<![A-Za-z0-9_\-./])[A-Za-z0-9_\-./]{1,256}"

FILE_PATTERNS = [
    # pytest: tests/test_auth.py::test_login FAILED
    re.compile(rf"({_PATH}\.{_EXT})::"),
    # TypeScript: src/components/Button.tsx(45,12): error TS2322
    re.compile(rf"({_PATH}\.{_EXT})\(\d+,\d+\)"),
    # Python traceback: File "app/models/user.py", line 123
    re.compile(rf'File "({_PATH}\.{_EXT})", line \d+'),
    # Rust: --> src/main.rs:3:5
    re.compile(rf"-->\s*({_PATH}\.{_EXT}):\d+"),
    # Go, ruff, flake8, mypy: pkg/server.go:12:3: ...
    re.compile(rf"(?:^|[\s'\"])({_PATH}\.{_EXT}):\d+", re.MULTILINE),
    # ESLint stylish: a path alone on its line
    re.compile(rf"^[ \t]*({_PATH}\.{_EXT})[ \t]*$", re.MULTILINE),
]

# GitHub-hosted runners check out into /home/runner/work/<repo>/<repo>/
_RUNNER_PREFIX = re.compile(r"^.*?/work/[^/]+/[^/]+/")


def _normalize_path(path: str) -> str:
    path = _RUNNER_PREFIX.sub("", path)
    while path.startswith("./"):
        path = path[2:]
    return path


def extract_affected_files(text: str, annotations: list[Annotation] | None = None) -> list[str]:
    """Collect file paths mentioned in check output, in order of appearance."""
    files: list[str] = []
    seen: set[str] = set()

    def add(path: str) -> None:
        normalized = _normalize_path(path)
        if normalized and normalized not in seen:
            seen.add(normalized)
            files.append(normalized)

    for annotation in annotations or []:
        if annotation.path:
            add(annotation.path)

    scanned = (text or "")[:MAX_SCAN_CHARS]
    hits: list[tuple[int, str]] = []
    for pattern in FILE_PATTERNS:
        for match in pattern.finditer(scanned):
            hits.append((match.start(1), match.group(1)))
    for _, path in sorted(hits):
        add(path)

    return files


class FailureClassifier:
    """Maps a failed check run onto the closed ErrorType taxonomy."""

    def __init__(self, rules: list[tuple[Predicate, ErrorType]] | None = None) -> None:
        self._rules = rules if rules is not None else CLASSIFICATION_RULES

    def classify(self, check: CheckRun) -> ErrorType:
        return self.classify_input(ClassificationInput.from_check(check))

    def classify_input(self, source: ClassificationInput) -> ErrorType:
        for predicate, error_type in self._rules:
            if predicate(source):
                return error_type
        return ErrorType.UNKNOWN

    def affected_files(self, check: CheckRun) -> list[str]:
        text = "\n".join(part for part in (check.summary, check.text) if part)
        return extract_affected_files(text, check.annotations)
