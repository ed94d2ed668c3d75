"""Remediation suggestions for classified CI failures.

Only formatter and linter failures for tools with a known, deterministic
fix mode are marked auto-fixable. Everything else gets a command or hint
for a human to act on.
"""

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from src.domain.entities.check_summary import FixSuggestion
from src.domain.value_objects.check_enums import ErrorType, ExecutionStrategy
from src.domain.value_objects.toolchain import VerificationTask

DETERMINISTIC_CONFIDENCE = 0.95
MANUAL_CONFIDENCE = 0.5

_SCRIPT_RUNNER = re.compile(r"^(?:npm|pnpm|bun) run \S+$")
_HINT_FLAGS = re.IGNORECASE | re.MULTILINE


def _insert_after(tokens: list[str], flag: str, anchor: str) -> str:
    """Place flag right after the tool token so trailing paths stay last."""
    for index, token in enumerate(tokens):
        if token.endswith(anchor):
            position = index + 1
            if position < len(tokens) and tokens[position] == "check":
                position += 1
            return " ".join([*tokens[:position], flag, *tokens[position:]])
    return " ".join([*tokens, flag])


def _drop_flags(*flags: str) -> Callable[[str], str]:
    def transform(command: str) -> str:
        tokens = [t for t in command.split() if t not in flags]
        # "cargo fmt -- --check" leaves a dangling separator behind
        if tokens and tokens[-1] == "--":
            tokens.pop()
        return " ".join(tokens)

    return transform


def _replace_flags(replacement: str, anchor: str, *flags: str) -> Callable[[str], str]:
    def transform(command: str) -> str:
        tokens = command.split()
        if any(t in flags for t in tokens):
            return " ".join(replacement if t in flags else t for t in tokens)
        return _insert_after(tokens, replacement, anchor)

    return transform


def _add_flag(flag: str, anchor: str) -> Callable[[str], str]:
    def transform(command: str) -> str:
        tokens = command.split()
        if flag in tokens:
            return command
        return _insert_after(tokens, flag, anchor)

    return transform


@dataclass(frozen=True)
class FixTransform:
    tool: str
    # Matches a check command that runs this tool
    detect: re.Pattern[str]
    # Matches this tool's output when no command is known
    output_hint: re.Pattern[str]
    default_fix: str
    transform: Callable[[str], str]
    # Flag forwarded through `npm run <script> --` when the script wraps the tool
    script_flag: str | None = None

    def fix_for(self, known_command: str | None) -> str:
        if known_command:
            if self.detect.search(known_command):
                return self.transform(known_command)
            if self.script_flag and _SCRIPT_RUNNER.match(known_command):
                return f"{known_command} -- {self.script_flag}"
        return self.default_fix


FORMAT_FIXES: list[FixTransform] = [
    FixTransform(
        tool="prettier",
        detect=re.compile(r"\bprettier\b"),
        output_hint=re.compile(r"\bprettier\b|code style issues found", _HINT_FLAGS),
        default_fix="npx prettier --write .",
        transform=_replace_flags("--write", "prettier", "--check", "-c", "--list-different", "-l"),
    ),
    FixTransform(
        tool="ruff-format",
        detect=re.compile(r"\bruff format\b"),
        output_hint=re.compile(r"\bruff format\b|^would reformat: ", _HINT_FLAGS),
        default_fix="ruff format .",
        transform=_drop_flags("--check", "--diff"),
    ),
    FixTransform(
        tool="black",
        detect=re.compile(r"\bblack\b"),
        output_hint=re.compile(r"\bblack\b|^would reformat |^oh no!", _HINT_FLAGS),
        default_fix="black .",
        transform=_drop_flags("--check", "--diff"),
    ),
    FixTransform(
        tool="gofmt",
        detect=re.compile(r"\bgofmt\b"),
        output_hint=re.compile(r"\bgofmt\b", _HINT_FLAGS),
        default_fix="gofmt -w .",
        transform=_replace_flags("-w", "gofmt", "-l", "-d"),
    ),
    FixTransform(
        tool="cargo-fmt",
        detect=re.compile(r"\bcargo fmt\b"),
        output_hint=re.compile(r"\bcargo fmt\b|\brustfmt\b|^Diff in \S+ at line \d+", _HINT_FLAGS),
        default_fix="cargo fmt",
        transform=_drop_flags("--check"),
    ),
]

LINT_FIXES: list[FixTransform] = [
    FixTransform(
        tool="eslint",
        detect=re.compile(r"\beslint\b"),
        output_hint=re.compile(r"\beslint\b|\b\d+ problems? \(\d+ errors?", _HINT_FLAGS),
        default_fix="npx eslint --fix .",
        transform=_add_flag("--fix", "eslint"),
        script_flag="--fix",
    ),
    FixTransform(
        tool="ruff",
        detect=re.compile(r"\bruff(?! format)\b"),
        output_hint=re.compile(r"\bruff(?! format)\b|\[\*\] \d+ fixable", _HINT_FLAGS),
        default_fix="ruff check --fix .",
        transform=_add_flag("--fix", "ruff"),
    ),
]

_FIX_TABLE: dict[ErrorType, tuple[VerificationTask, list[FixTransform]]] = {
    ErrorType.FORMAT_ERROR: (VerificationTask.FORMAT, FORMAT_FIXES),
    ErrorType.LINTING_ERROR: (VerificationTask.LINT, LINT_FIXES),
}

_MANUAL_TASK: dict[ErrorType, VerificationTask] = {
    ErrorType.TEST_FAILURE: VerificationTask.TEST,
    ErrorType.TYPE_ERROR: VerificationTask.TYPECHECK,
    ErrorType.BUILD_ERROR: VerificationTask.BUILD,
    ErrorType.LINTING_ERROR: VerificationTask.LINT,
    ErrorType.FORMAT_ERROR: VerificationTask.FORMAT,
}


class SuggestionEngine:
    def get_suggestion(
        self,
        raw_text: str,
        error_type: ErrorType,
        known_commands: Mapping[VerificationTask, str] | None = None,
        affected_files: Sequence[str] = (),
    ) -> FixSuggestion:
        known = known_commands or {}
        text = raw_text or ""

        if error_type in _FIX_TABLE:
            task, fixes = _FIX_TABLE[error_type]
            transform = self._detect_tool(fixes, known.get(task), text)
            if transform is not None:
                return FixSuggestion(
                    command=transform.fix_for(known.get(task)),
                    auto_fixable=True,
                    execution_strategy=ExecutionStrategy.DETERMINISTIC,
                    confidence=DETERMINISTIC_CONFIDENCE,
                    tool=transform.tool,
                )

        return FixSuggestion(
            command=self._manual_command(text, error_type, known, affected_files),
            auto_fixable=False,
            execution_strategy=ExecutionStrategy.MANUAL,
            confidence=MANUAL_CONFIDENCE,
        )

    def _detect_tool(
        self,
        fixes: list[FixTransform],
        known_command: str | None,
        text: str,
    ) -> FixTransform | None:
        if known_command:
            for fix in fixes:
                if fix.detect.search(known_command):
                    return fix
        for fix in fixes:
            if fix.output_hint.search(text):
                return fix
        return None

    def _manual_command(
        self,
        text: str,
        error_type: ErrorType,
        known: Mapping[VerificationTask, str],
        affected_files: Sequence[str],
    ) -> str:
        task = _MANUAL_TASK.get(error_type)
        if task is not None and known.get(task):
            return known[task]

        python_files = [f for f in affected_files if f.endswith((".py", ".pyi"))]
        node_files = [f for f in affected_files if f.endswith((".ts", ".tsx", ".js", ".jsx"))]

        match error_type:
            case ErrorType.TEST_FAILURE:
                if python_files:
                    return f"pytest {' '.join(python_files)} -v"
                if node_files:
                    return f"npm test -- {' '.join(node_files)}"
                return "Re-run the failing tests locally and inspect the output"
            case ErrorType.TYPE_ERROR:
                if python_files:
                    return f"mypy {' '.join(python_files)}"
                if node_files:
                    return "npx tsc --noEmit"
                return "Run the project's type checker locally"
            case ErrorType.BUILD_ERROR:
                return "Run the project's build locally and fix the first compiler error"
            case ErrorType.LINTING_ERROR:
                return "Run the project's linter locally and fix the reported issues"
            case ErrorType.FORMAT_ERROR:
                return "Run the project's formatter locally and commit the result"
            case ErrorType.SECURITY_ISSUE:
                lowered = text.lower()
                if "secret" in lowered or "akia" in lowered or "private key" in lowered:
                    return "Remove the secret from the code and rotate the credential"
                if "vulnerab" in lowered or "cve-" in lowered or "audit" in lowered:
                    return "Upgrade the vulnerable dependencies (e.g. npm audit fix, pip-audit)"
                if "codeql" in lowered:
                    return "Review CodeQL findings at the check details URL"
                return "Review security scan findings"
            case _:
                return "No specific suggestion available"
