"""Filesystem-based toolchain detection.

Reads marker files, lockfiles, the Makefile and package.json of a
repository. Never touches the network and never writes. Results are not
cached: a lockfile added between two runs is picked up by the second.
"""

import json
import re
from pathlib import Path

from loguru import logger

from src.domain.entities.detected_environment import DetectedEnvironment
from src.domain.errors import DetectionError
from src.domain.value_objects.toolchain import (
    DEFAULT_PACKAGE_MANAGER,
    Language,
    PackageManager,
)
from src.domain.value_objects.workflow_config import WorkflowConfig

OVERRIDE_CONFIDENCE = 100
MARKER_CONFIDENCE = 95
FALLBACK_CONFIDENCE = 50
FALLBACK_LANGUAGE = Language.NODEJS

# Dict order is detection priority: the first language with a marker is primary.
LANGUAGE_MARKERS: dict[Language, tuple[str, ...]] = {
    Language.PYTHON: (
        "pyproject.toml",
        "setup.py",
        "requirements.txt",
        "Pipfile",
        ".python-version",
    ),
    Language.NODEJS: ("package.json", "package-lock.json", "yarn.lock", "pnpm-lock.yaml"),
    Language.GO: ("go.mod", "go.sum"),
    Language.RUST: ("Cargo.toml", "Cargo.lock"),
}

LOCKFILE_PRIORITY: dict[Language, tuple[tuple[str, PackageManager], ...]] = {
    Language.PYTHON: (
        ("poetry.lock", PackageManager.POETRY),
        ("Pipfile.lock", PackageManager.PIPENV),
        ("uv.lock", PackageManager.UV),
        ("requirements.txt", PackageManager.PIP),
    ),
    Language.NODEJS: (
        ("pnpm-lock.yaml", PackageManager.PNPM),
        ("yarn.lock", PackageManager.YARN),
        ("bun.lockb", PackageManager.BUN),
        ("package-lock.json", PackageManager.NPM),
    ),
    Language.GO: (("go.mod", PackageManager.GO_MOD),),
    Language.RUST: (("Cargo.toml", PackageManager.CARGO),),
}

MAKEFILE_NAMES = ("GNUmakefile", "makefile", "Makefile")

# How many directories (starting dir included) the workspace search inspects.
MAX_WORKSPACE_DEPTH = 8

_NAME = r"[A-Za-z0-9_][A-Za-z0-9_.\-/]*"
_TARGET_LINE = re.compile(rf"^({_NAME}(?:[ \t]+{_NAME})*)[ \t]*(::?)(.*)$")


def parse_makefile_targets(content: str) -> list[str]:
    """Extract explicit target names from Makefile text.

    Deliberately conservative: recipe lines, comments, variable assignments,
    special targets (``.PHONY``) and pattern rules (``%.o:``) are ignored.
    """
    targets: set[str] = set()
    for line in content.splitlines():
        if not line or line.startswith("\t") or line.lstrip().startswith("#"):
            continue
        match = _TARGET_LINE.match(line)
        if match is None:
            continue
        names, colons, rest = match.groups()
        # FOO := x, FOO ::= x
        if rest.startswith("=") or (colons == "::" and rest.startswith(":=")):
            continue
        for name in names.split():
            if name.startswith(".") or "%" in name:
                continue
            targets.add(name)
    return sorted(targets)


def read_makefile_targets(directory: Path) -> list[str]:
    for name in MAKEFILE_NAMES:
        path = directory / name
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("Could not read {}: {}", path, e)
            return []
        return parse_makefile_targets(content)
    return []


def _load_package_json(directory: Path) -> dict | None:
    path = directory / "package.json"
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug(f"Ignoring invalid {path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def read_package_scripts(directory: Path) -> frozenset[str] | None:
    try:
        data = _load_package_json(directory)
    except OSError as e:
        logger.warning("Could not read package.json in {}: {}", directory, e)
        return None
    if data is None:
        return None
    scripts = data.get("scripts")
    if not isinstance(scripts, dict):
        return frozenset()
    return frozenset(str(name) for name in scripts)


def _is_workspace_root(directory: Path) -> bool:
    package_json = _load_package_json(directory)
    if package_json is not None and package_json.get("workspaces"):
        return True
    has_package_json = (directory / "package.json").is_file()
    if (directory / "pnpm-workspace.yaml").is_file() and has_package_json:
        return True
    return (directory / ".yarnrc.yml").is_file() and has_package_json


def find_workspace_root(start: Path, max_depth: int = MAX_WORKSPACE_DEPTH) -> Path | None:
    """Nearest ancestor (or start itself) that is a JS workspace root."""
    try:
        current = start.resolve()
        for _ in range(max_depth):
            if _is_workspace_root(current):
                return current
            if current.parent == current:
                break
            current = current.parent
    except OSError as e:
        logger.debug(f"Workspace search stopped at {start}: {e}")
    return None


class ToolchainDetector:
    def detect(
        self,
        repo_root: Path | str,
        config: WorkflowConfig | None = None,
    ) -> DetectedEnvironment:
        config = config or WorkflowConfig()
        root = Path(repo_root)
        try:
            return self._detect(root, config)
        except DetectionError as e:
            logger.warning("Toolchain detection failed, using defaults: {}", e)
            language = config.language or FALLBACK_LANGUAGE
            return DetectedEnvironment(
                primary_language=language,
                confidence=OVERRIDE_CONFIDENCE if config.language else FALLBACK_CONFIDENCE,
                package_manager=config.package_manager or DEFAULT_PACKAGE_MANAGER[language],
            )

    def _detect(self, root: Path, config: WorkflowConfig) -> DetectedEnvironment:
        try:
            entries = {entry.name for entry in root.iterdir()}
        except OSError as e:
            raise DetectionError(f"cannot list {root}: {e}") from e

        found = {
            language: [m for m in markers if m in entries]
            for language, markers in LANGUAGE_MARKERS.items()
        }
        detected = [language for language, markers in found.items() if markers]

        if config.language is not None:
            primary = config.language
            confidence = OVERRIDE_CONFIDENCE
        elif detected:
            primary = detected[0]
            confidence = MARKER_CONFIDENCE
        else:
            primary = FALLBACK_LANGUAGE
            confidence = FALLBACK_CONFIDENCE
        additional = [language for language in detected if language != primary]

        package_manager, lock_file = self._package_manager(root, entries, primary, config)

        env = DetectedEnvironment(
            primary_language=primary,
            additional_languages=additional,
            confidence=confidence,
            package_manager=package_manager,
            lock_file=lock_file,
            makefile_targets=read_makefile_targets(root),
            workspace_root=find_workspace_root(root),
            package_scripts=read_package_scripts(root),
            markers=[m for language in detected for m in found[language]],
        )
        logger.debug(
            f"Detected {env.primary_language.value} ({env.confidence}%) "
            f"with {env.package_manager.value} in {root}"
        )
        return env

    def _package_manager(
        self,
        root: Path,
        entries: set[str],
        language: Language,
        config: WorkflowConfig,
    ) -> tuple[PackageManager, Path | None]:
        if config.package_manager is not None:
            return config.package_manager, None
        for lockfile, manager in LOCKFILE_PRIORITY[language]:
            if lockfile in entries:
                return manager, root / lockfile
        return DEFAULT_PACKAGE_MANAGER[language], None


def summary(env: DetectedEnvironment) -> str:
    """Human-readable detection report, used by dry runs and `mergepilot detect`."""
    lines = [
        f"Language: {env.primary_language.value} (confidence {env.confidence}%)",
        f"Package manager: {env.package_manager.value}",
    ]
    if env.additional_languages:
        lines.append(
            "Additional languages: " + ", ".join(lang.value for lang in env.additional_languages)
        )
    if env.lock_file is not None:
        lines.append(f"Lock file: {env.lock_file.name}")
    if env.markers:
        lines.append("Markers: " + ", ".join(env.markers))
    if env.makefile_targets:
        lines.append("Makefile targets: " + ", ".join(env.makefile_targets))
    if env.workspace_root is not None:
        lines.append(f"Workspace root: {env.workspace_root}")
    if env.package_scripts:
        lines.append("package.json scripts: " + ", ".join(sorted(env.package_scripts)))
    return "\n".join(lines)
