"""Turns an abstract verification task into one concrete shell command.

Resolution walks a fixed priority chain and the first applicable source
wins:

1. an explicit command from the workflow config;
2. a Makefile target (configured target, alias, or the task name itself);
3. the detected package manager's own command for the task;
4. native tools for the language, first one found on PATH;
5. nothing: optional tasks are skipped, required tasks carry suggestions.

The only side effect is the PATH probe, so resolving the same request twice
gives the same answer.
"""

from dataclasses import dataclass

from loguru import logger

from src.domain.entities.resolved_command import ResolvedCommand, ResolveRequest
from src.domain.ports.tool_probe_port import ToolProbePort
from src.domain.value_objects.toolchain import (
    DEFAULT_PACKAGE_MANAGER,
    CommandSource,
    Language,
    PackageManager,
    VerificationTask,
)

T = VerificationTask


@dataclass(frozen=True)
class PackageManagerCommand:
    command: str
    # package.json script the command runs, when it runs one
    script: str | None = None

    @property
    def executable(self) -> str:
        return self.command.split()[0]


def _scripts(runner: str, test: str) -> dict[VerificationTask, PackageManagerCommand]:
    return {
        T.LINT: PackageManagerCommand(f"{runner} lint", "lint"),
        T.TEST: PackageManagerCommand(test, "test"),
        T.TYPECHECK: PackageManagerCommand(f"{runner} typecheck", "typecheck"),
        T.FORMAT: PackageManagerCommand(f"{runner} format:check", "format:check"),
        T.BUILD: PackageManagerCommand(f"{runner} build", "build"),
    }


def _python_runner(prefix: str) -> dict[VerificationTask, PackageManagerCommand]:
    return {
        T.LINT: PackageManagerCommand(f"{prefix} ruff check ."),
        T.TEST: PackageManagerCommand(f"{prefix} pytest"),
        T.TYPECHECK: PackageManagerCommand(f"{prefix} mypy ."),
        T.FORMAT: PackageManagerCommand(f"{prefix} ruff format --check ."),
    }


PACKAGE_MANAGER_COMMANDS: dict[PackageManager, dict[VerificationTask, PackageManagerCommand]] = {
    PackageManager.POETRY: {
        **_python_runner("poetry run"),
        T.INSTALL: PackageManagerCommand("poetry install"),
    },
    PackageManager.PIPENV: {
        **_python_runner("pipenv run"),
        T.INSTALL: PackageManagerCommand("pipenv install --dev"),
    },
    PackageManager.UV: {
        **_python_runner("uv run"),
        T.INSTALL: PackageManagerCommand("uv sync"),
    },
    PackageManager.PIP: {
        T.INSTALL: PackageManagerCommand("pip install -r requirements.txt"),
    },
    PackageManager.NPM: {
        **_scripts("npm run", "npm test"),
        T.INSTALL: PackageManagerCommand("npm ci"),
    },
    PackageManager.PNPM: {
        **_scripts("pnpm run", "pnpm test"),
        T.INSTALL: PackageManagerCommand("pnpm install --frozen-lockfile"),
    },
    PackageManager.YARN: {
        **_scripts("yarn", "yarn test"),
        T.INSTALL: PackageManagerCommand("yarn install --frozen-lockfile"),
    },
    PackageManager.BUN: {
        **_scripts("bun run", "bun run test"),
        T.INSTALL: PackageManagerCommand("bun install"),
    },
    PackageManager.GO_MOD: {
        T.INSTALL: PackageManagerCommand("go mod download"),
    },
    PackageManager.CARGO: {
        T.LINT: PackageManagerCommand("cargo clippy"),
        T.TEST: PackageManagerCommand("cargo test"),
        T.FORMAT: PackageManagerCommand("cargo fmt --check"),
        T.BUILD: PackageManagerCommand("cargo build"),
        T.INSTALL: PackageManagerCommand("cargo fetch"),
    },
}

# Every (language, task) pair has an entry; an empty list means the task
# has no native tool for that language.
NATIVE_COMMANDS: dict[Language, dict[VerificationTask, list[str]]] = {
    Language.PYTHON: {
        T.LINT: ["ruff check .", "flake8 .", "pylint ."],
        T.TEST: ["pytest", "python -m pytest", "tox"],
        T.TYPECHECK: ["mypy .", "pyright ."],
        T.FORMAT: ["black --check .", "ruff format --check .", "autopep8 --diff --recursive ."],
        T.BUILD: [],
        T.INSTALL: ["pip install -r requirements.txt"],
    },
    Language.NODEJS: {
        T.LINT: ["npx eslint ."],
        T.TEST: ["npx jest", "npx vitest run"],
        T.TYPECHECK: ["npx tsc --noEmit"],
        T.FORMAT: [
            "prettier --check .",
            "biome check --formatter-enabled=true .",
            "npx prettier --check .",
        ],
        T.BUILD: ["npx tsc"],
        T.INSTALL: ["npm ci", "npm install"],
    },
    Language.GO: {
        T.LINT: ["golangci-lint run", "go vet ./..."],
        T.TEST: ["go test ./..."],
        T.TYPECHECK: [],
        T.FORMAT: ["gofmt -l .", "goimports -l ."],
        T.BUILD: ["go build ./..."],
        T.INSTALL: ["go mod download"],
    },
    Language.RUST: {
        T.LINT: ["cargo clippy"],
        T.TEST: ["cargo test"],
        T.TYPECHECK: [],
        T.FORMAT: ["cargo fmt --check"],
        T.BUILD: ["cargo build"],
        T.INSTALL: ["cargo fetch"],
    },
}

INSTALL_HINTS: dict[tuple[VerificationTask, Language], str] = {
    (T.LINT, Language.PYTHON): "pip install ruff",
    (T.TEST, Language.PYTHON): "pip install pytest",
    (T.TYPECHECK, Language.PYTHON): "pip install mypy",
    (T.FORMAT, Language.PYTHON): "pip install black",
    (T.INSTALL, Language.PYTHON): "python -m ensurepip --upgrade",
    (T.LINT, Language.NODEJS): "npm install -D eslint",
    (T.TEST, Language.NODEJS): "npm install -D jest",
    (T.TYPECHECK, Language.NODEJS): "npm install -D typescript",
    (T.FORMAT, Language.NODEJS): "npm install -D prettier",
    (T.BUILD, Language.NODEJS): "npm install -D typescript",
    (T.INSTALL, Language.NODEJS): "Install Node.js from https://nodejs.org",
    (T.LINT, Language.GO): "go install github.com/golangci/golangci-lint/cmd/golangci-lint@latest",
    (T.TEST, Language.GO): "Install Go from https://go.dev/dl/",
    (T.FORMAT, Language.GO): "go install golang.org/x/tools/cmd/goimports@latest",
    (T.BUILD, Language.GO): "Install Go from https://go.dev/dl/",
    (T.INSTALL, Language.GO): "Install Go from https://go.dev/dl/",
    (T.LINT, Language.RUST): "rustup component add clippy",
    (T.TEST, Language.RUST): "Install Rust from https://rustup.rs",
    (T.FORMAT, Language.RUST): "rustup component add rustfmt",
    (T.BUILD, Language.RUST): "Install Rust from https://rustup.rs",
    (T.INSTALL, Language.RUST): "Install Rust from https://rustup.rs",
}


def install_hint(task: VerificationTask, language: Language) -> str | None:
    return INSTALL_HINTS.get((task, language))


def related_makefile_targets(task: VerificationTask, targets: list[str]) -> list[str]:
    """Targets whose name contains the task name or is contained in it."""
    name = task.value
    return [t for t in targets if name in t or t in name]


class CommandResolver:
    def __init__(self, probe: ToolProbePort) -> None:
        self._probe = probe

    async def resolve(self, request: ResolveRequest) -> ResolvedCommand:
        found = self._from_config(request) or self._from_makefile(request)
        if found is None:
            found = await self._from_package_manager(request)
        if found is None:
            found = await self._from_native(request)
        if found is None:
            return self._not_found(request)

        command, source = found
        logger.debug(f"Resolved {request.task.value} -> '{command}' ({source.value})")
        return ResolvedCommand(
            task=request.task,
            command=command,
            source=source,
            language=request.language,
            package_manager=request.package_manager,
        )

    def _from_config(self, request: ResolveRequest) -> tuple[str, CommandSource] | None:
        command = request.config.commands.get(request.task)
        if command:
            return command, CommandSource.CONFIG
        return None

    def _from_makefile(self, request: ResolveRequest) -> tuple[str, CommandSource] | None:
        config = request.config
        targets = set(request.makefile_targets)
        if not config.prefer_makefile or not targets:
            return None

        configured = config.makefile_targets.get(request.task)
        if configured and configured in targets:
            return f"make {configured}", CommandSource.MAKEFILE

        for target in sorted(config.makefile_aliases):
            if config.makefile_aliases[target] == request.task and target in targets:
                return f"make {target}", CommandSource.MAKEFILE

        if request.task.value in targets:
            return f"make {request.task.value}", CommandSource.MAKEFILE
        return None

    async def _from_package_manager(
        self,
        request: ResolveRequest,
    ) -> tuple[str, CommandSource] | None:
        manager = request.package_manager or DEFAULT_PACKAGE_MANAGER[request.language]
        if manager.language != request.language:
            return None

        entry = PACKAGE_MANAGER_COMMANDS[manager].get(request.task)
        if entry is None:
            return None
        if (
            entry.script is not None
            and request.package_scripts is not None
            and entry.script not in request.package_scripts
        ):
            logger.debug(f"No '{entry.script}' script in package.json, skipping '{entry.command}'")
            return None
        if not await self._probe.is_available(entry.executable):
            return None
        return entry.command, CommandSource.PACKAGE_MANAGER

    async def _from_native(self, request: ResolveRequest) -> tuple[str, CommandSource] | None:
        for command in NATIVE_COMMANDS[request.language][request.task]:
            if await self._probe.is_available(command.split()[0]):
                return command, CommandSource.NATIVE
        return None

    def _not_found(self, request: ResolveRequest) -> ResolvedCommand:
        optional = request.task.is_optional_for(request.language)
        suggestions: list[str] = []
        if not optional:
            suggestions = self._suggestions(request)
            logger.warning(
                "No command found for required task '{}' ({})",
                request.task.value,
                request.language.value,
            )
        return ResolvedCommand(
            task=request.task,
            command="",
            source=CommandSource.NOT_FOUND,
            language=request.language,
            package_manager=request.package_manager,
            optional=optional,
            suggestions=suggestions,
        )

    def _suggestions(self, request: ResolveRequest) -> list[str]:
        task = request.task
        suggestions = [
            f"Makefile target '{target}' may match: "
            f"map it with makefileTargets.{task.value}: {target}"
            for target in related_makefile_targets(task, request.makefile_targets)
        ]

        candidates = NATIVE_COMMANDS[request.language][task]
        example = candidates[0] if candidates else "<command>"
        suggestions.append(f"Set an explicit command in config: commands.{task.value}: {example}")

        hint = install_hint(task, request.language)
        if hint:
            suggestions.append(f"Install a tool: {hint}")
        return suggestions
