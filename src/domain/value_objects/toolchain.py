from enum import Enum


class Language(str, Enum):
    PYTHON = "python"
    NODEJS = "nodejs"
    GO = "go"
    RUST = "rust"


class PackageManager(str, Enum):
    # Python
    POETRY = "poetry"
    PIPENV = "pipenv"
    UV = "uv"
    PIP = "pip"
    # Node.js
    PNPM = "pnpm"
    YARN = "yarn"
    BUN = "bun"
    NPM = "npm"
    # Go
    GO_MOD = "go-mod"
    # Rust
    CARGO = "cargo"

    @property
    def language(self) -> Language:
        return PACKAGE_MANAGER_LANGUAGE[self]


PACKAGE_MANAGER_LANGUAGE: dict[PackageManager, Language] = {
    PackageManager.POETRY: Language.PYTHON,
    PackageManager.PIPENV: Language.PYTHON,
    PackageManager.UV: Language.PYTHON,
    PackageManager.PIP: Language.PYTHON,
    PackageManager.PNPM: Language.NODEJS,
    PackageManager.YARN: Language.NODEJS,
    PackageManager.BUN: Language.NODEJS,
    PackageManager.NPM: Language.NODEJS,
    PackageManager.GO_MOD: Language.GO,
    PackageManager.CARGO: Language.RUST,
}

DEFAULT_PACKAGE_MANAGER: dict[Language, PackageManager] = {
    Language.PYTHON: PackageManager.PIP,
    Language.NODEJS: PackageManager.NPM,
    Language.GO: PackageManager.GO_MOD,
    Language.RUST: PackageManager.CARGO,
}


class VerificationTask(str, Enum):
    LINT = "lint"
    TEST = "test"
    TYPECHECK = "typecheck"
    FORMAT = "format"
    BUILD = "build"
    INSTALL = "install"

    def is_optional_for(self, language: Language) -> bool:
        """Optional tasks resolve to a silent skip when no command exists."""
        return (self, language) in OPTIONAL_TASKS


# Python needs no build step; Go and Rust type-check as part of the compiler.
OPTIONAL_TASKS = frozenset(
    {
        (VerificationTask.BUILD, Language.PYTHON),
        (VerificationTask.TYPECHECK, Language.GO),
        (VerificationTask.TYPECHECK, Language.RUST),
    }
)

DEFAULT_VERIFICATION_TASKS = (
    VerificationTask.LINT,
    VerificationTask.TYPECHECK,
    VerificationTask.TEST,
    VerificationTask.BUILD,
)


class CommandSource(str, Enum):
    CONFIG = "config"
    MAKEFILE = "makefile"
    PACKAGE_MANAGER = "package-manager"
    NATIVE = "native"
    NOT_FOUND = "not-found"
