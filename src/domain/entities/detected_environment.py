from pathlib import Path

from pydantic import BaseModel, Field

from src.domain.value_objects.toolchain import Language, PackageManager


class DetectedEnvironment(BaseModel, frozen=True):
    """Toolchain facts for one repository, recomputed on every invocation."""

    primary_language: Language
    additional_languages: list[Language] = Field(default_factory=list)
    confidence: int = Field(ge=0, le=100)
    package_manager: PackageManager
    lock_file: Path | None = None
    makefile_targets: list[str] = Field(default_factory=list)
    workspace_root: Path | None = None
    # None when there is no readable package.json
    package_scripts: frozenset[str] | None = None
    markers: list[str] = Field(default_factory=list)
