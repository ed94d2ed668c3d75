from pydantic import BaseModel, Field

from src.domain.value_objects.toolchain import (
    CommandSource,
    Language,
    PackageManager,
    VerificationTask,
)
from src.domain.value_objects.workflow_config import WorkflowConfig


class ResolveRequest(BaseModel, frozen=True):
    task: VerificationTask
    language: Language
    package_manager: PackageManager | None = None
    makefile_targets: list[str] = Field(default_factory=list)
    config: WorkflowConfig = Field(default_factory=WorkflowConfig)
    package_scripts: frozenset[str] | None = None


class ResolvedCommand(BaseModel, frozen=True):
    task: VerificationTask
    command: str
    source: CommandSource
    language: Language
    package_manager: PackageManager | None = None
    optional: bool = False
    suggestions: list[str] = Field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.source != CommandSource.NOT_FOUND
