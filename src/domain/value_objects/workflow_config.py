"""Workflow configuration consumed by the verification and CI pipeline.

Loading the YAML file is the caller's job; these models validate the
resulting mapping and accept both snake_case and camelCase keys, so a
``.gpm.yml`` style document (``preferMakefile``, ``autoFix.maxAttempts``)
validates as-is.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.domain.value_objects.check_enums import PollStrategyType
from src.domain.value_objects.toolchain import (
    DEFAULT_VERIFICATION_TASKS,
    Language,
    PackageManager,
    VerificationTask,
)


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class CIConfig(_ConfigModel):
    timeout_s: float = Field(default=1800.0, gt=0)
    poll_interval_s: float = Field(default=10.0, gt=0)
    fail_fast: bool = True
    retry_flaky: bool = False
    flaky_grace_cycles: int = Field(default=2, ge=0)
    registration_grace_s: float = Field(default=0.0, ge=0)
    strategy: PollStrategyType = PollStrategyType.FIXED
    max_interval_s: float = Field(default=30.0, gt=0)
    multiplier: float = Field(default=1.5, ge=1.0)


class AutoFixConfig(_ConfigModel):
    enabled: bool = True
    max_attempts: int = Field(default=2, ge=0)
    max_changed_lines: int = Field(default=1000, ge=0)
    require_tests: bool = True
    auto_merge: bool = False
    dry_run: bool = False
    fix_timeout_s: int = Field(default=120, gt=0)


class WorkflowConfig(_ConfigModel):
    language: Language | None = None
    package_manager: PackageManager | None = None
    prefer_makefile: bool = True
    # Makefile target name -> task it stands in for (e.g. {"check": "test"})
    makefile_aliases: dict[str, VerificationTask] = Field(default_factory=dict)
    # Task -> Makefile target to run for it (e.g. {"lint": "lint-all"})
    makefile_targets: dict[VerificationTask, str] = Field(default_factory=dict)
    tasks: list[VerificationTask] = Field(default_factory=lambda: list(DEFAULT_VERIFICATION_TASKS))
    skip_tasks: list[VerificationTask] = Field(default_factory=list)
    stop_on_first_failure: bool = False
    commands: dict[VerificationTask, str] = Field(default_factory=dict)
    command_timeout_s: int = Field(default=300, gt=0)
    ci: CIConfig = Field(default_factory=CIConfig)
    auto_fix: AutoFixConfig = Field(default_factory=AutoFixConfig)

    def enabled_tasks(self) -> list[VerificationTask]:
        skipped = set(self.skip_tasks)
        return [task for task in self.tasks if task not in skipped]
