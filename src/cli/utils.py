"""CLI utility functions."""

from pathlib import Path

from pydantic import ValidationError

from src.domain.entities.resolved_command import ResolvedCommand
from src.domain.value_objects.toolchain import VerificationTask
from src.domain.value_objects.workflow_config import WorkflowConfig


def load_workflow_config(path: Path | None) -> WorkflowConfig:
    """Read a workflow config from a JSON file, or return defaults.

    Keys may be snake_case or camelCase (``preferMakefile``).

    Raises:
        ValueError: If the file is unreadable or does not validate.
    """
    if path is None:
        return WorkflowConfig()
    try:
        return WorkflowConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ValueError(f"Cannot read config {path}: {e}") from e
    except ValidationError as e:
        raise ValueError(f"Invalid config {path}:\n{e}") from e


def known_commands(resolved: list[ResolvedCommand]) -> dict[VerificationTask, str]:
    """Task -> command for every resolved task that has a command."""
    return {item.task: item.command for item in resolved if item.found}
