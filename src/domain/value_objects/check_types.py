from enum import Enum
from uuid import UUID

from pydantic import BaseModel

from src.domain.value_objects.toolchain import VerificationTask


class CheckStatus(str, Enum):
    NOT_RUN = "not_run"
    PASS = "pass"
    FAIL = "fail"


class CheckSpec(BaseModel, frozen=True):
    """A local shell command to run: a verification task or a fix command."""

    id: UUID
    name: str
    task: VerificationTask | None = None
    command: str
    cwd: str
    env: dict[str, str] = {}
    timeout_s: int = 300
