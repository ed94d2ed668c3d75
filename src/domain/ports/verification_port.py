from abc import ABC, abstractmethod
from pathlib import Path

from src.domain.entities.verification_report import VerificationReport


class LocalVerificationPort(ABC):
    """Port for running the project's local verification tasks."""

    @abstractmethod
    async def verify(self, repo_path: Path) -> VerificationReport:
        """Run the configured verification tasks in repo_path."""
