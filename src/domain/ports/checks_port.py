from abc import ABC, abstractmethod

from src.domain.entities.check_run import Annotation, CheckRun


class ChecksPort(ABC):
    """Port for reading CI check runs from the provider.

    Implementations raise CIProviderError on transport or API failures.
    """

    @abstractmethod
    async def list_check_runs(self, ref: str) -> list[CheckRun]:
        """List every check run reported for a commit SHA."""

    @abstractmethod
    async def list_annotations(self, check_run_id: int, limit: int = 50) -> list[Annotation]:
        """List annotations attached to a check run."""
