from abc import ABC, abstractmethod

from pydantic import BaseModel


class PullRequestInfo(BaseModel, frozen=True):
    number: int
    head_ref: str
    head_sha: str
    base_ref: str
    url: str = ""


class PullRequestPort(ABC):
    """Port for pull request operations on the hosting provider."""

    @abstractmethod
    async def get_pull_request(self, number: int) -> PullRequestInfo:
        """Fetch a pull request, including its current head SHA."""

    @abstractmethod
    async def create_pull_request(
        self,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> PullRequestInfo:
        """Open a pull request from head into base."""

    @abstractmethod
    async def merge_pull_request(self, number: int, method: str = "squash") -> None:
        """Merge a pull request."""
