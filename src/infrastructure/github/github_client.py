"""GitHub REST adapter for check runs and pull requests."""

import os
import re
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from src.domain.entities.check_run import Annotation, CheckRun
from src.domain.errors import CIProviderError
from src.domain.ports.checks_port import ChecksPort
from src.domain.ports.pull_request_port import PullRequestInfo, PullRequestPort
from src.domain.value_objects.check_enums import CheckConclusion, CheckRunStatus

DEFAULT_API_URL = "https://api.github.com"
REQUEST_TIMEOUT = 30.0
MAX_ATTEMPTS = 4
CHECK_RUNS_PAGE_SIZE = 100

T = TypeVar("T")

_REMOTE_PATTERNS = [
    re.compile(r"^git@[^:]+:(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"),
    re.compile(
        r"^(?:https?|ssh|git)://(?:[^@/]+@)?[^/]+/"
        r"(?P<owner>[^/]+)/(?P<repo>[^/]+?)(?:\.git)?/?$"
    ),
]


def parse_remote_url(url: str) -> tuple[str, str]:
    """Return (owner, repo) from an SSH or HTTPS GitHub remote URL."""
    for pattern in _REMOTE_PATTERNS:
        match = pattern.match(url.strip())
        if match:
            return match.group("owner"), match.group("repo")
    raise ValueError(f"Unrecognized GitHub remote URL: {url}")


def token_from_env() -> str | None:
    return os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")


def _is_transient(e: BaseException) -> bool:
    if isinstance(e, httpx.TransportError):
        return True
    if isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code
        return status == 429 or status >= 500
    return False


def _log_retry(retry_state: Any) -> None:
    exc = retry_state.outcome.exception()
    logger.warning(f"[GITHUB] Retry {retry_state.attempt_number}: {str(exc)[:100]}")


def _parse_status(value: str | None) -> CheckRunStatus:
    # GitHub also reports requested/waiting/pending for runs that have not started.
    try:
        return CheckRunStatus(value)
    except ValueError:
        return CheckRunStatus.QUEUED


def _parse_conclusion(value: str | None) -> CheckConclusion | None:
    if value is None:
        return None
    try:
        return CheckConclusion(value)
    except ValueError:
        # "stale" and future values are treated as still pending.
        logger.debug(f"Unknown check conclusion: {value}")
        return None


def parse_check_run(data: dict[str, Any]) -> CheckRun:
    output = data.get("output") or {}
    return CheckRun(
        id=data.get("id") or 0,
        name=data.get("name") or "",
        status=_parse_status(data.get("status")),
        conclusion=_parse_conclusion(data.get("conclusion")),
        title=output.get("title") or "",
        summary=output.get("summary") or "",
        text=output.get("text") or "",
        annotations_count=output.get("annotations_count") or 0,
        url=data.get("html_url") or data.get("details_url") or "",
        started_at=data.get("started_at"),
        completed_at=data.get("completed_at"),
    )


def parse_annotation(data: dict[str, Any]) -> Annotation:
    return Annotation(
        path=data.get("path") or "",
        start_line=data.get("start_line") or 0,
        end_line=data.get("end_line") or 0,
        annotation_level=data.get("annotation_level") or "failure",
        message=data.get("message") or "",
        title=data.get("title") or "",
        raw_details=data.get("raw_details"),
    )


def _parse_pull_request(data: dict[str, Any]) -> PullRequestInfo:
    return PullRequestInfo(
        number=data["number"],
        head_ref=data["head"]["ref"],
        head_sha=data["head"]["sha"],
        base_ref=data["base"]["ref"],
        url=data.get("html_url") or "",
    )


def _parse_check_runs_page(data: dict[str, Any]) -> tuple[list[CheckRun], int | None]:
    batch = [parse_check_run(item) for item in data.get("check_runs") or []]
    return batch, data.get("total_count")


def _parse_annotations(data: list[dict[str, Any]]) -> list[Annotation]:
    return [parse_annotation(item) for item in data]


def _decode(response: httpx.Response, parse: Callable[[Any], T]) -> T:
    """Parse a JSON body; malformed or unexpected payloads become CIProviderError."""
    try:
        return parse(response.json())
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise CIProviderError(
            f"Unexpected GitHub response for {response.request.url.path}: {str(e)[:200]}",
            status_code=response.status_code,
        ) from e


class GitHubClient(ChecksPort, PullRequestPort):
    """ChecksPort and PullRequestPort over the GitHub REST API.

    Transport errors, 429 and 5xx responses are retried with exponential
    backoff. Whatever still fails is raised as CIProviderError.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str | None = None,
        base_url: str = DEFAULT_API_URL,
        client: httpx.AsyncClient | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        retry_wait: wait_base | None = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=REQUEST_TIMEOUT,
        )
        if client is not None:
            self._client.headers.update(headers)
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, max=30)

    @classmethod
    def from_remote_url(cls, url: str, token: str | None = None, **kwargs: Any) -> "GitHubClient":
        owner, repo = parse_remote_url(url)
        return cls(owner, repo, token=token if token is not None else token_from_env(), **kwargs)

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception(_is_transient),
                stop=stop_after_attempt(self._max_attempts),
                wait=self._retry_wait,
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    response = await self._client.request(method, path, **kwargs)
                    response.raise_for_status()
                    return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise CIProviderError(
                f"GitHub API {method} {path} returned {status}: {e.response.text[:200]}",
                status_code=status,
            ) from e
        except httpx.TransportError as e:
            raise CIProviderError(f"GitHub API {method} {path} failed: {e}") from e
        raise CIProviderError(f"GitHub API {method} {path} was not attempted")

    async def list_check_runs(self, ref: str) -> list[CheckRun]:
        runs: list[CheckRun] = []
        page = 1
        while True:
            response = await self._request(
                "GET",
                f"{self._repo_path}/commits/{ref}/check-runs",
                params={"per_page": CHECK_RUNS_PAGE_SIZE, "page": page},
            )
            batch, total_count = _decode(response, _parse_check_runs_page)
            runs.extend(batch)
            total = len(runs) if total_count is None else total_count
            if len(batch) < CHECK_RUNS_PAGE_SIZE or len(runs) >= total:
                break
            page += 1
        logger.debug(f"Fetched {len(runs)} check runs for {ref[:12]}")
        return runs

    async def list_annotations(self, check_run_id: int, limit: int = 50) -> list[Annotation]:
        response = await self._request(
            "GET",
            f"{self._repo_path}/check-runs/{check_run_id}/annotations",
            params={"per_page": limit},
        )
        return _decode(response, _parse_annotations)[:limit]

    async def get_pull_request(self, number: int) -> PullRequestInfo:
        response = await self._request("GET", f"{self._repo_path}/pulls/{number}")
        return _decode(response, _parse_pull_request)

    async def create_pull_request(
        self,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> PullRequestInfo:
        response = await self._request(
            "POST",
            f"{self._repo_path}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )
        pr = _decode(response, _parse_pull_request)
        logger.info(f"Opened PR #{pr.number}: {head} -> {base}")
        return pr

    async def merge_pull_request(self, number: int, method: str = "squash") -> None:
        await self._request(
            "PUT",
            f"{self._repo_path}/pulls/{number}/merge",
            json={"merge_method": method},
        )
        logger.info(f"Merged PR #{number} ({method})")
