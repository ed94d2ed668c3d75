from pathlib import Path
from typing import Protocol


class GitPort(Protocol):
    async def status(self, repo_path: Path) -> str:
        """Get git status --porcelain output."""
        ...

    async def current_branch(self, repo_path: Path) -> str:
        """Get the checked-out branch name."""
        ...

    async def fetch(self, repo_path: Path, remote: str, branch: str) -> None:
        """Fetch a single branch from a remote."""
        ...

    async def fast_forward(self, repo_path: Path, remote: str, branch: str) -> None:
        """Fast-forward the current branch to its remote counterpart."""
        ...

    async def checkout(self, repo_path: Path, branch: str, create: bool = False) -> None:
        """Check out an existing branch, or create it from HEAD."""
        ...

    async def diff_numstat(self, repo_path: Path) -> list[tuple[int, int, str]]:
        """Per-file (added, deleted, path) for the working tree against HEAD."""
        ...

    async def untracked_files(self, repo_path: Path) -> list[str]:
        """Untracked files that are not ignored."""
        ...

    async def intent_to_add(self, repo_path: Path, paths: list[str]) -> None:
        """Mark untracked paths as intent-to-add (git add -N)."""
        ...

    async def add_all(self, repo_path: Path) -> None:
        """Stage every change including untracked files."""
        ...

    async def commit(self, repo_path: Path, message: str) -> None:
        """Commit staged changes."""
        ...

    async def push(self, repo_path: Path, remote: str, branch: str) -> None:
        """Push a branch and set its upstream."""
        ...

    async def reset_hard(self, repo_path: Path) -> None:
        """Discard staged and unstaged changes to tracked files."""
        ...

    async def clean(self, repo_path: Path) -> None:
        """Remove untracked files and directories (ignored files are kept)."""
        ...

    async def delete_branch(self, repo_path: Path, branch: str) -> None:
        """Delete a local branch."""
        ...

    async def delete_remote_branch(self, repo_path: Path, remote: str, branch: str) -> None:
        """Delete a branch on a remote."""
        ...
