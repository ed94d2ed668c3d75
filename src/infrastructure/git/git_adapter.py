import asyncio
from pathlib import Path

from loguru import logger

from src.domain.errors import GitCommandError


class GitAdapter:
    """Git porcelain through subprocess calls.

    Implements GitPort. Every command raises GitCommandError on a non-zero
    exit so callers can decide whether to roll back.
    """

    async def _run_git(self, repo_path: Path, args: list[str]) -> str:
        proc = await asyncio.create_subprocess_exec(
            "git",
            *args,
            cwd=str(repo_path),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            error_msg = stderr.decode(errors="replace").strip()
            logger.error(f"Git command failed: git {' '.join(args)} - {error_msg}")
            raise GitCommandError(args, error_msg)
        return stdout.decode(errors="replace")

    async def repo_root(self, path: Path) -> Path:
        output = await self._run_git(path, ["rev-parse", "--show-toplevel"])
        return Path(output.strip())

    async def status(self, repo_path: Path) -> str:
        output = await self._run_git(repo_path, ["status", "--porcelain"])
        return output.strip()

    async def current_branch(self, repo_path: Path) -> str:
        output = await self._run_git(repo_path, ["rev-parse", "--abbrev-ref", "HEAD"])
        return output.strip()

    async def remote_url(self, repo_path: Path, remote: str = "origin") -> str:
        output = await self._run_git(repo_path, ["remote", "get-url", remote])
        return output.strip()

    async def fetch(self, repo_path: Path, remote: str, branch: str) -> None:
        await self._run_git(repo_path, ["fetch", remote, branch])

    async def fast_forward(self, repo_path: Path, remote: str, branch: str) -> None:
        await self._run_git(repo_path, ["merge", "--ff-only", f"{remote}/{branch}"])

    async def checkout(self, repo_path: Path, branch: str, create: bool = False) -> None:
        if create:
            await self._run_git(repo_path, ["checkout", "-b", branch])
        else:
            await self._run_git(repo_path, ["checkout", branch])

    async def diff_numstat(self, repo_path: Path) -> list[tuple[int, int, str]]:
        """Per-file line counts for tracked changes against HEAD.

        Binary files report '-' for both counts and are counted as zero.
        """
        output = await self._run_git(repo_path, ["diff", "HEAD", "--numstat"])
        entries: list[tuple[int, int, str]] = []
        for line in output.splitlines():
            parts = line.split("\t", 2)
            if len(parts) != 3:
                continue
            added, deleted, path = parts
            entries.append(
                (
                    int(added) if added.isdigit() else 0,
                    int(deleted) if deleted.isdigit() else 0,
                    path,
                )
            )
        return entries

    async def untracked_files(self, repo_path: Path) -> list[str]:
        output = await self._run_git(repo_path, ["ls-files", "--others", "--exclude-standard"])
        return [f for f in output.strip().split("\n") if f]

    async def intent_to_add(self, repo_path: Path, paths: list[str]) -> None:
        """Record untracked paths in the index so numstat counts their lines."""
        if paths:
            await self._run_git(repo_path, ["add", "--intent-to-add", "--", *paths])

    async def add_all(self, repo_path: Path) -> None:
        await self._run_git(repo_path, ["add", "-A"])

    async def commit(self, repo_path: Path, message: str) -> None:
        await self._run_git(repo_path, ["commit", "-m", message])

    async def push(self, repo_path: Path, remote: str, branch: str) -> None:
        await self._run_git(repo_path, ["push", "--set-upstream", remote, branch])

    async def reset_hard(self, repo_path: Path) -> None:
        await self._run_git(repo_path, ["reset", "--hard", "HEAD"])

    async def clean(self, repo_path: Path) -> None:
        await self._run_git(repo_path, ["clean", "-fd"])

    async def delete_branch(self, repo_path: Path, branch: str) -> None:
        await self._run_git(repo_path, ["branch", "-D", branch])

    async def delete_remote_branch(self, repo_path: Path, remote: str, branch: str) -> None:
        await self._run_git(repo_path, ["push", remote, "--delete", branch])
