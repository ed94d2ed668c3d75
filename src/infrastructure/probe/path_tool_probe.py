import asyncio
import os
import re
import signal

from loguru import logger

from src.domain.ports.tool_probe_port import ToolProbePort

DEFAULT_PROBE_TIMEOUT_S = 5.0

# Anything else could smuggle shell syntax into the probe.
_TOOL_NAME = re.compile(r"^[A-Za-z0-9._+-]+$")


class PathToolProbe(ToolProbePort):
    """Checks executables with POSIX ``command -v``.

    Answers are cached per instance; a probe that times out counts as
    unavailable.
    """

    def __init__(self, timeout_s: float = DEFAULT_PROBE_TIMEOUT_S) -> None:
        self._timeout_s = timeout_s
        self._cache: dict[str, bool] = {}

    async def is_available(self, tool: str) -> bool:
        if tool in self._cache:
            return self._cache[tool]
        if not _TOOL_NAME.match(tool):
            logger.debug(f"Refusing to probe suspicious tool name: {tool!r}")
            return False

        available = await self._probe(tool)
        self._cache[tool] = available
        logger.debug(f"Tool '{tool}' {'found' if available else 'not found'} on PATH")
        return available

    async def _probe(self, tool: str) -> bool:
        # The name is passed as $1, never interpolated into the script.
        proc = await asyncio.create_subprocess_exec(
            "sh",
            "-c",
            'command -v "$1"',
            "sh",
            tool,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            start_new_session=True,
        )
        try:
            await asyncio.wait_for(proc.wait(), timeout=self._timeout_s)
        except TimeoutError:
            try:
                os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
            except (ProcessLookupError, OSError):
                proc.kill()
            await proc.wait()
            logger.warning("Probe for '{}' timed out after {}s", tool, self._timeout_s)
            return False
        return proc.returncode == 0
