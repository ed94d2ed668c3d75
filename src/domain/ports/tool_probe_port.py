from abc import ABC, abstractmethod


class ToolProbePort(ABC):
    """Port for checking whether an executable is available on PATH."""

    @abstractmethod
    async def is_available(self, tool: str) -> bool:
        """Return True if the executable can be found."""
