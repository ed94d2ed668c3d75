from src.infrastructure.git.git_adapter import GitAdapter

__all__ = ["GitAdapter"]
