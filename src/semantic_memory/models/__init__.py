from .memory import Memory, MemoryQueryResult

__all__ = ["Memory", "MemoryQueryResult"]
