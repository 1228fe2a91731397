from .postgres import DatabaseAdapter, IDatabaseAdapter

__all__ = ["DatabaseAdapter", "IDatabaseAdapter"]
