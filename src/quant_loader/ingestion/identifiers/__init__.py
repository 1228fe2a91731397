from .generator import IdGenerator, IdRegistry

__all__ = ["IdGenerator", "IdRegistry"]
