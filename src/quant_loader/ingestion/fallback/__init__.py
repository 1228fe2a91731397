from .coordinator import SourceFallbackCoordinator, SourceResolution, SourceStats

__all__ = ["SourceFallbackCoordinator", "SourceResolution", "SourceStats"]
