from .resolve_stream import ResolutionCoordinator

__all__ = ["ResolutionCoordinator"]
