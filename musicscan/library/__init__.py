"""Library synchronization against the persistent database."""

from .synchronizer import LibrarySynchronizer

__all__ = ["LibrarySynchronizer"]
