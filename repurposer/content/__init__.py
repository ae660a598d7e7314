"""
Content persistence: storage backends, the synchronizer and the list cache.
"""

from .cache import ContentListCache
from .repository import ContentRepository, InMemoryContentRepository, PostgresContentRepository
from .synchronizer import ContentSynchronizer

__all__ = [
    "ContentListCache",
    "ContentRepository",
    "ContentSynchronizer",
    "InMemoryContentRepository",
    "PostgresContentRepository",
]
