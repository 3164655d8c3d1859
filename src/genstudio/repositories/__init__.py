"""Repository layer.

Provides data access abstractions for the generation record entities.
No base classes - each repository is self-contained.
"""

from genstudio.repositories.generation import ImageGenerationRepository, VideoGenerationRepository

__all__ = [
    "ImageGenerationRepository",
    "VideoGenerationRepository",
]
