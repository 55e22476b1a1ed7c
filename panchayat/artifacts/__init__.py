"""
Official document artifacts - PDF rendering, JPEG re-encoding and the on-disk cache.
"""

from .cache import ArtifactCache, ArtifactFormat, DOCUMENT, IMAGE, resolve_format
from .service import ArtifactService

__all__ = [
    'ArtifactCache',
    'ArtifactFormat',
    'ArtifactService',
    'DOCUMENT',
    'IMAGE',
    'resolve_format'
]
