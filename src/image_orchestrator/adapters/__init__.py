"""Upstream image provider adapters."""

from image_orchestrator.adapters.base import ImageProvider
from image_orchestrator.adapters.pixabay import PixabayAdapter
from image_orchestrator.adapters.pollinations import GenerationEndpoint, PollinationsAdapter
from image_orchestrator.adapters.search import SearchCandidate, SearchImageProvider
from image_orchestrator.adapters.unsplash import UnsplashAdapter

__all__ = [
    "GenerationEndpoint",
    "ImageProvider",
    "PixabayAdapter",
    "PollinationsAdapter",
    "SearchCandidate",
    "SearchImageProvider",
    "UnsplashAdapter",
]
