"""HTTP client package."""

from image_orchestrator.http.client import HttpClient

__all__ = ["HttpClient"]
