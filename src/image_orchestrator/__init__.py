"""
Image Orchestrator
Acquires a representative image for a word from rate-limited upstream providers.
"""

__version__ = "0.1.0"
