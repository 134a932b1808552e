# Path: vibetag/errors.py
# Purpose: Define the exception hierarchy shared by tagging and hub detection jobs.
# Layer: vibetag.
# Details: Separates provider failures, image acquisition failures, and cooperative cancellation.

from __future__ import annotations


class VibetagError(Exception):
    """Base class for all errors raised by the vibetag core."""


class EmbeddingProviderError(VibetagError):
    """The embedding provider failed or returned unusable vectors."""


class ImageAcquisitionError(VibetagError):
    """The embedding for an image could not be obtained."""

    def __init__(self, image_id: str, message: str) -> None:
        super().__init__(f"Image {image_id}: {message}")
        self.image_id = image_id


class OperationCancelled(VibetagError):
    """A long-running job observed its cancellation token."""


__all__ = ["VibetagError", "EmbeddingProviderError", "ImageAcquisitionError", "OperationCancelled"]
