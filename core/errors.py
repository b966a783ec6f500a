from __future__ import annotations


class ImageStudioError(Exception):
    """Base class for every error raised by the processing pipeline."""


class InvalidGeometry(ImageStudioError):
    """Non-positive or degenerate dimensions. Fatal to a single recompute."""


class SourceDecodeFailure(ImageStudioError):
    """The source image bytes could not be decoded."""


class UnsupportedFormat(ImageStudioError):
    """The encoder was asked for a format it does not know."""


class EncodeFailure(ImageStudioError):
    """The codec failed while writing the output bytes."""


class BackgroundRemovalFailed(ImageStudioError):
    """The background-removal collaborator failed."""
