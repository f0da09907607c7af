"""
Custom exceptions for PDF Freezer.

Every failure in the conversion pipeline is reported as one of these
exceptions. A job never partially succeeds, so callers only need to catch
:class:`PDFFreezerError` to report a single descriptive message.
"""

from __future__ import annotations


class PDFFreezerError(Exception):
    """Base exception for all PDF Freezer errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown PDF freezer error occurred."


class DependencyMissingError(PDFFreezerError):
    """Raised when the rasterization engine is absent or not runnable."""

    @property
    def default_message(self) -> str:
        return "Ghostscript not found or not working."


class CounterError(PDFFreezerError):
    """Raised when the sequence state cannot be read or written."""

    @property
    def default_message(self) -> str:
        return "Counter state could not be read or written."


class AlreadyLockedError(CounterError):
    """Raised when the counter lock marker is already held."""

    @property
    def default_message(self) -> str:
        return "Counter is locked by another instance or process."


class RasterizationError(PDFFreezerError):
    """Raised when the rasterization engine ran but failed.

    Attributes:
        output: Combined stdout/stderr captured from the engine
        returncode: Exit code of the engine, ``None`` if it was killed
    """

    def __init__(
        self,
        message: str = "",
        *,
        output: str = "",
        returncode: int | None = None,
    ) -> None:
        if output:
            message = f"{message or self.default_message}\nOutput: {output.strip()}"
        super().__init__(message)
        self.output = output
        self.returncode = returncode

    @property
    def default_message(self) -> str:
        return "Ghostscript failed to rasterize the document."


class EmptyDocumentError(PDFFreezerError):
    """Raised when rasterization succeeded but produced no pages."""

    @property
    def default_message(self) -> str:
        return "No pages extracted."


class PageAssemblyError(PDFFreezerError):
    """Base class for failures while building the output document."""

    @property
    def default_message(self) -> str:
        return "Failed to assemble output page."


class ImageDecodeError(PageAssemblyError):
    """Raised when a page image cannot be decoded."""

    @property
    def default_message(self) -> str:
        return "Page image could not be decoded."


class FontError(PageAssemblyError):
    """Raised when the overlay font cannot be loaded or used."""

    @property
    def default_message(self) -> str:
        return "Overlay font could not be loaded."


class WriteError(PageAssemblyError):
    """Raised when the output document cannot be built or written."""

    @property
    def default_message(self) -> str:
        return "Failed to write output PDF."


class ConfigError(PDFFreezerError):
    """Raised when configuration is unavailable or cannot be persisted."""

    @property
    def default_message(self) -> str:
        return "Configuration not initialized."


class InvalidInputError(PDFFreezerError):
    """Raised when an operation receives an unusable argument."""

    @property
    def default_message(self) -> str:
        return "Invalid input."
