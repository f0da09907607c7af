"""
PDF Freezer - rasterize PDFs and rebuild them with a serial-number stamp.

Every page of the input is rendered to a JPEG by Ghostscript and the images
are reassembled into a new PDF whose pages keep the physical size of the
input. The first page can carry a label such as ``AR0007`` taken from a
persistent counter.

Quick Start:
    >>> from pdffreezer import FreezerApp
    >>> app = FreezerApp()
    >>> app.process_file('contract.pdf', prefix='AR', compression='medium')
    PosixPath('contract_frozen.pdf')

Main Classes:
    - FreezerApp: Operation surface used by front-ends
    - Pipeline: Runs a single ConversionJob
    - SequenceManager: Persistent serial-number counter
    - GhostscriptRasterizer: PDF to JPEG pages
    - PDFWriter: JPEG pages to PDF

For CLI usage, use the 'pdf-freezer' command after installation.
"""

__version__ = "1.0.0"

from pdffreezer.app import FreezerApp, output_path_for
from pdffreezer.config import AppConfig, ConfigManager, user_config_dir
from pdffreezer.counter import ProcessLock, SequenceManager
from pdffreezer.exceptions import (
    AlreadyLockedError,
    ConfigError,
    CounterError,
    DependencyMissingError,
    EmptyDocumentError,
    FontError,
    ImageDecodeError,
    InvalidInputError,
    PageAssemblyError,
    PDFFreezerError,
    RasterizationError,
    WriteError,
)
from pdffreezer.pipeline import ConversionJob, ConversionResult, Pipeline, format_serial_label
from pdffreezer.rasterizer import GhostscriptRasterizer, PageImage, Rasterizer, collect_page_images
from pdffreezer.settings import CompressionSettings, CompressionTier, OverlayCorner, resolve_tier
from pdffreezer.writer import PDFWriter, page_size_points

__all__ = [
    # Main classes
    "FreezerApp",
    "Pipeline",
    "ConversionJob",
    "ConversionResult",
    "SequenceManager",
    "ProcessLock",
    "Rasterizer",
    "GhostscriptRasterizer",
    "PageImage",
    "PDFWriter",
    "AppConfig",
    "ConfigManager",
    # Presets
    "CompressionSettings",
    "CompressionTier",
    "OverlayCorner",
    "resolve_tier",
    # Helpers
    "collect_page_images",
    "format_serial_label",
    "output_path_for",
    "page_size_points",
    "user_config_dir",
    # Exceptions
    "PDFFreezerError",
    "DependencyMissingError",
    "CounterError",
    "AlreadyLockedError",
    "RasterizationError",
    "EmptyDocumentError",
    "PageAssemblyError",
    "ImageDecodeError",
    "FontError",
    "WriteError",
    "ConfigError",
    "InvalidInputError",
    # Version info
    "__version__",
]
