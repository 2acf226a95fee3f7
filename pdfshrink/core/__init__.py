"""Core PDF compression functionality."""

from pdfshrink.core.ghostscript import GhostscriptCompressor
from pdfshrink.core.options import CompressionOptions
from pdfshrink.core.pipeline import CompressionPipeline
from pdfshrink.core.storage import TempFileStore

__all__ = ["CompressionOptions", "CompressionPipeline", "GhostscriptCompressor", "TempFileStore"]
