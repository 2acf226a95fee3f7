"""pdfshrink - shrink uploaded PDFs with Ghostscript."""

__version__ = "0.1.0"

from pdfshrink.core.ghostscript import GhostscriptCompressor
from pdfshrink.core.options import CompressionOptions

__all__ = ["CompressionOptions", "GhostscriptCompressor"]
