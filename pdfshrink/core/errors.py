"""Exceptions raised while receiving and compressing a PDF.

Every error carries the HTTP status it maps to, so the web layer can turn
any of them into a ``{"error": ...}`` response without a lookup table.
"""

from typing import Any, Dict, Optional


class PDFShrinkError(Exception):
    """Base exception for all pdfshrink errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(PDFShrinkError):
    """The client sent something we will not process."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_FAILED")


class FileStoreError(PDFShrinkError):
    """Creating, renaming or writing a temporary file failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, code="FILE_STORE_ERROR", details={"path": path} if path else None)


class LaunchError(PDFShrinkError):
    """The compression binary could not be started at all."""

    def __init__(self, binary: str, os_error: str):
        self.binary = binary
        self.os_error = os_error
        super().__init__(
            f"Ghostscript execution error: {os_error}",
            code="LAUNCH_FAILED",
            details={"binary": binary},
        )


class CompressionError(PDFShrinkError):
    """Ghostscript ran but did not leave a usable PDF behind."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        diagnostics: str = "",
    ):
        self.returncode = returncode
        self.diagnostics = diagnostics
        super().__init__(
            message,
            code="COMPRESSION_FAILED",
            details={"returncode": returncode},
        )

    @classmethod
    def from_exit(cls, returncode: int, diagnostics: str) -> "CompressionError":
        """Build the error for a non-zero exit status."""
        text = diagnostics.strip()
        message = f"Ghostscript failed with code {returncode}"
        if text:
            message = f"{message}: {text}"
        return cls(message, returncode=returncode, diagnostics=diagnostics)


class CompressionTimeoutError(CompressionError):
    """Ghostscript did not finish in time and was killed."""

    def __init__(self, timeout: float, diagnostics: str = ""):
        self.timeout = timeout
        super().__init__(
            f"Ghostscript timed out after {timeout:g} seconds",
            diagnostics=diagnostics,
        )
        self.code = "COMPRESSION_TIMEOUT"
