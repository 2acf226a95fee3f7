"""The per-request compression pipeline.

normalize -> invoke Ghostscript -> verify -> (deliver) -> cleanup

``run`` performs the first three steps and cleans up itself when any of
them fails. On success the caller delivers ``CompressionResult.deliver_path``
and must call ``cleanup`` once the response is done, whether or not the
client received it.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Optional

import pikepdf

from pdfshrink.core.errors import CompressionError, FileStoreError, PDFShrinkError, ValidationError
from pdfshrink.core.ghostscript import GhostscriptCompressor
from pdfshrink.core.storage import TempFileStore

logger = logging.getLogger(__name__)


@dataclass
class CompressionJob:
    """Files belonging to one request."""

    id: str
    upload_path: Path
    input_path: Path
    output_path: Path
    cleaned: bool = False

    @property
    def paths(self) -> tuple[Path, Path, Path]:
        return (self.upload_path, self.input_path, self.output_path)


@dataclass
class CompressionResult:
    """Outcome of a successful run."""

    job: CompressionJob
    original_size: int
    compressed_size: int
    pages: int

    @property
    def deliver_path(self) -> Path:
        """Ghostscript's output, unless it came out larger than the input."""
        if self.compressed_size > self.original_size:
            return self.job.input_path
        return self.job.output_path

    @property
    def delivered_size(self) -> int:
        return min(self.original_size, self.compressed_size)

    @property
    def reduction(self) -> float:
        """Percentage saved, 0 when the original is delivered unchanged."""
        if self.original_size == 0:
            return 0.0
        return (self.original_size - self.delivered_size) / self.original_size * 100


def download_name(filename: Optional[str]) -> str:
    """Name suggested to the client: ``compressed_<original name>``."""
    base = PurePath((filename or "").replace("\\", "/")).name
    base = "".join(ch for ch in base if ch.isprintable()).strip()
    if not base:
        base = "document.pdf"
    return f"compressed_{base}"


def count_pages(path: Path) -> int:
    """Open a PDF with pikepdf and return its page count."""
    with pikepdf.open(path) as pdf:
        return len(pdf.pages)


class CompressionPipeline:
    """Runs Ghostscript for one stored upload and keeps track of its files."""

    def __init__(self, store: TempFileStore, compressor: GhostscriptCompressor):
        self.store = store
        self.compressor = compressor

    def create_job(self, upload_id: str, upload_path: Path) -> CompressionJob:
        return CompressionJob(
            id=upload_id,
            upload_path=Path(upload_path),
            input_path=self.store.path_for(f"{upload_id}.pdf"),
            output_path=self.store.path_for(f"compressed_{upload_id}.pdf"),
        )

    async def run(self, job: CompressionJob) -> CompressionResult:
        """
        Normalize, compress and verify.

        Any failure, including cancellation, removes the job's files before
        the exception propagates.
        """
        try:
            original_size = self._normalize(job)
            await self.compressor.compress(job.input_path, job.output_path)
            compressed_size, pages = await self._verify(job)
        except PDFShrinkError as e:
            self._redact(e, job)
            self.cleanup(job)
            raise
        except BaseException:
            self.cleanup(job)
            raise

        result = CompressionResult(
            job=job,
            original_size=original_size,
            compressed_size=compressed_size,
            pages=pages,
        )
        if result.deliver_path == job.input_path:
            logger.info(
                "Output (%d bytes) larger than input (%d bytes), returning original",
                compressed_size,
                original_size,
            )
        else:
            logger.info(
                "Compressed %d pages: %d -> %d bytes (%.1f%% smaller)",
                pages,
                original_size,
                compressed_size,
                result.reduction,
            )
        return result

    def cleanup(self, job: CompressionJob) -> None:
        """Delete every file of the job that still exists. Runs once per job."""
        if job.cleaned:
            return
        job.cleaned = True
        for path in job.paths:
            if self.store.exists(path):
                self.store.remove(path)
        logger.debug("Cleaned up files for job %s", job.id)

    def _normalize(self, job: CompressionJob) -> int:
        """Give the upload a .pdf name and check the job invariants."""
        if self.store.exists(job.output_path):
            raise FileStoreError("Output file already exists", path=str(job.output_path))
        try:
            job.upload_path.rename(job.input_path)
            size = job.input_path.stat().st_size
        except OSError as e:
            raise FileStoreError(
                "Could not prepare the upload for compression",
                path=str(job.upload_path),
            ) from e
        if size == 0:
            raise ValidationError("Uploaded file is empty")
        return size

    async def _verify(self, job: CompressionJob) -> tuple[int, int]:
        """Make sure Ghostscript left a non-empty, readable PDF behind."""
        try:
            size = job.output_path.stat().st_size
        except OSError:
            size = 0
        if size == 0:
            raise CompressionError("Compression failed: no output produced")

        loop = asyncio.get_event_loop()
        try:
            pages = await loop.run_in_executor(None, count_pages, job.output_path)
        except pikepdf.PdfError as e:
            raise CompressionError(
                "Compression failed: output is not a readable PDF",
                diagnostics=str(e),
            ) from e
        return size, pages

    def _redact(self, error: PDFShrinkError, job: CompressionJob) -> None:
        """Strip local paths from a message that will be shown to the client."""
        message = error.message
        replacements = [
            (str(job.output_path), "output.pdf"),
            (str(job.input_path), "input.pdf"),
            (str(job.upload_path), "input"),
            (str(self.store.directory), ""),
        ]
        for path, label in replacements:
            message = message.replace(path, label)
        error.message = message
        error.args = (message,)
