"""Receiving the uploaded PDF from a multipart request.

The request body is fed chunk by chunk to python-multipart's streaming
parser and the ``pdf`` part is written straight into the store, so no
copy of the upload ever lands outside the storage directory and an
oversized body is rejected as soon as the limit is crossed.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

from fastapi import Request
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from pdfshrink.core.errors import FileStoreError, ValidationError
from pdfshrink.core.storage import TempFileStore
from pdfshrink.core.utils import format_size

logger = logging.getLogger(__name__)

FIELD_NAME = "pdf"
PDF_CONTENT_TYPE = "application/pdf"
# Allowance for multipart boundaries, part headers and small form fields
MULTIPART_OVERHEAD = 64 * 1024


@dataclass
class Upload:
    """A PDF received from the client and stored under a generated name."""

    id: str
    filename: str
    size: int
    path: Path


def too_large(max_bytes: int) -> ValidationError:
    return ValidationError(f"File too large (max {format_size(max_bytes)})")


class UploadReceiver:
    """python-multipart callbacks that store the single ``pdf`` file part.

    Only one file part is accepted; its bytes go to a file named from a
    generated id. Parts without a filename are ordinary form fields and
    are skipped.
    """

    def __init__(self, store: TempFileStore, max_bytes: int):
        self.store = store
        self.max_bytes = max_bytes
        self.upload: Optional[Upload] = None
        self._out: Optional[BinaryIO] = None
        self._headers: dict[bytes, bytes] = {}
        self._header_field = b""
        self._header_value = b""

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
        }

    @property
    def in_file_part(self) -> bool:
        return self._out is not None

    def on_part_begin(self) -> None:
        self._headers = {}

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._headers.get(b"content-disposition", b""))
        filename = options.get(b"filename")
        if not filename:
            return

        if self.upload is not None:
            raise ValidationError("Only one file can be uploaded at a time")

        field = options.get(b"name", b"").decode("utf-8", errors="replace")
        if field != FIELD_NAME:
            raise ValidationError(f"Unexpected file field '{field}', expected '{FIELD_NAME}'")

        content_type, _ = parse_options_header(self._headers.get(b"content-type", b""))
        if content_type.decode("latin-1").strip().lower() != PDF_CONTENT_TYPE:
            raise ValidationError("Only PDF files are allowed")

        upload_id = self.store.new_id()
        path = self.store.path_for(upload_id)
        self.upload = Upload(
            id=upload_id,
            filename=filename.decode("utf-8", errors="replace"),
            size=0,
            path=path,
        )
        try:
            self._out = path.open("wb")
        except OSError as e:
            raise FileStoreError("Could not store the uploaded file", path=str(path)) from e

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if not self.in_file_part:
            return
        self.upload.size += end - start
        if self.upload.size > self.max_bytes:
            raise too_large(self.max_bytes)
        try:
            self._out.write(data[start:end])
        except OSError as e:
            raise FileStoreError("Could not store the uploaded file", path=str(self.upload.path)) from e

    def on_part_end(self) -> None:
        if self._out is not None:
            self._out.close()
            self._out = None

    def discard(self) -> None:
        """Close and delete whatever was written so far."""
        self.on_part_end()
        if self.upload is not None:
            self.store.remove(self.upload.path)


def _multipart_boundary(request: Request) -> bytes:
    content_type, params = parse_options_header(request.headers.get("content-type", ""))
    boundary = params.get(b"boundary")
    if content_type.strip().lower() != b"multipart/form-data" or not boundary:
        raise ValidationError("No file uploaded")
    return boundary


def _check_declared_length(request: Request, max_bytes: int) -> None:
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes + MULTIPART_OVERHEAD:
        raise too_large(max_bytes)


async def receive_upload(request: Request, store: TempFileStore, max_bytes: int) -> Upload:
    """
    Validate the request and store its single PDF part.

    The body is read incrementally; reading stops as soon as it exceeds
    ``max_bytes`` plus the multipart allowance, whether or not the client
    sent a Content-Length. The stored file is named from a generated id,
    never from the client's filename. On any failure the partial file is
    removed before the error is raised.

    Raises:
        ValidationError: missing, extra, wrongly named, non-PDF, empty or
            oversized file, or a malformed multipart body.
        FileStoreError: the file could not be written.
    """
    boundary = _multipart_boundary(request)
    _check_declared_length(request, max_bytes)

    receiver = UploadReceiver(store, max_bytes)
    parser = MultipartParser(boundary, receiver.callbacks())
    body_limit = max_bytes + MULTIPART_OVERHEAD
    received = 0

    try:
        async for chunk in request.stream():
            received += len(chunk)
            if received > body_limit:
                raise too_large(max_bytes)
            parser.write(chunk)
        parser.finalize()

        if receiver.in_file_part:
            raise ValidationError("Malformed multipart body")
        if receiver.upload is None:
            raise ValidationError("No file uploaded")
        if receiver.upload.size == 0:
            raise ValidationError("Uploaded file is empty")
    except MultipartParseError as e:
        receiver.discard()
        raise ValidationError("Malformed multipart body") from e
    except BaseException:
        receiver.discard()
        raise

    logger.debug("Stored %s (%d bytes) as upload %s", receiver.upload.filename, receiver.upload.size, receiver.upload.id)
    return receiver.upload
