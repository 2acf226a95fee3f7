"""Running Ghostscript's pdfwrite device as a subprocess."""

import asyncio
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from pdfshrink.core.errors import CompressionError, CompressionTimeoutError, LaunchError
from pdfshrink.core.options import CompressionOptions

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Exit status and everything the process wrote to stdout/stderr."""

    returncode: int
    diagnostics: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class GhostscriptCompressor:
    """Compresses one PDF into another by invoking Ghostscript."""

    def __init__(self, binary: str = "gs", options: Optional[CompressionOptions] = None):
        """
        Initialize the compressor.

        Args:
            binary: Ghostscript executable name or path.
            options: Compression options. Uses defaults if not provided.
        """
        self.binary = binary
        self.options = options or CompressionOptions()

    def resolve_binary(self) -> Optional[str]:
        """Full path of the configured binary, or None if it cannot be found."""
        return shutil.which(self.binary)

    def build_command(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
    ) -> List[str]:
        return [
            self.binary,
            "-sDEVICE=pdfwrite",
            f"-dCompatibilityLevel={self.options.compatibility_level}",
            f"-dPDFSETTINGS=/{self.options.preset}",
            "-dNOPAUSE",
            "-dQUIET",
            "-dBATCH",
            f"-sOutputFile={output_path}",
            str(input_path),
        ]

    async def run(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
    ) -> ProcessResult:
        """
        Run Ghostscript and wait for it to exit.

        The command is executed directly, never through a shell. If the
        wait exceeds the configured timeout, or the calling task is
        cancelled, the process is killed and reaped before returning.

        Raises:
            LaunchError: the binary is missing or not executable.
            CompressionTimeoutError: the process ran past the timeout.
        """
        cmd = self.build_command(input_path, output_path)
        logger.debug("Running %s", " ".join(cmd))

        started = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise LaunchError(self.binary, e.strerror or str(e)) from e

        try:
            output, _ = await asyncio.wait_for(
                process.communicate(), timeout=self.options.timeout
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.error(
                "Ghostscript (pid %s) killed after %.1fs timeout",
                process.pid,
                self.options.timeout,
            )
            raise CompressionTimeoutError(self.options.timeout)
        except asyncio.CancelledError:
            await self._kill(process)
            logger.warning("Ghostscript (pid %s) killed, request cancelled", process.pid)
            raise

        result = ProcessResult(
            returncode=process.returncode,
            diagnostics=(output or b"").decode("utf-8", errors="replace"),
        )
        logger.info(
            "Ghostscript exited with code %d in %.2fs",
            result.returncode,
            time.monotonic() - started,
        )
        return result

    async def compress(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
    ) -> None:
        """
        Compress ``input_path`` into ``output_path``.

        Exit code 0 is success regardless of what Ghostscript printed; the
        output file is not checked here.

        Raises:
            LaunchError: the binary could not be started.
            CompressionError: non-zero exit code or timeout.
        """
        result = await self.run(input_path, output_path)
        if not result.ok:
            raise CompressionError.from_exit(result.returncode, result.diagnostics)
        if result.diagnostics.strip():
            logger.debug("Ghostscript output: %s", result.diagnostics.strip())

    @staticmethod
    async def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
