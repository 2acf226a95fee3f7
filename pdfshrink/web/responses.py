"""Response classes used by the web application."""

from typing import Callable

from fastapi.responses import FileResponse
from starlette.types import Receive, Scope, Send


class CleanupFileResponse(FileResponse):
    """A FileResponse that runs ``cleanup`` once sending has ended.

    ``cleanup`` runs after the last byte is sent, and also when sending is
    aborted by a client disconnect or task cancellation.
    """

    def __init__(self, path, *, cleanup: Callable[[], None], **kwargs):
        super().__init__(path, **kwargs)
        self._cleanup = cleanup

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self._cleanup()
