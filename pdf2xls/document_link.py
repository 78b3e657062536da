"""
Public link for a processed document.

An external tool uploads the document somewhere shareable and prints the
resulting URL on stdout.
"""

import asyncio
import shlex
from pathlib import Path
from typing import List
from urllib.parse import urlparse

from pdf2xls.utils.errors import DocumentLinkError
from pdf2xls.utils.logging import get_logger

logger = get_logger(__name__)


def is_valid_http_url(value: str) -> bool:
    """True for an absolute ``http`` or ``https`` URL with a host."""
    if not value or any(ch.isspace() for ch in value):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class DocumentLinker:
    """Run the document link tool and validate its output."""

    def __init__(self, command: str, timeout: float = 120.0) -> None:
        self.argv: List[str] = shlex.split(command or "")
        if not self.argv:
            raise DocumentLinkError("Document link command is empty")
        self.timeout = timeout

    async def link(self, document: Path) -> str:
        """
        Return the public URL of ``document``.

        Raises:
            DocumentLinkError: If the tool fails, times out or prints
                anything other than one HTTP(S) URL
        """
        argv = [*self.argv, str(document)]
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise DocumentLinkError(f"Cannot start document link tool: {e}", {"command": argv[0]}) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            raise DocumentLinkError(
                f"Document link tool timed out after {self.timeout:g}s",
                {"command": argv[0]},
            ) from e

        if process.returncode != 0:
            raise DocumentLinkError(
                f"Document link tool exited with code {process.returncode}",
                {"stderr": stderr.decode(errors="replace").strip()[:500]},
            )

        url = stdout.decode(errors="replace").strip()
        if not is_valid_http_url(url):
            raise DocumentLinkError("Document link tool did not return a valid URL", {"output": url[:200]})

        logger.info(f"Document link for {document.name}: {url}")
        return url
