"""Shell utilities.

Provides an async wrapper around the ``gh`` CLI, which carries authentication
for all hosting calls, plus output formatting helpers for the CLI.
"""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any

import click
import structlog

from .errors import HostingError

logger = structlog.get_logger(__name__)

HTTP_STATUS_PATTERN = re.compile(r"\(HTTP (\d{3})\)")


async def gh(*args: str, input: str | None = None) -> str:
    """Run a gh command and return stdout.

    Args:
        *args: Arguments to pass to gh (e.g., "api", "repos/o/r/releases").
        input: Text passed on stdin (for ``--input -``).

    Returns:
        Raw stdout from the gh command.

    Raises:
        HostingError: If gh exits non-zero. ``status`` carries the HTTP status
            when gh reports one.
    """
    proc = await asyncio.create_subprocess_exec(
        "gh",
        *args,
        stdin=asyncio.subprocess.PIPE if input is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate(input.encode() if input is not None else None)
    if proc.returncode != 0:
        err = stderr.decode().strip()
        match = HTTP_STATUS_PATTERN.search(err)
        status = int(match.group(1)) if match else None
        # gh prints the API error payload on stdout
        raise HostingError(f"gh {' '.join(args[:2])} failed: {err} {stdout.decode()}", status)
    return stdout.decode()


async def gh_api(
    path: str, method: str = "GET", payload: dict[str, Any] | None = None
) -> Any:
    """Call the REST API through ``gh api`` and decode the JSON response."""
    args = ["api", "-X", method, "-H", "Accept: application/vnd.github+json", path]
    if payload is not None:
        args += ["--input", "-"]
    logger.debug("gh_api", method=method, path=path)
    output = await gh(*args, input=json.dumps(payload) if payload is not None else None)
    return json.loads(output) if output.strip() else None


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of a run in terminal output.
    """
    click.echo(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")
