"""Periodic status writer for the sink bridge daemon."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

import msgspec

from .context import RuntimeState

logger = logging.getLogger("sinkbridge.status")


async def status_writer(state: RuntimeState, path: Path, interval: float) -> None:
    """Persist a JSON snapshot of *state* to *path* every *interval* seconds."""

    while True:
        try:
            payload = state.snapshot()
            write_task = asyncio.create_task(asyncio.to_thread(write_status_file, path, payload))
            try:
                await asyncio.shield(write_task)
            except asyncio.CancelledError:
                await write_task
                raise
        except asyncio.CancelledError:
            logger.info("Status writer task cancelled.")
            raise
        except OSError as exc:
            logger.warning("Could not write status file %s: %s", path, exc)
        await asyncio.sleep(interval)


def cleanup_status_file(path: Path) -> None:
    """Remove the status file if it exists."""

    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.debug("Ignoring error while removing status file.")


def write_status_file(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with NamedTemporaryFile(
        "wb",
        dir=path.parent,
        delete=False,
    ) as handle:
        handle.write(msgspec.json.encode(payload))
        temp_name = handle.name
    Path(temp_name).replace(path)


__all__ = ["cleanup_status_file", "status_writer", "write_status_file"]
