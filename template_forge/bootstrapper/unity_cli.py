from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Optional

from ..errors import ExternalProcessError

logger = logging.getLogger(__name__)


class UnityEditorCLI:
    """
    Minimal wrapper around an editor executable run in batch mode. The process
    is awaited under ``timeout`` seconds (``None`` waits forever) and killed on
    timeout or when the awaiting task is cancelled.
    """

    def __init__(self, timeout: Optional[float] = 900.0):
        self.timeout = timeout

    async def create_project(self, exe_path: str | Path, project_path: str | Path) -> Path:
        project_path = Path(project_path)
        args = [str(exe_path), "-createProject", str(project_path), "-quit"]
        logger.info("Creating empty project with %s", " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExternalProcessError(f"Failed to start editor: {e}", path=exe_path) from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            await self._kill(proc)
            raise ExternalProcessError(
                f"Editor did not finish within {self.timeout} seconds", path=exe_path
            ) from e
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        if proc.returncode != 0:
            err = (stderr or b"").decode("utf-8", errors="replace").strip()
            raise ExternalProcessError(
                f"Editor exited with code {proc.returncode}",
                path=exe_path,
                returncode=proc.returncode,
                stderr=err,
            )
        return project_path

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
        logger.warning("Killed editor process %s", proc.pid)
