"""Error taxonomy shared by every template-forge component."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_FORMAT = "invalid_format"
    CONFLICT = "conflict"
    EXTERNAL_PROCESS = "external_process"


class ForgeError(Exception):
    """Base error. ``kind`` tags the failure so callers can branch without
    importing every subclass."""

    kind: ErrorKind = ErrorKind.INVALID_FORMAT

    def __init__(self, message: str, *, path: Optional[object] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path is not None:
            return f"{self.message} ({self.path})"
        return self.message


class NotFoundError(ForgeError):
    kind = ErrorKind.NOT_FOUND


class InvalidFormatError(ForgeError):
    kind = ErrorKind.INVALID_FORMAT


class InvalidArchiveError(InvalidFormatError):
    """Missing, corrupt gzip or corrupt tar archive."""


class ConflictError(ForgeError):
    kind = ErrorKind.CONFLICT


class ExternalProcessError(ForgeError):
    kind = ErrorKind.EXTERNAL_PROCESS

    def __init__(
        self,
        message: str,
        *,
        path: Optional[object] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, path=path)
        self.returncode = returncode
        self.stderr = stderr
