from __future__ import annotations

from fastapi import HTTPException, status

from ..errors import ErrorKind, ForgeError

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_FORMAT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.EXTERNAL_PROCESS: status.HTTP_502_BAD_GATEWAY,
}


def http_error(error: ForgeError) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_KIND.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"kind": error.kind.value, "message": str(error)},
    )
