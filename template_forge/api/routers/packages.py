"""User-added git and local packages."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from ...errors import ForgeError
from ...state.app_context import AppContext, UserCache
from ...templates.manifest_writer import read_descriptor
from ...templates.models import MinimalPackage
from ..deps import get_context
from ..errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter()


class LastEditorVersion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    editor_version: Optional[str] = Field(default=None, alias="editorVersion")


@router.get("/user-cache", response_model=UserCache)
async def get_user_cache(context: AppContext = Depends(get_context)) -> UserCache:
    return context.user_cache()


@router.put("/last-editor-version", status_code=status.HTTP_204_NO_CONTENT)
async def set_last_editor_version(body: LastEditorVersion, context: AppContext = Depends(get_context)) -> None:
    context.set_last_editor_version(body.editor_version)


@router.post("/git", status_code=status.HTTP_204_NO_CONTENT)
async def add_git_package(package: MinimalPackage, context: AppContext = Depends(get_context)) -> None:
    context.add_git_package(package)


@router.post("/git/remove", status_code=status.HTTP_204_NO_CONTENT)
async def remove_git_package(package: MinimalPackage, context: AppContext = Depends(get_context)) -> None:
    context.remove_git_package(package)


@router.post("/local", status_code=status.HTTP_204_NO_CONTENT)
async def add_local_package(package: MinimalPackage, context: AppContext = Depends(get_context)) -> None:
    """Remember a local package by the path of its ``package.json``.

    Raises:
        HTTPException: 404 if the descriptor is missing, 422 if it is not
            valid JSON.
    """
    try:
        read_descriptor(Path(package.name))
    except ForgeError as e:
        logger.warning("Rejected local package %s: %s", package.name, e)
        raise http_error(e) from e
    context.add_local_package(package)


@router.post("/local/remove", status_code=status.HTTP_204_NO_CONTENT)
async def remove_local_package(package: MinimalPackage, context: AppContext = Depends(get_context)) -> None:
    context.remove_local_package(package)
