"""Editor installs and what they ship."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends

from ...errors import ForgeError
from ...state.app_context import AppContext
from ...state.editors import EditorInstall
from ...templates.catalog import TemplateCatalog
from ...templates.models import MinimalPackage, Template
from ..deps import get_context
from ..errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[EditorInstall])
async def list_editors(refresh: bool = False, context: AppContext = Depends(get_context)) -> List[EditorInstall]:
    """Installed editors, newest first. ``refresh`` rescans the editors folder."""
    return context.refresh_editors() if refresh else context.editors()


@router.get("/{version}/templates", response_model=List[Template])
async def list_templates(version: str, context: AppContext = Depends(get_context)) -> List[Template]:
    try:
        return TemplateCatalog(context).list_templates(version)
    except ForgeError as e:
        logger.warning("Listing templates for %s failed: %s", version, e)
        raise http_error(e) from e


@router.get("/{version}/packages", response_model=List[MinimalPackage])
async def default_packages(version: str, context: AppContext = Depends(get_context)) -> List[MinimalPackage]:
    """The editor's built-in package catalog."""
    try:
        return TemplateCatalog(context).default_editor_packages(version)
    except ForgeError as e:
        raise http_error(e) from e
