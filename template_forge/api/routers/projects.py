"""Project generation."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from ...bootstrapper import ProjectGenerationRequest, ProjectGenerationResult, ProjectGenerator
from ...errors import ForgeError
from ...state.app_context import AppContext, Project
from ..deps import get_context
from ..errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[Project])
async def list_projects(context: AppContext = Depends(get_context)) -> List[Project]:
    return context.projects()


@router.post("", response_model=ProjectGenerationResult, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectGenerationRequest, context: AppContext = Depends(get_context)
) -> ProjectGenerationResult:
    """Generate a project and register it.

    Raises:
        HTTPException: 409 if the output folder exists, 404 for a missing
            editor, 422 for a broken template, 502 if the editor fails.
    """
    try:
        result = await ProjectGenerator(context).generate(request)
    except ForgeError as e:
        raise http_error(e) from e
    context.add_project(Project(path=result.project_path, editor_version=request.editor_version))
    return result
