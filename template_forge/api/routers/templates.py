"""Template inspection, housekeeping and generation."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from ...bootstrapper import TemplateGenerationRequest, TemplateGenerationResult, TemplateGenerator
from ...errors import ForgeError
from ...state.app_context import AppContext
from ...templates.catalog import TemplateCatalog
from ...templates.models import FileNode, Template, TemplateRecord
from ..deps import get_context
from ..errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter()


class FromProjectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_path: Path = Field(alias="projectPath")
    template: TemplateGenerationRequest


@router.post("/inspect", response_model=TemplateRecord)
async def inspect_template(template: Template, context: AppContext = Depends(get_context)) -> TemplateRecord:
    try:
        return TemplateCatalog(context).inspect(template)
    except ForgeError as e:
        logger.warning("Inspecting %s failed: %s", template.archive_path, e)
        raise http_error(e) from e


@router.post("/files", response_model=FileNode)
async def template_files(template: Template, context: AppContext = Depends(get_context)) -> FileNode:
    try:
        return TemplateCatalog(context).file_tree(template)
    except ForgeError as e:
        raise http_error(e) from e


@router.post("/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(template: Template, context: AppContext = Depends(get_context)) -> None:
    try:
        TemplateCatalog(context).delete(template)
    except ForgeError as e:
        raise http_error(e) from e


@router.post("", response_model=TemplateGenerationResult, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: TemplateGenerationRequest, context: AppContext = Depends(get_context)
) -> TemplateGenerationResult:
    try:
        return await TemplateGenerator(context).generate(request)
    except ForgeError as e:
        raise http_error(e) from e


@router.post("/from-project", response_model=TemplateGenerationResult, status_code=status.HTTP_201_CREATED)
async def create_template_from_project(
    payload: FromProjectRequest, context: AppContext = Depends(get_context)
) -> TemplateGenerationResult:
    try:
        return await TemplateGenerator(context).generate_from_project(payload.project_path, payload.template)
    except ForgeError as e:
        raise http_error(e) from e
