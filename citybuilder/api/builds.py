"""
citybuilder/api/builds.py

Purpose: Build project endpoints (all require a bearer token)

- POST  /create                  new build + LOT_INTAKE step
- GET   /active, /completed      build lists with lot photos
- GET   /steps?projectId=        steps of one build
- POST  /steps/add               add a step
- PATCH /steps/update            partial step update
- POST  /steps/photos/upload     not offered (501)
- GET   /{projectId}             build + steps
- PATCH /{projectId}/complete    active -> completed
- PATCH /{projectId}/reactivate  completed -> active
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from citybuilder.core.logging import get_logger
from citybuilder.core.security import CurrentUser, get_current_user
from citybuilder.schemas.builds import (
    AddStepRequest,
    BuildProjectListItem,
    BuildProjectOut,
    BuildStepOut,
    CreateBuildRequest,
    UpdateStepRequest,
)
from citybuilder.schemas.common import to_api
from citybuilder.services import build_service
from citybuilder.utils.constants import BuildStatus

logger = get_logger(__name__)
router = APIRouter()


@router.post("/create", status_code=201)
async def create_build(
    payload: CreateBuildRequest,
    current_user: CurrentUser = Depends(get_current_user)
):
    project, first_step = await build_service.create_build(current_user, payload.metadata, payload.photos)
    return {
        "success": True,
        "message": "Build created",
        "project": to_api(BuildProjectOut, project),
        "firstStep": to_api(BuildStepOut, first_step),
    }


@router.get("/active")
async def get_active_builds(current_user: CurrentUser = Depends(get_current_user)):
    builds = await build_service.list_builds(current_user, BuildStatus.ACTIVE)
    return {"success": True, "builds": [to_api(BuildProjectListItem, b) for b in builds]}


@router.get("/completed")
async def get_completed_builds(current_user: CurrentUser = Depends(get_current_user)):
    builds = await build_service.list_builds(current_user, BuildStatus.COMPLETED)
    return {"success": True, "builds": [to_api(BuildProjectListItem, b) for b in builds]}


# ============================================================
# STEPS
# ============================================================

@router.get("/steps")
async def get_build_steps(
    project_id: Optional[str] = Query(None, alias="projectId"),
    current_user: CurrentUser = Depends(get_current_user)
):
    steps = await build_service.get_steps(current_user, project_id)
    return {"success": True, "steps": [to_api(BuildStepOut, s) for s in steps]}


@router.post("/steps/add", status_code=201)
async def add_build_step(
    payload: AddStepRequest,
    current_user: CurrentUser = Depends(get_current_user)
):
    step = await build_service.add_step(current_user, payload.model_dump())
    return {
        "success": True,
        "message": "Step added successfully",
        "step": to_api(BuildStepOut, step),
    }


@router.patch("/steps/update")
async def update_build_step(
    payload: UpdateStepRequest,
    current_user: CurrentUser = Depends(get_current_user)
):
    step = await build_service.update_step(current_user, payload.model_dump(exclude_unset=True))
    return {
        "success": True,
        "message": "Step updated successfully",
        "step": to_api(BuildStepOut, step),
    }


@router.post("/steps/photos/upload")
async def upload_build_step_photos(current_user: CurrentUser = Depends(get_current_user)):
    build_service.upload_step_photos()


# ============================================================
# SINGLE BUILD
# ============================================================

@router.get("/{project_id}")
async def get_build(project_id: str, current_user: CurrentUser = Depends(get_current_user)):
    project, steps = await build_service.get_build_with_steps(current_user, project_id)
    return {
        "success": True,
        "build": to_api(BuildProjectOut, project),
        "steps": [to_api(BuildStepOut, s) for s in steps],
    }


@router.patch("/{project_id}/complete")
async def mark_build_complete(project_id: str, current_user: CurrentUser = Depends(get_current_user)):
    project = await build_service.mark_build_complete(current_user, project_id)
    return {
        "success": True,
        "message": "Build marked as completed.",
        "build": to_api(BuildProjectOut, project),
    }


@router.patch("/{project_id}/reactivate")
async def reactivate_build(project_id: str, current_user: CurrentUser = Depends(get_current_user)):
    project = await build_service.reactivate_build(current_user, project_id)
    return {
        "success": True,
        "message": "Build moved back to active.",
        "build": to_api(BuildProjectOut, project),
    }
