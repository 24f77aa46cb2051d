"""
citybuilder/services/cost_service.py

Purpose: Cost overview of completed builds

- Total cost per build (sum of positive step costs)
- Last step title and photos for the carousel
- LOT_INTAKE photos as a fallback hero image
"""

from collections import defaultdict
from typing import Any, Dict, List

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING

from citybuilder.core.logging import get_logger
from citybuilder.core.security import CurrentUser
from citybuilder.db.mongo import get_build_projects_collection, get_build_steps_collection
from citybuilder.utils.constants import BuildStatus, STEP_TYPE_LOT_INTAKE
from citybuilder.utils.validation_utils import photo_summary

logger = get_logger(__name__)


def summarize_build(project: Dict[str, Any], steps: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Builds one overview row from a project and its steps (oldest first).
    """
    summary = project.get("summary") or {}

    total_cost = sum(
        step.get("cost_amount") or 0
        for step in steps
        if (step.get("cost_amount") or 0) > 0
    )

    last_step = steps[-1] if steps else None
    lot_step = next((s for s in steps if s.get("step_type") == STEP_TYPE_LOT_INTAKE), None)

    return {
        "_id": project["_id"],
        "address": summary.get("lot_address") or "",
        "lot_dimensions": summary.get("lot_size_dimensions") or "",
        "lot_price": summary.get("lot_price") or 0,
        "start_date": project.get("intake_started_at"),
        "completed_date": project.get("updated_at"),
        "total_cost": total_cost,
        "step_count": len(steps),
        "last_step_title": (last_step.get("title") or "") if last_step else "",
        "last_step_photos": photo_summary(last_step.get("photos")) if last_step else [],
        "lot_photos": photo_summary(lot_step.get("photos")) if lot_step else [],
    }


async def get_completed_builds_cost_overview(current_user: CurrentUser) -> List[Dict[str, Any]]:
    """
    Returns one overview row per completed build, newest first.
    All steps are loaded with a single $in query and grouped in memory.
    """
    completed = await get_build_projects_collection().find({
        "owner_user_id": ObjectId(current_user.user_id),
        "status": BuildStatus.COMPLETED.value,
    }).sort("updated_at", DESCENDING).to_list(length=None)

    if not completed:
        return []

    all_steps = await get_build_steps_collection().find({
        "project_id": {"$in": [project["_id"] for project in completed]},
    }).sort("created_at", ASCENDING).to_list(length=None)

    steps_by_project = defaultdict(list)
    for step in all_steps:
        steps_by_project[str(step["project_id"])].append(step)

    logger.debug(f"Cost overview: {len(completed)} builds, {len(all_steps)} steps")

    return [
        summarize_build(project, steps_by_project[str(project["_id"])])
        for project in completed
    ]
