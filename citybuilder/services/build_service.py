"""
citybuilder/services/build_service.py

Purpose: Build projects and build steps

- Create a build (project + LOT_INTAKE step) and send a receipt
- List active / completed builds with their lot photos
- Read, add and update steps, scoped to the owning user
- Status transitions: active -> completed, completed -> active
"""

from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from citybuilder.core.config import settings
from citybuilder.core.exceptions import BadRequestError, NotImplementedFeatureError, ResourceNotFoundError
from citybuilder.core.logging import get_logger, LogContext
from citybuilder.core.security import CurrentUser
from citybuilder.db.mongo import get_build_projects_collection, get_build_steps_collection
from citybuilder.services import mail_service
from citybuilder.utils.constants import (
    BuildStatus,
    StepStatus,
    STEP_STATUSES,
    STEP_TYPE_LOT_INTAKE,
    STEP_TYPE_GENERAL,
    LOT_INTAKE_TITLE,
    DEFAULT_TERRAIN_TYPE,
    MAXIMUM_LOT_PHOTOS_ALLOWED,
    PHOTO_EXPIRY_YEARS,
)
from citybuilder.utils.time_utils import format_timestamp, utcnow, years_from
from citybuilder.utils.validation_utils import (
    clean_text,
    is_blank,
    normalize_lot_photos,
    parse_cost,
    parse_price,
    photo_summary,
    sanitize_step_photos,
    to_object_id,
)

logger = get_logger(__name__)


def _owner_oid(current_user: CurrentUser) -> ObjectId:
    return ObjectId(current_user.user_id)


async def _require_owned_project(
    current_user: CurrentUser,
    project_id: Any,
    message: str = "Build not found"
) -> Dict[str, Any]:
    """
    Loads a project owned by the caller. Malformed ids and other users'
    projects are both reported as not found.
    """
    project_oid = to_object_id(project_id)
    project = None
    if project_oid is not None:
        project = await get_build_projects_collection().find_one({
            "_id": project_oid,
            "owner_user_id": _owner_oid(current_user),
        })
    if not project:
        raise ResourceNotFoundError(message)
    return project


async def _steps_for_project(project_oid: ObjectId) -> List[Dict[str, Any]]:
    cursor = get_build_steps_collection().find({"project_id": project_oid}).sort("created_at", ASCENDING)
    return await cursor.to_list(length=None)


# ============================================================
# CREATE
# ============================================================

async def create_build(
    current_user: CurrentUser,
    metadata: Optional[Dict[str, Any]],
    photos: Any
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Creates an active BuildProject and its LOT_INTAKE step.

    Args:
        metadata: {lotAddress, lotSizeDimensions, lotPrice, lotTerrainType, hasOldHouseToDemolish}
        photos: Photo references already uploaded to ImageKit

    Returns:
        (project, first_step) documents
    """
    metadata = metadata or {}

    lot_address = clean_text(metadata.get("lotAddress"))
    lot_size_dimensions = clean_text(metadata.get("lotSizeDimensions"))
    lot_price = parse_price(metadata.get("lotPrice"))
    terrain_type = clean_text(metadata.get("lotTerrainType")) or DEFAULT_TERRAIN_TYPE
    has_old_house = bool(metadata.get("hasOldHouseToDemolish"))

    if not lot_address:
        raise BadRequestError("lotAddress is required")
    if not lot_size_dimensions:
        raise BadRequestError("lotSizeDimensions is required")
    if lot_price is None:
        raise BadRequestError("lotPrice must be a valid number")

    now = utcnow()
    lot_photos = normalize_lot_photos(
        photos,
        MAXIMUM_LOT_PHOTOS_ALLOWED,
        years_from(now, PHOTO_EXPIRY_YEARS)
    )

    owner_oid = _owner_oid(current_user)
    project = {
        "owner_user_id": owner_oid,
        "status": BuildStatus.ACTIVE.value,
        "summary": {
            "lot_address": lot_address,
            "lot_size_dimensions": lot_size_dimensions,
            "lot_price": lot_price,
        },
        "current_step_type": STEP_TYPE_LOT_INTAKE,
        "current_step_index": 0,
        "intake_started_at": now,
        "created_at": now,
        "updated_at": now,
    }
    await get_build_projects_collection().insert_one(project)

    first_step = {
        "project_id": project["_id"],
        "owner_user_id": owner_oid,
        "step_type": STEP_TYPE_LOT_INTAKE,
        "step_number": 1,
        "title": LOT_INTAKE_TITLE,
        "status": StepStatus.IN_PROGRESS.value,
        "date_start": "",
        "date_end": "",
        "cost_amount": 0.0,
        "cost_currency": "",
        "notes": "",
        "photos": lot_photos,
        "data": {
            "lotTerrainType": terrain_type,
            "hasOldHouseToDemolish": has_old_house,
        },
        "revision_number": 1,
        "created_at": now,
        "updated_at": now,
    }
    await get_build_steps_collection().insert_one(first_step)

    with LogContext(user_id=current_user.user_id, project_id=str(project["_id"])):
        logger.info(f"Build created with {len(lot_photos)} lot photo(s)")

    await mail_service.try_send_build_started_email(
        to=current_user.email,
        name=current_user.name,
        project_id=str(project["_id"]),
        lot_address=lot_address,
        lot_size_dimensions=lot_size_dimensions,
        lot_price=f"{lot_price:,.2f}".rstrip("0").rstrip("."),
        terrain_type=terrain_type,
        has_old_house=has_old_house,
        created_at=format_timestamp(now),
        photo_urls=[photo["url"] for photo in lot_photos],
    )

    return project, first_step


# ============================================================
# LIST / READ
# ============================================================

async def list_builds(current_user: CurrentUser, status: BuildStatus) -> List[Dict[str, Any]]:
    """
    Returns the caller's builds in `status`, newest activity first.
    Each build carries `lot_photos` from its LOT_INTAKE step, fetched with
    one bulk query.
    """
    projects = await get_build_projects_collection().find({
        "owner_user_id": _owner_oid(current_user),
        "status": status.value,
    }).sort("updated_at", DESCENDING).to_list(length=None)

    if not projects:
        return []

    lot_steps = await get_build_steps_collection().find(
        {
            "project_id": {"$in": [project["_id"] for project in projects]},
            "step_type": STEP_TYPE_LOT_INTAKE,
        },
        {"project_id": 1, "photos": 1}
    ).to_list(length=None)

    photos_by_project = {
        str(step["project_id"]): photo_summary(step.get("photos"))
        for step in lot_steps
    }

    return [
        {**project, "lot_photos": photos_by_project.get(str(project["_id"]), [])}
        for project in projects
    ]


async def get_build_with_steps(current_user: CurrentUser, project_id: str) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    project = await _require_owned_project(current_user, project_id)
    steps = await _steps_for_project(project["_id"])
    return project, steps


async def get_steps(current_user: CurrentUser, project_id: Optional[str]) -> List[Dict[str, Any]]:
    if not project_id:
        raise BadRequestError("projectId query param is required")
    project = await _require_owned_project(current_user, project_id)
    return await _steps_for_project(project["_id"])


# ============================================================
# STEPS
# ============================================================

async def add_step(current_user: CurrentUser, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Appends a step to an owned project and moves the project's current-step
    pointer to it.

    Args:
        payload: {project_id, title, step_number?, step_type?, start_date?,
                  end_date?, cost?, notes?, photos?}
    """
    project_id = payload.get("project_id")
    title = payload.get("title")

    if not project_id:
        raise BadRequestError("projectId is required")
    if is_blank(title):
        raise BadRequestError("title is required")

    project = await _require_owned_project(current_user, project_id, "Build project not found")

    photos = payload.get("photos")
    step_type = clean_text(payload.get("step_type")) or STEP_TYPE_GENERAL
    now = utcnow()

    step = {
        "project_id": project["_id"],
        "owner_user_id": _owner_oid(current_user),
        "step_type": step_type,
        "step_number": payload.get("step_number") or 1,
        "title": title.strip(),
        "status": StepStatus.PLANNED.value,
        "date_start": clean_text(payload.get("start_date")),
        "date_end": clean_text(payload.get("end_date")),
        "cost_amount": parse_cost(payload.get("cost")),
        "cost_currency": "",
        "notes": clean_text(payload.get("notes")),
        "photos": sanitize_step_photos(photos, settings.MAXIMUM_STEP_PHOTOS) if isinstance(photos, list) else [],
        "data": {},
        "revision_number": 1,
        "created_at": now,
        "updated_at": now,
    }
    await get_build_steps_collection().insert_one(step)

    await get_build_projects_collection().update_one(
        {"_id": project["_id"]},
        {
            "$set": {"current_step_type": step_type, "updated_at": now},
            "$inc": {"current_step_index": 1},
        }
    )

    with LogContext(user_id=current_user.user_id, project_id=str(project["_id"]), step_id=str(step["_id"])):
        logger.info(f"Step added: {step_type}")

    return step


def _build_step_updates(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translates the fields present in an update request into a $set document.
    Absent fields are left untouched; explicit nulls clear text fields.
    """
    updates: Dict[str, Any] = {}

    if fields.get("title") is not None:
        title = str(fields["title"]).strip()
        if not title:
            raise BadRequestError("title cannot be empty")
        updates["title"] = title

    if "date_start" in fields:
        updates["date_start"] = clean_text(fields["date_start"])
    if "date_end" in fields:
        updates["date_end"] = clean_text(fields["date_end"])

    if fields.get("cost") is not None:
        updates["cost_amount"] = parse_cost(fields["cost"])

    if "cost_currency" in fields:
        updates["cost_currency"] = clean_text(fields["cost_currency"]).upper()

    if "notes" in fields:
        updates["notes"] = clean_text(fields["notes"])

    # Unknown statuses are ignored
    if fields.get("status") in STEP_STATUSES:
        updates["status"] = fields["status"]

    if "photos" in fields:
        photos = fields["photos"]
        if not isinstance(photos, list):
            raise BadRequestError("photos must be an array")
        updates["photos"] = sanitize_step_photos(photos, settings.MAXIMUM_STEP_PHOTOS)
        logger.info(
            f"Photos: {len(photos)} received -> {len(updates['photos'])} kept "
            f"(max {settings.MAXIMUM_STEP_PHOTOS})"
        )

    return updates


async def update_step(current_user: CurrentUser, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Applies a partial update to a step and bumps its revision number.

    Args:
        fields: Only the keys the client sent (step_id and project_id required)
    """
    step_id = fields.get("step_id")
    project_id = fields.get("project_id")

    if not step_id:
        raise BadRequestError("stepId is required")
    if not project_id:
        raise BadRequestError("projectId is required")

    project = await _require_owned_project(current_user, project_id, "Build project not found")

    step_oid = to_object_id(step_id)
    steps = get_build_steps_collection()
    existing = await steps.find_one({"_id": step_oid, "project_id": project["_id"]}) if step_oid else None
    if not existing:
        raise ResourceNotFoundError("Step not found")

    with LogContext(user_id=current_user.user_id, project_id=str(project["_id"]), step_id=str(step_oid)):
        updates = _build_step_updates(fields)
        changed = sorted(updates)
        updates["updated_at"] = utcnow()

        updated = await steps.find_one_and_update(
            {"_id": step_oid, "project_id": project["_id"]},
            {"$set": updates, "$inc": {"revision_number": 1}},
            return_document=ReturnDocument.AFTER
        )
        if not updated:
            raise ResourceNotFoundError("Step not found")

        logger.info(
            f"✅ Step updated | fields: {', '.join(changed) or '-'} "
            f"| revision: {updated.get('revision_number')}"
        )
        return updated


def upload_step_photos() -> None:
    """
    Photos reach ImageKit directly from the client and are attached through
    update_step; multipart upload through the API is not offered.
    """
    raise NotImplementedFeatureError()


# ============================================================
# STATUS TRANSITIONS
# ============================================================

async def _transition(
    current_user: CurrentUser,
    project_id: str,
    from_status: BuildStatus,
    to_status: BuildStatus,
    not_found_message: str
) -> Dict[str, Any]:
    """
    Atomically moves an owned project between statuses. Only matches when
    the project is currently in `from_status`.
    """
    project_oid = to_object_id(project_id)
    updated = None
    if project_oid is not None:
        updated = await get_build_projects_collection().find_one_and_update(
            {
                "_id": project_oid,
                "owner_user_id": _owner_oid(current_user),
                "status": from_status.value,
            },
            {"$set": {"status": to_status.value, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER
        )

    if not updated:
        raise ResourceNotFoundError(not_found_message)

    with LogContext(user_id=current_user.user_id, project_id=project_id):
        logger.info(f"Build moved {from_status.value} -> {to_status.value}")
    return updated


async def mark_build_complete(current_user: CurrentUser, project_id: str) -> Dict[str, Any]:
    return await _transition(
        current_user, project_id, BuildStatus.ACTIVE, BuildStatus.COMPLETED,
        "Build not found, not owned by you, or already completed/archived."
    )


async def reactivate_build(current_user: CurrentUser, project_id: str) -> Dict[str, Any]:
    return await _transition(
        current_user, project_id, BuildStatus.COMPLETED, BuildStatus.ACTIVE,
        "Build not found, not owned by you, or not completed."
    )
