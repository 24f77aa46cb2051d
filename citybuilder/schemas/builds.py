"""
citybuilder/schemas/builds.py

Purpose: Build project and build step schemas

- Request bodies for creating builds and adding/updating steps
- Response views for projects, steps, photos and the cost overview
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field

from citybuilder.schemas.common import CamelModel


# ============================================================
# PHOTOS
# ============================================================

class PhotoOut(CamelModel):
    image_kit_file_id: str = ""
    url: str = ""
    thumbnail_url: str = ""
    name: str = ""
    expires_at: Optional[datetime] = None


class PhotoSummary(CamelModel):
    url: str = ""
    thumbnail_url: str = ""
    name: str = ""


# ============================================================
# PROJECTS
# ============================================================

class BuildSummaryOut(CamelModel):
    lot_address: str = ""
    lot_size_dimensions: str = ""
    lot_price: float = 0


class BuildProjectOut(CamelModel):
    id: str = Field(alias="_id")
    owner_user_id: str
    status: str
    summary: BuildSummaryOut = Field(default_factory=BuildSummaryOut)
    current_step_type: str = "LOT_INTAKE"
    current_step_index: int = 0
    intake_started_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BuildProjectListItem(BuildProjectOut):
    lot_photos: List[PhotoSummary] = Field(default_factory=list)


class CreateBuildRequest(CamelModel):
    """
    metadata: {lotAddress, lotSizeDimensions, lotPrice, lotTerrainType, hasOldHouseToDemolish}
    photos: [{imageKitFileId, url, thumbnailUrl, name}] already uploaded to ImageKit
    """
    metadata: Optional[Dict[str, Any]] = None
    photos: Optional[Any] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "metadata": {
                "lotAddress": "12 Cedar Lane",
                "lotSizeDimensions": "50x120",
                "lotPrice": 185000,
                "lotTerrainType": "flat",
                "hasOldHouseToDemolish": False
            },
            "photos": [
                {
                    "imageKitFileId": "file_abc",
                    "url": "https://ik.imagekit.io/demo/lot-photos/a.jpg",
                    "thumbnailUrl": "https://ik.imagekit.io/demo/tr:n-ik_ml_thumbnail/lot-photos/a.jpg",
                    "name": "a.jpg"
                }
            ]
        }
    })


# ============================================================
# STEPS
# ============================================================

class BuildStepOut(CamelModel):
    id: str = Field(alias="_id")
    project_id: str
    owner_user_id: str
    step_type: str = "GENERAL"
    step_number: int = 1
    title: str
    status: str = "planned"
    date_start: str = ""
    date_end: str = ""
    cost_amount: float = 0
    cost_currency: str = ""
    notes: str = ""
    photos: List[PhotoOut] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)
    revision_number: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AddStepRequest(CamelModel):
    # Free-text fields are coerced to strings by the service
    project_id: Optional[str] = None
    title: Optional[Any] = None
    step_number: Optional[int] = None
    step_type: Optional[str] = None
    start_date: Optional[Any] = None
    end_date: Optional[Any] = None
    cost: Optional[Any] = None
    notes: Optional[Any] = None
    photos: Optional[Any] = None


class UpdateStepRequest(CamelModel):
    """
    Only the fields present in the body are applied.
    `photos` is the full list the user wants to keep.
    Text fields accept any JSON scalar and are stored as strings.
    """
    step_id: Optional[str] = None
    project_id: Optional[str] = None
    title: Optional[Any] = None
    date_start: Optional[Any] = None
    date_end: Optional[Any] = None
    cost: Optional[Any] = None
    cost_currency: Optional[Any] = None
    notes: Optional[Any] = None
    photos: Optional[Any] = None
    status: Optional[str] = None


# ============================================================
# COSTS
# ============================================================

class CostOverviewItem(CamelModel):
    id: str = Field(alias="_id")
    address: str = ""
    lot_dimensions: str = ""
    lot_price: float = 0
    start_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    total_cost: float = 0
    step_count: int = 0
    last_step_title: str = ""
    last_step_photos: List[PhotoSummary] = Field(default_factory=list)
    lot_photos: List[PhotoSummary] = Field(default_factory=list)
