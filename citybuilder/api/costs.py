from fastapi import APIRouter, Depends

from citybuilder.core.security import CurrentUser, get_current_user
from citybuilder.schemas.builds import CostOverviewItem
from citybuilder.schemas.common import to_api
from citybuilder.services import cost_service

router = APIRouter()


@router.get("/overview")
async def get_cost_overview(current_user: CurrentUser = Depends(get_current_user)):
    """
    Cost overview for all completed builds: totals, step counts and photos.
    """
    builds = await cost_service.get_completed_builds_cost_overview(current_user)
    return {"success": True, "builds": [to_api(CostOverviewItem, b) for b in builds]}
