from fastapi import APIRouter, Depends

from citybuilder.core.logging import get_logger, LogContext
from citybuilder.core.security import CurrentUser, get_current_user
from citybuilder.schemas.imagekit import ImageKitAuthResponse
from citybuilder.services import imagekit_service

logger = get_logger(__name__)
router = APIRouter()


@router.get("/auth", response_model=ImageKitAuthResponse)
async def get_imagekit_upload_auth(current_user: CurrentUser = Depends(get_current_user)):
    """
    Returns single-use ImageKit upload credentials {token, expire, signature}.
    Only logged-in users may upload.
    """
    params = imagekit_service.get_authentication_parameters()
    with LogContext(user_id=current_user.user_id):
        logger.debug("ImageKit upload credentials issued")
    return ImageKitAuthResponse(**params)
