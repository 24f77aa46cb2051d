from pydantic import BaseModel


class ImageKitAuthResponse(BaseModel):
    """
    Single-use upload credentials for a direct client upload to ImageKit.
    """
    success: bool = True
    token: str
    expire: int
    signature: str
