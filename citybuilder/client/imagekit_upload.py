"""
citybuilder/client/imagekit_upload.py

Purpose: Direct-to-ImageKit photo upload

Flow:
1. Fetch single-use auth params (token, expire, signature) from
   GET /api/imagekit/auth, using the backend caller
2. POST multipart/form-data straight to the ImageKit upload endpoint
3. Return photo references ready to send with a build or step

- Uploads run one at a time; every upload gets fresh auth params
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from citybuilder.client.backend import BackendClient, extract_error_message
from citybuilder.client.compression import MAXIMUM_BYTES_PER_IMAGE, compress_images_for_upload
from citybuilder.client.config import client_settings
from citybuilder.core.logging import get_logger

logger = get_logger(__name__)

IMAGEKIT_AUTH_PATH = "/api/imagekit/auth"
DEFAULT_FOLDER = "/lot-photos"

PhotoSource = Union[str, Path]


class ImageKitUploadError(Exception):
    """Raised when auth params are unusable or ImageKit rejects an upload."""
    pass


def infer_mime_type(name: str) -> str:
    lower = str(name or "").lower()
    if lower.endswith(".png"):
        return "image/png"
    if lower.endswith(".webp"):
        return "image/webp"
    if lower.endswith(".heic"):
        return "image/heic"
    return "image/jpeg"


def infer_file_name(name: str, index: int) -> str:
    """Last path segment when it has an extension, else lot-photo-{n}.jpg."""
    raw = str(name or "").rsplit("/", 1)[-1]
    if raw and "." in raw:
        return raw
    return f"lot-photo-{index + 1}.jpg"


class ImageKitUploader:
    """Uploads photos to ImageKit using backend-signed credentials."""

    def __init__(
        self,
        backend: BackendClient,
        public_key: Optional[str] = None,
        upload_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_photos: Optional[int] = None
    ):
        self.backend = backend
        self.public_key = public_key if public_key is not None else client_settings.IMAGEKIT_PUBLIC_KEY
        self.upload_url = upload_url or client_settings.IMAGEKIT_UPLOAD_URL
        self.transport = transport
        self.max_photos = max_photos or client_settings.MAXIMUM_LOT_PHOTOS_ALLOWED

    async def fetch_auth_params(self) -> Dict[str, Any]:
        """
        Returns {token, expire, signature}. ImageKit tokens are single-use.
        """
        try:
            response = await self.backend.get(IMAGEKIT_AUTH_PATH)
        except httpx.HTTPError as e:
            raise ImageKitUploadError(
                extract_error_message(e, "Could not fetch ImageKit auth params")
            ) from e

        data = response.json()
        token = data.get("token")
        signature = data.get("signature")
        if not token or not signature:
            raise ImageKitUploadError("ImageKit auth params missing from backend response")

        return {"token": token, "expire": data.get("expire"), "signature": signature}

    async def upload_one(
        self,
        content: bytes,
        name: str,
        index: int,
        folder: str = DEFAULT_FOLDER
    ) -> Dict[str, str]:
        file_name = infer_file_name(name, index)
        mime_type = infer_mime_type(file_name)

        logger.info(f"Fetching fresh auth params for image {index + 1} ({file_name})")
        auth = await self.fetch_auth_params()

        form = {
            "fileName": file_name,
            "folder": folder,
            "publicKey": self.public_key,
            "token": auth["token"],
            "expire": str(auth["expire"]),
            "signature": auth["signature"],
        }

        async with httpx.AsyncClient(
            timeout=client_settings.IMAGEKIT_UPLOAD_TIMEOUT_SECONDS,
            transport=self.transport
        ) as client:
            response = await client.post(
                self.upload_url,
                data=form,
                files={"file": (file_name, content, mime_type)}
            )

        if response.is_error:
            logger.warning(f"Upload failed for {file_name}: {response.text}")
            raise ImageKitUploadError(f"ImageKit upload failed ({response.status_code})")

        data = response.json()
        logger.info(f"Image {index + 1} uploaded: {data.get('url')}")

        return {
            "imageKitFileId": data.get("fileId"),
            "url": data.get("url"),
            "thumbnailUrl": data.get("thumbnailUrl") or data.get("url"),
            "name": data.get("name") or file_name,
        }

    async def upload_images(
        self,
        images: List[PhotoSource],
        folder: str = DEFAULT_FOLDER
    ) -> List[Dict[str, str]]:
        """
        Upload local image files, at most `max_photos` of them, in order.
        """
        if not images:
            logger.info("No images to upload")
            return []

        paths = [Path(p) for p in images[:self.max_photos]]
        logger.info(f"Uploading {len(paths)} image(s) sequentially")

        results = []
        for index, path in enumerate(paths):
            results.append(
                await self.upload_one(path.read_bytes(), path.as_posix(), index, folder)
            )

        logger.info(f"All {len(results)} image(s) uploaded")
        return results

    async def compress_and_upload(
        self,
        images: List[PhotoSource],
        folder: str = DEFAULT_FOLDER,
        max_bytes: int = MAXIMUM_BYTES_PER_IMAGE
    ) -> List[Dict[str, str]]:
        """
        Compress then upload. Names keep the source stem with a .jpg suffix.
        """
        paths = [Path(p) for p in images[:self.max_photos]]
        if not paths:
            return []

        compressed = await compress_images_for_upload(
            [p.read_bytes() for p in paths], max_bytes
        )

        results = []
        for index, (path, content) in enumerate(zip(paths, compressed)):
            results.append(
                await self.upload_one(content, f"{path.stem}.jpg", index, folder)
            )
        return results
