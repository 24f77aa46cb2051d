"""
citybuilder/client/config.py

Purpose: Client toolkit configuration

- Read from CITYBUILDER_* environment variables or a .env file
- Backend base URL, ImageKit upload endpoint and public key
"""

from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Settings for the compress / upload / backend-call toolkit."""

    BACKEND_URL: str = "http://localhost:4022"
    BACKEND_TIMEOUT_SECONDS: float = 15.0

    IMAGEKIT_UPLOAD_URL: str = "https://upload.imagekit.io/api/v1/files/upload"
    IMAGEKIT_PUBLIC_KEY: str = ""
    IMAGEKIT_UPLOAD_TIMEOUT_SECONDS: float = 60.0

    MAXIMUM_LOT_PHOTOS_ALLOWED: int = 8

    class Config:
        env_prefix = "CITYBUILDER_"
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


client_settings = ClientSettings()
