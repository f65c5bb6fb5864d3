"""
Poster uploads to Cloudinary.

The SDK picks its credentials up from the CLOUDINARY_URL environment variable.
"""

import io
from typing import Optional

import cloudinary.exceptions
import cloudinary.uploader
from fastapi.concurrency import run_in_threadpool

from app.errors import InvalidArgument, UpstreamError
from app.logger import logger
from app.models import UploadedMedia

MAX_POSTER_BYTES = 5 * 1024 * 1024
POSTER_FOLDER = "movie-posters"
POSTER_FORMATS = ["jpg", "jpeg", "png", "gif", "webp"]
# 2:3 thumbnail, the usual poster aspect
POSTER_TRANSFORMATION = [
    {"width": 500, "height": 750, "crop": "fill", "quality": "auto"},
    {"fetch_format": "auto"},
]


def validate_poster(data: Optional[bytes], content_type: Optional[str]) -> bytes:
    if not data:
        raise InvalidArgument("No file uploaded")
    if not (content_type or "").startswith("image/"):
        raise InvalidArgument("Only image files are allowed!")
    if len(data) > MAX_POSTER_BYTES:
        raise InvalidArgument("File too large. Maximum size is 5MB.")
    return data


class MediaUploadService:
    def __init__(self, folder: str = POSTER_FOLDER):
        self.folder = folder

    async def upload_poster(
        self, data: Optional[bytes], content_type: Optional[str], filename: Optional[str] = None
    ) -> UploadedMedia:
        data = validate_poster(data, content_type)
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                io.BytesIO(data),
                folder=self.folder,
                allowed_formats=POSTER_FORMATS,
                transformation=POSTER_TRANSFORMATION,
                resource_type="image",
            )
        except cloudinary.exceptions.Error as exc:
            logger.error(f"poster upload of {filename} failed: {exc}")
            raise UpstreamError("Poster upload failed") from exc
        logger.info(f"uploaded poster {filename} as {result['public_id']}")
        return UploadedMedia(url=result["secure_url"], public_id=result["public_id"])
