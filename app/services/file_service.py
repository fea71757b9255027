"""File handling service for meal image uploads."""
import logging
import re
import secrets
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from app.config import settings

logger = logging.getLogger(__name__)

# Temp file extension comes from the validated content type, never the client filename
CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
ALLOWED_CONTENT_TYPES = list(CONTENT_TYPE_EXTENSIONS)
URL_PREFIX = "/uploads/"


class FileService:
    """Temporary upload handling and permanent meal image storage."""

    def __init__(
        self,
        upload_dir: Optional[str] = None,
        temp_dir: Optional[str] = None,
        max_bytes: Optional[int] = None,
    ):
        self.upload_dir = Path(upload_dir or settings.upload_dir)
        self.temp_dir = Path(temp_dir or settings.temp_upload_dir)
        self.max_bytes = max_bytes or settings.max_image_bytes

        # upload_dir is publicly served; unvalidated uploads must not land there
        upload_root = self.upload_dir.resolve()
        temp_root = self.temp_dir.resolve()
        if temp_root == upload_root or upload_root in temp_root.parents:
            raise ValueError(
                f"Temp upload dir {self.temp_dir} must be outside upload dir {self.upload_dir}"
            )

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    async def save_temp_upload(self, file: UploadFile) -> str:
        """
        Write an uploaded image to the temporary upload directory.

        Args:
            file: Uploaded file from FastAPI

        Returns:
            Path of the temporary file

        Raises:
            ValueError: If the file type is invalid, the file is empty or too large
        """
        if file.content_type not in ALLOWED_CONTENT_TYPES:
            raise ValueError(
                f"Invalid file type: {file.content_type}. Allowed: {ALLOWED_CONTENT_TYPES}"
            )

        contents = await file.read()
        if not contents:
            raise ValueError("Uploaded image is empty")
        if len(contents) > self.max_bytes:
            raise ValueError(
                f"Image too large: {len(contents)} bytes > {self.max_bytes}"
            )

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        unique_id = str(uuid.uuid4())[:8]
        extension = CONTENT_TYPE_EXTENSIONS[file.content_type]
        file_path = self.temp_dir / f"{timestamp}_{unique_id}{extension}"

        with open(file_path, "wb") as f:
            f.write(contents)

        return str(file_path)

    def store_meal_image(self, temp_path: str, user_id) -> str:
        """
        Re-encode a temporary upload into permanent storage.

        The temporary file is left in place; the caller removes it once the
        meal has been committed.

        Args:
            temp_path: Path of the temporary upload
            user_id: Owner of the meal (used as storage sub-directory)

        Returns:
            URL of the stored image, e.g. /uploads/<user>/meal_<ts>_<hex>.jpg

        Raises:
            ImageStorageError: If the image cannot be decoded or written
        """
        safe_user = re.sub(r"[^a-zA-Z0-9_-]", "", str(user_id)) or "anonymous"
        user_dir = self.upload_dir / safe_user
        filename = f"meal_{int(datetime.now(timezone.utc).timestamp() * 1000)}_{secrets.token_hex(16)}.jpg"
        target = user_dir / filename

        try:
            user_dir.mkdir(parents=True, exist_ok=True)
            with Image.open(temp_path) as img:
                img = ImageOps.exif_transpose(img)
                if img.mode != "RGB":
                    img = img.convert("RGB")
                img.thumbnail(
                    (settings.stored_image_max_size, settings.stored_image_max_size),
                    Image.Resampling.LANCZOS,
                )
                img.save(target, "JPEG", optimize=True, quality=settings.stored_image_quality)
        except (OSError, UnidentifiedImageError) as e:
            self.delete_file(str(target))
            raise ImageStorageError(f"Could not store image {temp_path}: {e}") from e

        return f"{URL_PREFIX}{safe_user}/{filename}"

    def delete_file(self, file_path: str) -> bool:
        """
        Delete a file from disk.

        Args:
            file_path: Path to file

        Returns:
            True if deleted, False if not found or deletion failed
        """
        try:
            path = Path(file_path)
            if path.exists():
                path.unlink()
                return True
            return False
        except OSError as e:
            logger.warning("Error deleting file %s: %s", file_path, e)
            return False

    def resolve_image_path(self, image_url: Optional[str]) -> Optional[Path]:
        """Map a stored image URL back to its path, refusing anything outside upload_dir."""
        if not image_url or not image_url.startswith(URL_PREFIX):
            return None

        root = self.upload_dir.resolve()
        path = (root / image_url[len(URL_PREFIX):]).resolve()
        if root not in path.parents:
            return None
        return path

    def delete_image(self, image_url: Optional[str]) -> bool:
        """Delete a stored meal image by URL. Failures are logged, never raised."""
        path = self.resolve_image_path(image_url)
        if path is None:
            if image_url:
                logger.warning("Refusing to delete image outside upload dir: %s", image_url)
            return False

        deleted = self.delete_file(str(path))
        if deleted:
            logger.info("Deleted meal image %s", image_url)
        return deleted


class ImageStorageError(Exception):
    """Image could not be written to permanent storage."""

    pass


# Singleton instance
file_service = FileService()
