import asyncio
import io
import os
import re
import uuid
from typing import Iterable, Optional

import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from core.config import settings
from core.exceptions import UpstreamMediaError
from core.logger import logger


class LocalMediaStore:
    """Stores images on local disk; the API serves MEDIA_ROOT at MEDIA_URL_PREFIX."""

    def __init__(self, root: str = None, url_prefix: str = None):
        self.root = root or settings.MEDIA_ROOT
        self.url_prefix = (url_prefix or settings.MEDIA_URL_PREFIX).rstrip("/")

    async def upload_image(self, data: bytes, filename: str) -> str:
        ext = os.path.splitext(filename)[1].lower()
        name = f"{uuid.uuid4().hex}{ext}"
        try:
            os.makedirs(self.root, exist_ok=True)
            with open(os.path.join(self.root, name), "wb") as out:
                out.write(data)
        except OSError as e:
            logger.error("Failed to store image locally", error=str(e))
            raise UpstreamMediaError("Failed to upload image")
        logger.info("Image stored locally", file=name, size=len(data))
        return f"{self.url_prefix}/{name}"

    def _path_for(self, url: str) -> Optional[str]:
        if not url.startswith(self.url_prefix + "/"):
            return None
        name = os.path.basename(url[len(self.url_prefix) + 1:])
        return os.path.join(self.root, name) if name else None

    async def delete_images(self, urls: Iterable[str]) -> int:
        deleted = 0
        for url in urls:
            path = self._path_for(url)
            if path is None:
                continue
            try:
                os.remove(path)
                deleted += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Failed to delete local image", url=url, error=str(e))
        return deleted

    async def close(self):
        pass


class CloudinaryMediaStore:
    """Upload and destroy through the Cloudinary SDK; its blocking calls run in a worker thread."""

    _PUBLIC_ID_RE = re.compile(r"/image/upload/(?:[^/]+/)*?(?:v\d+/)?(?P<public_id>[^.]+)(?:\.\w+)?$")

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = None,
                 timeout: float = None):
        self.cloud_name = cloud_name
        self.folder = folder if folder is not None else settings.CLOUDINARY_FOLDER
        self.timeout = timeout or settings.MEDIA_TIMEOUT_SECONDS
        self.options = {
            "cloud_name": cloud_name,
            "api_key": api_key,
            "api_secret": api_secret,
            "timeout": self.timeout,
        }

    def owns(self, url: str) -> bool:
        return f"res.cloudinary.com/{self.cloud_name}/" in url

    def public_id_from_url(self, url: str) -> Optional[str]:
        if not self.owns(url):
            return None
        match = self._PUBLIC_ID_RE.search(url)
        return match.group("public_id") if match else None

    async def upload_image(self, data: bytes, filename: str) -> str:
        try:
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                io.BytesIO(data),
                folder=self.folder or None,
                resource_type="image",
                **self.options,
            )
            secure_url = result["secure_url"]
        except (CloudinaryError, KeyError) as e:
            logger.error("Cloudinary upload failed", filename=filename, error=str(e))
            raise UpstreamMediaError("Failed to upload image")
        logger.info("Image uploaded to Cloudinary", url=secure_url)
        return secure_url

    async def delete_image(self, public_id: str):
        try:
            result = await asyncio.to_thread(cloudinary.uploader.destroy, public_id, **self.options)
        except CloudinaryError as e:
            raise UpstreamMediaError(f"Failed to delete image {public_id}", details={"reason": str(e)})
        outcome = result.get("result")
        if outcome not in ("ok", "not found"):
            raise UpstreamMediaError(f"Unexpected destroy result for {public_id}", details={"result": outcome})

    async def delete_images(self, urls: Iterable[str]) -> int:
        deleted = 0
        for url in urls:
            public_id = self.public_id_from_url(url)
            if not public_id:
                continue
            try:
                await self.delete_image(public_id)
                deleted += 1
            except UpstreamMediaError as e:
                logger.warning("Cloudinary delete failed", public_id=public_id, error=e.message)
        return deleted

    async def close(self):
        pass


def build_media_store():
    if settings.MEDIA_BACKEND == "cloudinary":
        return CloudinaryMediaStore(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
        )
    return LocalMediaStore()
