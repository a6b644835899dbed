import logging
from typing import Optional

import requests

from config import MEDIA_API_KEY, MEDIA_API_URL, MEDIA_FOLDER
from errors import MediaStoreError

logger = logging.getLogger(__name__)


class MediaStore:
    """Thin client for the image CDN that product pictures are uploaded to."""

    def __init__(self, base_url: Optional[str] = None, api_key: str = "", folder: str = "products"):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.folder = folder

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    @staticmethod
    def public_id_from_url(url: str) -> str:
        return url.rstrip("/").split("/")[-1].split(".")[0]

    def upload(self, image: str) -> str:
        if not self.enabled:
            return image
        try:
            response = requests.post(
                f"{self.base_url}/upload",
                data={"file": image, "folder": self.folder},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=30,
            )
            response.raise_for_status()
            return response.json().get("secure_url", "")
        except requests.RequestException as exc:
            raise MediaStoreError(f"Image upload failed: {exc}") from exc

    def destroy(self, public_id: str) -> None:
        if not self.enabled:
            logger.info("Media store not configured, leaving %s in place", public_id)
            return
        try:
            response = requests.post(
                f"{self.base_url}/destroy",
                data={"public_id": f"{self.folder}/{public_id}"},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=30,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise MediaStoreError(f"Image delete failed: {exc}") from exc


def get_media_store() -> MediaStore:
    return MediaStore(MEDIA_API_URL, MEDIA_API_KEY, MEDIA_FOLDER)
