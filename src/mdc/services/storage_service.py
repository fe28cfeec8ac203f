from __future__ import annotations

import mimetypes
from pathlib import PurePath

from mdc.domain.errors import ValidationError
from mdc.repositories.contracts import BlobStorage

AVATARS_BUCKET = "avatars"
PRODUCTS_BUCKET = "products"


def _object_path(owner: str, suffix: str, filename: str) -> str:
    if not owner:
        raise ValidationError("Owner id is required.")
    ext = PurePath(filename or "").suffix.lstrip(".").lower() or "bin"
    return f"{owner}/{suffix}.{ext}"


def avatar_path(owner_id: str, filename: str) -> str:
    return _object_path(owner_id, "avatar", filename)


def product_image_path(product_id: str, filename: str) -> str:
    return _object_path(product_id, "image", filename)


class StorageService:
    def __init__(self, blobs: BlobStorage):
        self.blobs = blobs

    def _upload(self, bucket: str, path: str, filename: str, data: bytes) -> str:
        if not data:
            raise ValidationError("File is empty.")
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        return self.blobs.upload(bucket, path, data, content_type)

    def upload_avatar(self, owner_id: str, filename: str, data: bytes) -> str:
        """Store the avatar and return its public URL."""
        return self._upload(AVATARS_BUCKET, avatar_path(owner_id, filename), filename, data)

    def upload_product_image(self, product_id: str, filename: str, data: bytes) -> str:
        return self._upload(PRODUCTS_BUCKET, product_image_path(product_id, filename), filename, data)
