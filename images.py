"""Normalized image storage plus the JPEG helpers shared by the API."""
import base64
import binascii
import io
import logging
from typing import Dict, Iterable, Optional, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from database import Database, utcnow
from errors import ValidationError
from fingerprint import fingerprint
from schemas import ImageRecord

log = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/jpeg;base64,"


class ImageStore:
    """Content-addressed image bytes in the ``images`` collection.

    The key is the SHA-256 of the bytes, so an existing record is never
    rewritten; a repeated put only refreshes ``updatedAt``.
    """

    def __init__(self, db: Database):
        self.collection = db.images

    def put(self, image_id: str, data: bytes) -> bool:
        """Upsert *data* under *image_id*. Returns True when a record was created."""
        now = utcnow()
        result = self.collection.update_one(
            {"imageId": image_id},
            {
                "$setOnInsert": {"imageData": bytes(data), "createdAt": now},
                "$set": {"updatedAt": now},
            },
            upsert=True,
        )
        created = result.upserted_id is not None
        if created:
            log.debug("Stored image %s (%d bytes)", image_id, len(data))
        return created

    def store(self, data: bytes) -> str:
        image_id = fingerprint(data)
        self.put(image_id, data)
        return image_id

    def get(self, image_id: str) -> Optional[bytes]:
        doc = self.collection.find_one({"imageId": image_id})
        if not doc or doc.get("imageData") is None:
            return None
        return ImageRecord.model_validate(doc).image_data

    def get_many(self, image_ids: Iterable[str]) -> Dict[str, bytes]:
        ids = [i for i in set(image_ids) if i]
        if not ids:
            return {}
        docs = self.collection.find({"imageId": {"$in": ids}})
        return {d["imageId"]: bytes(d["imageData"]) for d in docs if d.get("imageData") is not None}


def to_data_url(data: Optional[bytes]) -> Optional[str]:
    if data is None:
        return None
    return DATA_URL_PREFIX + base64.b64encode(data).decode("ascii")


def decode_inline(value: Union[str, bytes]) -> bytes:
    """Raw bytes of a legacy inline image (base64 text, optionally a data URL, or binary)."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise ValidationError(f"Unsupported inline image type: {type(value).__name__}")
    text = value.strip()
    if text.startswith("data:"):
        text = text.split(",", 1)[-1]
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 image data: {e}") from e


def resize_avatar(data: bytes, size: int = 80, quality: int = 90) -> bytes:
    """Centre-crop to a size x size square and re-encode as JPEG."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError("Invalid image file.") from e

    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    img = ImageOps.fit(img, (size, size), method=Image.LANCZOS)

    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()
