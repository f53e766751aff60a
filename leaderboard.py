"""Top-scorer leaderboard. One entry per name; a new submission replaces the old one."""
import logging
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

import config
from database import SCORERS, Database, utcnow
from errors import ValidationError
from images import ImageStore, decode_inline, resize_avatar
from schemas import ScorerEntry

log = logging.getLogger(__name__)


def parse_score(raw: Any) -> int:
    """Accept an integral score in 0..100 given as a number or numeric string."""
    if isinstance(raw, bool) or raw is None:
        raise ValidationError("Invalid data: score is required")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid data: score {raw!r} is not a number")
    if not value.is_integer() or not 0 <= value <= 100:
        raise ValidationError(f"Invalid data: score must be an integer between 0 and 100, got {raw!r}")
    return int(value)


class Leaderboard:
    def __init__(
        self,
        db: Database,
        images: ImageStore,
        limit: int = config.TOP_SCORERS_LIMIT,
        avatar_size: int = config.AVATAR_SIZE,
        quality: int = config.AVATAR_JPEG_QUALITY,
    ):
        self.db = db
        self.collection = db.scorers
        self.images = images
        self.limit = limit
        self.avatar_size = avatar_size
        self.quality = quality

    def submit(self, name: str, score: Any, avatar: bytes, source_hash: Optional[str] = None) -> List[ScorerEntry]:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Invalid data: name is required")
        score = parse_score(score)
        if not avatar:
            raise ValidationError("Invalid data: image is required")

        thumbnail = resize_avatar(avatar, self.avatar_size, self.quality)
        image_id = self.images.store(thumbnail)

        fields: Dict[str, Any] = {"score": score, "imageId": image_id, "updatedAt": utcnow()}
        if source_hash:
            fields["hash"] = source_hash
        self.collection.update_one(
            {"name": name},
            {"$set": fields, "$unset": {"avatar": ""}},
            upsert=True,
        )
        log.info("Leaderboard: %s scored %d", name, score)
        return self.top_entries()

    def top_entries(self, n: Optional[int] = None) -> List[ScorerEntry]:
        """Highest scores first. Order among equal scores is unspecified."""
        n = self.limit if n is None else n
        if n < 1:
            raise ValidationError(f"Invalid limit: {n}")
        docs = self.db.get_documents(SCORERS, sort=[("score", DESCENDING)], limit=n)
        return [ScorerEntry.model_validate(doc) for doc in docs]

    def avatars(self, entries: List[ScorerEntry]) -> Dict[str, bytes]:
        """Avatar bytes per entrant name, from the image store or a legacy inline avatar."""
        stored = self.images.get_many(e.image_id for e in entries if e.image_id)
        found: Dict[str, bytes] = {}
        for entry in entries:
            if entry.image_id and entry.image_id in stored:
                found[entry.name] = stored[entry.image_id]
            elif entry.avatar is not None:
                try:
                    found[entry.name] = decode_inline(entry.avatar)
                except ValidationError as e:
                    log.warning("Scorer %s has an unreadable inline avatar: %s", entry.name, e)
        return found
