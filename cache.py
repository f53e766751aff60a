"""
Analysis cache: one rating per distinct image, keyed by the SHA-256 of its bytes.

A hit is returned exactly as stored. A miss calls the rating service once,
stores the image in the images collection and inserts the entry. Photos the
service refuses are cached too, as a record with no results and score 0, so
uploading them again does not hit the service.
"""
import logging
from typing import Optional

from pymongo.errors import DuplicateKeyError

from database import CACHE, Database, utcnow
from errors import ValidationError
from images import ImageStore, decode_inline
from fingerprint import fingerprint
from rating import RatingService, calculate_final_score, parse_analysis
from schemas import CacheEntry

log = logging.getLogger(__name__)


class AnalysisCache:
    def __init__(self, db: Database, images: ImageStore, rating: RatingService):
        self.db = db
        self.collection = db.cache
        self.images = images
        self.rating = rating

    def lookup(self, image_hash: str) -> Optional[CacheEntry]:
        doc = self.collection.find_one({"hash": image_hash})
        return CacheEntry.model_validate(doc) if doc else None

    def get_or_compute(self, data: bytes) -> CacheEntry:
        image_hash = fingerprint(data)

        cached = self.lookup(image_hash)
        if cached is not None:
            log.debug("Cache hit for %s", image_hash)
            return cached

        log.info("Cache miss for %s, requesting rating", image_hash)
        analysis = self.rating.rate(data)
        results = parse_analysis(analysis)
        entry = CacheEntry(
            hash=image_hash,
            results=results,
            score=calculate_final_score(results),
            rejected=results is None,
            created_at=utcnow(),
            image_id=self.images.store(data),
        )
        if entry.rejected:
            log.info("Image %s rejected by rating service", image_hash)

        try:
            self.db.create_document(CACHE, entry)
        except DuplicateKeyError:
            # Another request analysed the same bytes first; keep its entry.
            log.info("Cache entry %s already written by a concurrent request", image_hash)
            return self.lookup(image_hash)
        return entry

    def image_bytes(self, entry: CacheEntry) -> Optional[bytes]:
        if entry.image_id:
            return self.images.get(entry.image_id)
        if entry.image_data is not None:
            try:
                return decode_inline(entry.image_data)
            except ValidationError as e:
                log.warning("Cache entry %s has an unreadable inline image: %s", entry.hash, e)
        return None
