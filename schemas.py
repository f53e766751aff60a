"""
Database Schemas for PicRate

Each document model maps to one MongoDB collection (cache, scorers, images).
Field aliases are the stored / wire names; the Python attributes are snake_case.
Legacy documents written before images were normalized still carry their
image inline (imageData on cache entries, avatar on scorers).
"""

from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ImageRecord(_Document):
    """Normalized image bytes, shared by cache entries and scorers."""
    image_id: str = Field(..., alias="imageId", description="SHA-256 of image_data")
    image_data: bytes = Field(..., alias="imageData", description="Raw JPEG bytes")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class CacheEntry(_Document):
    """Rating result for one uploaded image."""
    hash: str = Field(..., description="SHA-256 of the uploaded bytes")
    results: Optional[Dict[str, Any]] = Field(None, description="Sub-scores and appearance; None when rejected")
    score: int = Field(0, description="Final score shown to the user")
    rejected: bool = Field(False, description="The rating service refused to score the image")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    image_id: Optional[str] = Field(None, alias="imageId")
    image_data: Optional[Union[bytes, str]] = Field(None, alias="imageData", description="Legacy inline image")


class ScorerEntry(_Document):
    """Leaderboard entrant, unique by name."""
    name: str
    score: Union[int, float]
    hash: Optional[str] = Field(None, description="Hash of the rated upload")
    image_id: Optional[str] = Field(None, alias="imageId")
    avatar: Optional[Union[bytes, str]] = Field(None, description="Legacy inline avatar")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class CacheEntryResponse(_Document):
    hash: str
    results: Optional[Dict[str, Any]] = None
    score: int
    rejected: bool = False
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    image_id: Optional[str] = Field(None, alias="imageId")
    image_data: Optional[str] = Field(None, alias="imageData", description="data: URL")


class ScorerResponse(_Document):
    name: str
    score: Union[int, float]
    image_id: Optional[str] = Field(None, alias="imageId")
    avatar: Optional[str] = Field(None, description="data: URL")
