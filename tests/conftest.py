"""Shared fixtures: an in-memory MongoDB and a fake rating service."""
from __future__ import annotations

import io

import mongomock
import pytest
from PIL import Image

from database import Database
from images import ImageStore

GOOD_REPLY = (
    'Golden Ratio - 5.4, Facial Symmetry - 5, Averageness - 7, '
    'Facial Feature Ratios - 8, Dress Code - 5, Picture Angle - 6, appearance - "cute"'
)
REJECTED_REPLY = 'file_type:"No"'


class FakeRating:
    """Stands in for Gemini: returns a canned reply and counts calls."""

    def __init__(self, reply=GOOD_REPLY):
        self.reply = reply
        self.calls = 0

    def rate(self, data: bytes) -> str:
        self.calls += 1
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def make_jpeg(color=(200, 120, 90), size=(120, 90)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG", quality=95)
    return buf.getvalue()


@pytest.fixture
def db():
    database = Database(mongomock.MongoClient(), "picrate_test")
    database.ensure_indexes()
    return database


@pytest.fixture
def images(db):
    return ImageStore(db)


@pytest.fixture
def rating():
    return FakeRating()


@pytest.fixture
def jpeg():
    return make_jpeg()
