"""Tests for the top-scorer leaderboard."""
from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from conftest import make_jpeg
from errors import ValidationError
from leaderboard import Leaderboard, parse_score


@pytest.fixture
def leaderboard(db, images):
    return Leaderboard(db, images, limit=3)


# ── Submissions ───────────────────────────────────────────────────────────────

class TestSubmit:
    def test_top_three_in_score_order(self, leaderboard, jpeg):
        for name, score in [("ana", 70), ("ben", 95), ("cy", 60), ("dee", 88)]:
            leaderboard.submit(name, score, jpeg)

        top = leaderboard.top_entries(3)
        assert [e.score for e in top] == [95, 88, 70]
        assert [e.name for e in top] == ["ben", "dee", "ana"]

    def test_submit_returns_current_top(self, leaderboard, jpeg):
        leaderboard.submit("ana", 70, jpeg)
        top = leaderboard.submit("ben", 95, jpeg)
        assert [e.name for e in top] == ["ben", "ana"]

    def test_same_name_is_upserted(self, db, leaderboard, jpeg):
        leaderboard.submit("ana", 90, jpeg)
        leaderboard.submit("ana", 40, make_jpeg((0, 0, 255)))

        assert db.scorers.count_documents({"name": "ana"}) == 1
        # Last write wins, even when the new score is lower.
        assert leaderboard.top_entries()[0].score == 40

    def test_avatar_is_replaced_on_resubmit(self, leaderboard, jpeg):
        first = leaderboard.submit("ana", 90, jpeg)[0].image_id
        second = leaderboard.submit("ana", 90, make_jpeg((0, 255, 0)))[0].image_id
        assert first != second

    def test_avatar_is_thumbnail(self, leaderboard, images):
        entry = leaderboard.submit("ana", 80, make_jpeg(size=(640, 480)))[0]
        img = Image.open(io.BytesIO(images.get(entry.image_id)))
        assert img.size == (80, 80)
        assert img.format == "JPEG"

    def test_source_hash_is_kept(self, db, leaderboard, jpeg):
        leaderboard.submit("ana", 80, jpeg, source_hash="abc123")
        assert db.scorers.find_one({"name": "ana"})["hash"] == "abc123"

    def test_name_is_trimmed(self, db, leaderboard, jpeg):
        leaderboard.submit("  ana ", 80, jpeg)
        assert db.scorers.find_one({"name": "ana"}) is not None

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_missing_name(self, leaderboard, jpeg, name):
        with pytest.raises(ValidationError):
            leaderboard.submit(name, 80, jpeg)

    def test_invalid_image(self, db, leaderboard):
        with pytest.raises(ValidationError):
            leaderboard.submit("ana", 80, b"not an image")
        assert db.scorers.count_documents({}) == 0

    def test_empty_image(self, leaderboard):
        with pytest.raises(ValidationError):
            leaderboard.submit("ana", 80, b"")


# ── Reads ─────────────────────────────────────────────────────────────────────

class TestTopEntries:
    def test_empty(self, leaderboard):
        assert leaderboard.top_entries() == []

    def test_default_limit(self, leaderboard, jpeg):
        for i in range(5):
            leaderboard.submit(f"p{i}", 50 + i, jpeg)
        assert len(leaderboard.top_entries()) == 3
        assert len(leaderboard.top_entries(5)) == 5

    def test_zero_limit_rejected(self, leaderboard, jpeg):
        leaderboard.submit("ana", 70, jpeg)
        with pytest.raises(ValidationError):
            leaderboard.top_entries(0)

    def test_explicit_limit_one(self, leaderboard, jpeg):
        leaderboard.submit("ana", 70, jpeg)
        leaderboard.submit("ben", 80, jpeg)
        assert [e.name for e in leaderboard.top_entries(1)] == ["ben"]

    def test_ties_are_all_present(self, leaderboard, jpeg):
        # Order among equal scores is unspecified; only membership is checked.
        leaderboard.submit("ana", 77, jpeg)
        leaderboard.submit("ben", 77, jpeg)
        assert {e.name for e in leaderboard.top_entries()} == {"ana", "ben"}

    def test_avatars_for_new_and_legacy_entries(self, db, leaderboard, images, jpeg):
        leaderboard.submit("ana", 90, jpeg)
        db.scorers.insert_one({"name": "old", "score": 99, "avatar": base64.b64encode(jpeg).decode()})

        top = leaderboard.top_entries()
        avatars = leaderboard.avatars(top)
        assert avatars["old"] == jpeg
        assert avatars["ana"] == images.get(top[1].image_id)

    def test_unreadable_legacy_avatar_is_skipped(self, db, leaderboard, jpeg):
        leaderboard.submit("ana", 90, jpeg)
        db.scorers.insert_one({"name": "old", "score": 99, "avatar": "%%%"})

        avatars = leaderboard.avatars(leaderboard.top_entries())
        assert "old" not in avatars
        assert "ana" in avatars


# ── parse_score ───────────────────────────────────────────────────────────────

class TestParseScore:
    @pytest.mark.parametrize("raw,expected", [
        (0, 0), (100, 100), ("85", 85), ("85.0", 85), (" 70 ", 70), (42.0, 42),
    ])
    def test_valid(self, raw, expected):
        assert parse_score(raw) == expected

    @pytest.mark.parametrize("raw", [
        None, "", "abc", "NaN", "inf", "85.5", -1, 101, "1e3", True,
    ])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            parse_score(raw)
