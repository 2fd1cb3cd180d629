"""
Tests for SqlStore against MockSASession.

No database: the session returns canned ORM rows and records each issued
statement, which is compiled for PostgreSQL to check the SQL shape.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from services.amenities.db.models import AdminActionRow, AmenityRow, MessageRow, ReviewRow
from services.amenities.domain import Category, ContactType, MessageStatus, ReviewStatus
from services.amenities.geodata.query import BoundingBox
from services.amenities.store.sql import SqlStore
from services.amenities.tests.helpers.factories import make_amenity
from services.amenities.tests.helpers.mock_sa import MockSASession

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _amenity_row(**overrides) -> AmenityRow:
    base = dict(
        id=1, externalId="node_1", category="toilet", name="Public Bathroom",
        latitude=37.77, longitude=-122.42,
        attributes={"hasFee": None}, details={"openingHours": None}, rawTags={"amenity": "toilets"},
        lastUpdated=NOW,
    )
    base.update(overrides)
    return AmenityRow(**base)


def _review_row(**overrides) -> ReviewRow:
    base = dict(
        id=1, amenityId=1, authorId="user-1", nickname="Sam", cleanlinessRating=4,
        hasToiletPaper=None, hasMirror=None, hasHotWaterSoap=None, hasSoap=True,
        hasSanitaryDisposal=None, handDryerType="paper", photoRef=None, comments=None,
        contactInfo=None, contactType=None, status="pending", flagCount=0, helpfulCount=0,
        moderatorId=None, moderatedAt=None, moderationNote=None, isVerified=False,
        createdAt=NOW, updatedAt=NOW,
    )
    base.update(overrides)
    return ReviewRow(**base)


def _message_row(**overrides) -> MessageRow:
    base = dict(
        id=1, reviewId=1, contactInfo="+15550000", contactType="sms", body="Thanks!",
        status="pending", attempts=1, claimedAt=NOW, sentAt=None, errorMessage=None, createdAt=NOW,
    )
    base.update(overrides)
    return MessageRow(**base)


@pytest.fixture
def session():
    return MockSASession()


@pytest.fixture
def sql_store(session):
    return SqlStore(session.factory)


# ---------------------------------------------------------------------------
# Amenities
# ---------------------------------------------------------------------------

class TestSqlAmenities:

    async def test_upsert_uses_on_conflict(self, session, sql_store):
        session.returns_one(_amenity_row(id=7))

        stored = await sql_store.upsert(make_amenity())

        assert stored.id == 7
        assert stored.category == Category.toilet
        sql = session.compiled()
        assert 'ON CONFLICT ("externalId") DO UPDATE' in sql
        assert "RETURNING" in sql
        session.mock.commit.assert_awaited_once()

    async def test_get_amenity_missing(self, session, sql_store):
        session.returns_get(None)
        assert await sql_store.get_amenity(99) is None

    async def test_bounds_query_is_inclusive(self, session, sql_store):
        session.returns_many([_amenity_row(), _amenity_row(id=2, externalId="node_2")])

        found = await sql_store.amenities_in_bounds(
            BoundingBox(south=1.0, west=2.0, north=3.0, east=4.0), Category.toilet
        )

        assert [a.id for a in found] == [1, 2]
        sql = session.compiled()
        assert "BETWEEN" in sql
        assert "amenities.category =" in sql

    async def test_delete_amenity_rowcount(self, session, sql_store):
        session.returns_rowcount(1).returns_rowcount(0)
        assert await sql_store.delete_amenity(1) is True
        assert await sql_store.delete_amenity(1) is False


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------

class TestSqlReviews:

    async def test_create_review_plain_enum_values(self, session, sql_store):
        session.returns_one(_review_row(contactType="sms", contactInfo="+1555"))

        review = await sql_store.create_review({
            "amenityId": 1, "authorId": "user-1", "nickname": "Sam",
            "cleanlinessRating": 4, "contactType": ContactType.sms, "contactInfo": "+1555",
        })

        assert review.status == ReviewStatus.pending
        assert review.contactType == ContactType.sms
        params = session.statements[-1].compile().params
        assert params["contactType"] == "sms"
        assert params["status"] == "pending"

    async def test_flag_is_single_atomic_update(self, session, sql_store):
        session.returns_one(_review_row(flagCount=2, status="flagged"))

        review = await sql_store.increment_flag(1, 2)

        assert review.status == ReviewStatus.flagged
        sql = session.compiled()
        assert sql.startswith("UPDATE reviews")
        assert '"flagCount" + ' in sql
        assert "CASE WHEN" in sql
        assert "RETURNING" in sql

    async def test_flag_unknown_review(self, session, sql_store):
        session.returns_none()
        assert await sql_store.increment_flag(404, 2) is None

    async def test_update_scoped_by_author(self, session, sql_store):
        session.returns_one(None)

        assert await sql_store.update_review_by_author(1, "intruder", {"comments": "x"}) is None
        sql = session.compiled()
        assert 'reviews."authorId" =' in sql

    async def test_average_rating_decimal_to_float(self, session, sql_store):
        session.returns_scalar(Decimal("4.0000")).returns_scalar(None)
        assert await sql_store.average_rating(1) == 4.0
        assert await sql_store.average_rating(2) is None
        assert "avg(" in session.compiled(0).lower()

    async def test_reviews_newest_first(self, session, sql_store):
        session.returns_many([_review_row(id=2), _review_row(id=1)])
        reviews = await sql_store.reviews_for_amenity(1, ReviewStatus.approved)
        assert [r.id for r in reviews] == [2, 1]
        assert 'ORDER BY reviews."createdAt" DESC' in session.compiled()

    async def test_count_reviews_none_is_zero(self, session, sql_store):
        session.returns_scalar(None)
        assert await sql_store.count_reviews() == 0


# ---------------------------------------------------------------------------
# Ledger + messages
# ---------------------------------------------------------------------------

class TestSqlLedgerAndMessages:

    async def test_append_admin_action(self, session, sql_store):
        session.returns_one(AdminActionRow(
            id=3, moderatorId="mod-1", action="delete_amenity",
            targetType="amenity", targetId=5, reason=None, createdAt=NOW,
        ))
        entry = await sql_store.append_admin_action("mod-1", "delete_amenity", "amenity", 5, None)
        assert (entry.id, entry.targetId) == (3, 5)

    async def test_recent_nonpositive_limit_skips_query(self, session, sql_store):
        assert await sql_store.recent_admin_actions(0) == []
        assert session.sessions_opened == 0

    async def test_claim_uses_skip_locked(self, session, sql_store):
        session.returns_many([_message_row(id=5), _message_row(id=2)])

        claimed = await sql_store.claim_messages(10, NOW, NOW - timedelta(minutes=5))

        assert [m.id for m in claimed] == [2, 5]
        sql = session.compiled()
        assert "FOR UPDATE SKIP LOCKED" in sql
        assert "attempts + " in sql
        assert '"claimedAt" IS NULL OR' in sql
        assert '"claimedAt" <= ' in sql
        session.mock.commit.assert_awaited_once()

    async def test_mark_sent_guards_status(self, session, sql_store):
        session.returns_rowcount(0)
        assert await sql_store.mark_message_sent(1, NOW) is False
        assert "message_queue.status IN" in session.compiled()

    async def test_requeue(self, session, sql_store):
        session.returns_rowcount(1)
        assert await sql_store.requeue_message(1) is True

    async def test_count_messages(self, session, sql_store):
        session.returns_scalar(3)
        assert await sql_store.count_messages(MessageStatus.pending) == 3


class TestSqlLifecycle:

    async def test_create_schema_requires_engine(self, sql_store):
        with pytest.raises(RuntimeError):
            await sql_store.create_schema()

    async def test_close_without_engine_is_noop(self, sql_store):
        await sql_store.close()
