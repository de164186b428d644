"""
Admin Queue & History Tests.

Latest-case de-duplication, filters, the role-only total, case detail
and chronological history.
"""

import uuid
from datetime import datetime, timedelta

import pytest

from factories import complete_onboarding
from tradeverify.db.repositories.verification_case import case_repo
from tradeverify.exceptions import InvalidArgumentError, NotFoundError
from tradeverify.verification.case_service import case_service
from tradeverify.verification.queue import format_age, queue_service
from tradeverify.verification.review import review_service

T0 = datetime(2026, 3, 1, 9, 0, 0)


async def _submit(db, role="SELLER", legal_name=None, at=T0):
    user_id = uuid.uuid4()
    org = await complete_onboarding(db, user_id, role, legal_name=legal_name)
    result = await case_service.submit(db, user_id=user_id)
    case = await case_repo.get_by_id(db, result.case_id)
    case.created_at = at
    await db.flush()
    return user_id, org, case


@pytest.fixture
def now():
    return T0 + timedelta(days=1)


class TestFormatAge:
    def test_zero_padded(self):
        assert format_age(T0, T0 + timedelta(minutes=5)) == "00:05"

    def test_over_a_day(self):
        assert format_age(T0, T0 + timedelta(hours=25, minutes=7, seconds=59)) == "25:07"

    def test_future_created_at_clamps(self):
        assert format_age(T0, T0 - timedelta(minutes=1)) == "00:00"

    def test_missing_created_at(self):
        assert format_age(None) == "00:00"


class TestQueue:
    async def test_one_row_per_organization(self, db, admin_id, now):
        user_a, org_a, first = await _submit(db, at=T0)
        await review_service.reject(db, first.id, admin_id, "redo")
        second = await case_service.submit(db, user_id=user_a)
        case_two = await case_repo.get_by_id(db, second.case_id)
        case_two.created_at = T0 + timedelta(hours=2)
        _, org_b, case_b = await _submit(db, at=T0 + timedelta(hours=1))

        page = await queue_service.queue(db, now=now)
        assert [item.case_id for item in page.items] == [case_two.id, case_b.id]
        assert page.items[0].submission_number == 2
        assert page.items[0].organization_name == org_a.legal_name
        assert page.total == 2

    async def test_status_filter_applies_before_grouping(self, db, admin_id, now):
        user_a, _, first = await _submit(db, at=T0)
        await review_service.reject(db, first.id, admin_id, "redo")
        await case_service.submit(db, user_id=user_a)

        page = await queue_service.queue(db, status="rejected", now=now)
        assert [item.case_id for item in page.items] == [first.id]
        assert page.items[0].status == "REJECTED"

    async def test_unknown_status(self, db):
        with pytest.raises(InvalidArgumentError):
            await queue_service.queue(db, status="PENDING")

    async def test_role_filter_and_total(self, db, now):
        await _submit(db, "SELLER", at=T0)
        await _submit(db, "SELLER", at=T0 + timedelta(minutes=1))
        _, buyer_org, buyer_case = await _submit(db, "BUYER", at=T0 + timedelta(minutes=2))

        page = await queue_service.queue(db, role="buyer", now=now)
        assert [item.case_id for item in page.items] == [buyer_case.id]
        assert page.items[0].role == "BUYER"
        assert page.total == 1

    async def test_total_ignores_search(self, db, now):
        await _submit(db, "SELLER", legal_name="Shakti Metals", at=T0)
        await _submit(db, "SELLER", legal_name="Bharat Alloys", at=T0 + timedelta(minutes=1))

        page = await queue_service.queue(db, role="SELLER", search="shakti", now=now)
        assert [item.organization_name for item in page.items] == ["Shakti Metals"]
        # total counts every SELLER organization, not the search matches
        assert page.total == 2

        empty = await queue_service.queue(db, role="SELLER", search="no such org", now=now)
        assert empty.items == []
        assert empty.total == 2

    async def test_pagination(self, db, now):
        cases = [(await _submit(db, at=T0 + timedelta(minutes=i)))[2] for i in range(3)]
        page = await queue_service.queue(db, page=2, limit=1, now=now)
        assert [item.case_id for item in page.items] == [cases[1].id]
        assert page.page == 2
        assert page.limit == 1

    async def test_limit_capped(self, db):
        page = await queue_service.queue(db, limit=10_000)
        assert page.limit == 100

    async def test_row_carries_risk_and_age(self, db, now):
        await _submit(db, at=now - timedelta(hours=3, minutes=20))
        item = (await queue_service.queue(db, now=now)).items[0]
        assert item.age == "03:20"
        assert item.risk_level == "Low"
        assert item.risk_score == 100
        assert item.sla_hours == 24


class TestCaseDetail:
    async def test_detail(self, db, now):
        _, org, case = await _submit(db, at=now - timedelta(hours=30))
        detail = await queue_service.case_detail(db, case.id, now=now)

        assert detail.case.case_id == case.id
        assert detail.organization["org_code"] == org.org_code
        assert detail.auto_checks == {
            "gstin_valid": True,
            "pan_valid": True,
            "bank_account_valid": True,
            "documents_complete": True,
            "address_verified": True,
        }
        assert detail.risk.level == "Low"
        assert detail.risk.remarks == "All checks passed"
        assert detail.age == "30:00"
        assert [e.action for e in detail.activity_log] == ["SUBMITTED"]

    async def test_detail_scores_the_snapshot(self, db, now):
        _, org, case = await _submit(db)
        # Later profile edits do not change the case's assessment
        org.primary_bank_account = {**org.primary_bank_account, "penny_drop_status": "FAILED"}
        await db.flush()

        detail = await queue_service.case_detail(db, case.id, now=now)
        assert detail.risk.score == 100

    async def test_unknown_case(self, db):
        with pytest.raises(NotFoundError):
            await queue_service.case_detail(db, uuid.uuid4())


class TestHistory:
    async def test_descending_attempts(self, db, admin_id):
        user_id, org, first = await _submit(db)
        await review_service.reject(db, first.id, admin_id, "one")
        second = await case_service.submit(db, user_id=user_id)
        await review_service.reject(db, second.case_id, admin_id, "two")
        await case_service.submit(db, user_id=user_id)

        history = await queue_service.history(db, org.id)
        assert [c.submission_attempt for c in history.cases] == [3, 2, 1]
        assert [c.status for c in history.cases] == ["SUBMITTED", "REJECTED", "REJECTED"]
        assert history.cases[2].rejection_reason == "one"
        assert history.kyc_status == "SUBMITTED"

    async def test_unknown_organization(self, db):
        with pytest.raises(NotFoundError):
            await queue_service.history(db, uuid.uuid4())
