"""Tests for the edit-request service (create / approve / reject / queries)."""

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.auth.context import Actor
from app.middleware.exceptions import (
    DuplicateEditRequestError,
    EditRequestAlreadyReviewedError,
    InvalidProposedDataError,
    PermissionDeniedError,
    PersistenceError,
    ResourceNotFoundError,
    UnknownEntityTypeError,
)
from app.models.tenant.activity_log import ActivityLog
from app.models.tenant.edit_request import EditRequest, EditRequestStatus
from app.models.tenant.invoice import Invoice
from app.models.tenant.truck import Truck
from app.services import edit_requests as edit_request_service
from app.services.edit_requests import (
    approve_edit_request,
    count_pending_edit_requests,
    create_edit_request,
    get_edit_request,
    list_edit_requests,
    reject_edit_request,
    transition_pending,
)


async def _request_truck_change(db, seed, proposed: dict, requester=None) -> EditRequest:
    request = await create_edit_request(
        db,
        Actor.from_user(requester or seed.staff),
        entity_type="truck",
        entity_id=seed.truck.id,
        reason="Truck went in for service",
        original_data={"status": "active"},
        proposed_data=proposed,
    )
    await db.commit()
    return request


async def _insert_raw_request(db, seed, entity_type: str, entity_id: str, proposed: dict) -> str:
    """Store a request bypassing create-time checks (stale tags, bad payloads)."""
    request = EditRequest(
        organization_id=seed.org.id,
        entity_type=entity_type,
        entity_id=entity_id,
        proposed_data=proposed,
        requested_by=seed.staff.id,
    )
    db.add(request)
    await db.commit()
    return request.id


async def _reload(session_factory, model, pk):
    async with session_factory() as s:
        return await s.get(model, pk)


# ── Create ───────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.asyncio
class TestCreateEditRequest:

    async def test_new_request_is_pending_and_unreviewed(self, db_session, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})

        assert request.status == EditRequestStatus.PENDING
        assert request.approved_by is None
        assert request.approved_at is None
        assert request.rejection_reason is None
        assert request.requested_by == seed.staff.id
        assert request.organization_id == seed.org.id
        assert request.created_at is not None

    async def test_target_entity_is_not_looked_up(self, db_session, seed):
        request = await create_edit_request(
            db_session,
            Actor.from_user(seed.staff),
            entity_type="driver",
            entity_id="driver-that-does-not-exist",
            proposed_data={"phone": "+263 77 000 0000"},
        )
        assert request.status == EditRequestStatus.PENDING

    async def test_unknown_entity_type_rejected(self, db_session, seed):
        with pytest.raises(UnknownEntityTypeError):
            await create_edit_request(
                db_session,
                Actor.from_user(seed.staff),
                entity_type="spaceship",
                entity_id="S1",
                proposed_data={"status": "launched"},
            )

    async def test_duplicate_pending_request_rejected(self, db_session, seed):
        await _request_truck_change(db_session, seed, {"status": "in_service"})

        with pytest.raises(DuplicateEditRequestError):
            await _request_truck_change(
                db_session, seed, {"status": "in_repair"}, requester=seed.other_staff,
            )

    async def test_database_refuses_second_pending_row(self, db_session, seed):
        await _request_truck_change(db_session, seed, {"status": "in_service"})

        db_session.add(EditRequest(
            organization_id=seed.org.id,
            entity_type="truck",
            entity_id=seed.truck.id,
            proposed_data={"status": "in_repair"},
            requested_by=seed.other_staff.id,
        ))
        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    async def test_duplicate_filed_after_check_rejected(
        self, db_session, session_factory, seed, monkeypatch,
    ):
        await _request_truck_change(db_session, seed, {"status": "in_service"})

        # The other request lands between the lookup and the insert
        async def no_pending(*args):
            return None

        monkeypatch.setattr(edit_request_service, "_pending_for_target", no_pending)

        with pytest.raises(DuplicateEditRequestError):
            await create_edit_request(
                db_session,
                Actor.from_user(seed.other_staff),
                entity_type="truck",
                entity_id=seed.truck.id,
                proposed_data={"status": "in_repair"},
            )
        await db_session.rollback()

        async with session_factory() as s:
            assert await count_pending_edit_requests(s, seed.org.id) == 1

    async def test_new_request_allowed_after_review(self, db_session, seed):
        first = await _request_truck_change(db_session, seed, {"status": "in_service"})
        await reject_edit_request(db_session, Actor.from_user(seed.admin), first.id)
        await db_session.commit()

        second = await _request_truck_change(db_session, seed, {"status": "in_repair"})
        assert second.status == EditRequestStatus.PENDING

    async def test_activity_logged(self, db_session, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})

        log = (
            await db_session.execute(
                select(ActivityLog).where(ActivityLog.action == "edit_requested")
            )
        ).scalar_one()
        assert log.entity_id == seed.truck.id
        assert log.user_id == seed.staff.id
        assert log.details["edit_request_id"] == request.id


# ── Approve ──────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.asyncio
class TestApproveEditRequest:

    async def test_approve_truck_status(self, db_session, session_factory, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})

        approved = await approve_edit_request(
            db_session, Actor.from_user(seed.admin), request.id, review_notes="OK",
        )
        await db_session.commit()

        assert approved.status == EditRequestStatus.APPROVED
        assert approved.approved_by == seed.admin.id
        assert approved.approved_at is not None
        assert approved.review_notes == "OK"
        assert approved.rejection_reason is None

        truck = await _reload(session_factory, Truck, seed.truck.id)
        assert truck.status == "in_service"

    async def test_partial_update_leaves_other_fields(self, db_session, session_factory, seed):
        request = await _request_truck_change(
            db_session, seed, {"current_mileage": 125500, "notes": "New tyres"},
        )
        await approve_edit_request(db_session, Actor.from_user(seed.supervisor), request.id)
        await db_session.commit()

        truck = await _reload(session_factory, Truck, seed.truck.id)
        assert truck.current_mileage == 125500
        assert truck.notes == "New tyres"
        assert truck.status == "active"
        assert truck.make == "Volvo"
        assert truck.model == "FH16"
        assert truck.registration_no == "ABC-123"

    async def test_already_approved_cannot_be_reviewed_again(self, db_session, session_factory, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})
        # Rollback expires loaded instances; keep the id as a plain string
        request_id = request.id
        admin = Actor.from_user(seed.admin)
        await approve_edit_request(db_session, admin, request_id)
        await db_session.commit()

        with pytest.raises(EditRequestAlreadyReviewedError):
            await approve_edit_request(db_session, admin, request_id)
        await db_session.rollback()

        with pytest.raises(EditRequestAlreadyReviewedError):
            await reject_edit_request(db_session, admin, request_id, "too late")
        await db_session.rollback()

        stored = await _reload(session_factory, EditRequest, request_id)
        assert stored.status == EditRequestStatus.APPROVED
        assert stored.rejection_reason is None

    async def test_second_approval_does_not_touch_entity(self, db_session, session_factory, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})
        admin = Actor.from_user(seed.admin)
        await approve_edit_request(db_session, admin, request.id)
        await db_session.commit()

        # Someone moves the truck on after the approval
        async with session_factory() as s:
            truck = await s.get(Truck, seed.truck.id)
            truck.status = "in_repair"
            await s.commit()

        with pytest.raises(EditRequestAlreadyReviewedError):
            await approve_edit_request(db_session, admin, request.id)
        await db_session.rollback()

        truck = await _reload(session_factory, Truck, seed.truck.id)
        assert truck.status == "in_repair"

    async def test_unknown_entity_type_stays_pending(self, db_session, session_factory, seed):
        request_id = await _insert_raw_request(db_session, seed, "spaceship", "S1", {"fuel": 10})

        with pytest.raises(UnknownEntityTypeError):
            await approve_edit_request(db_session, Actor.from_user(seed.admin), request_id)
        await db_session.rollback()

        stored = await _reload(session_factory, EditRequest, request_id)
        assert stored.status == EditRequestStatus.PENDING
        assert stored.approved_by is None
        assert stored.approved_at is None

    async def test_missing_entity_stays_pending(self, db_session, session_factory, seed):
        request_id = await _insert_raw_request(db_session, seed, "truck", "gone", {"status": "inactive"})

        with pytest.raises(ResourceNotFoundError):
            await approve_edit_request(db_session, Actor.from_user(seed.admin), request_id)
        await db_session.rollback()

        stored = await _reload(session_factory, EditRequest, request_id)
        assert stored.status == EditRequestStatus.PENDING

    async def test_entity_in_other_organization_not_found(self, db_session, seed):
        request_id = await _insert_raw_request(
            db_session, seed, "truck", seed.other_org_truck.id, {"status": "inactive"},
        )

        with pytest.raises(ResourceNotFoundError):
            await approve_edit_request(db_session, Actor.from_user(seed.admin), request_id)
        await db_session.rollback()

    async def test_null_for_required_column_stays_pending(self, db_session, session_factory, seed):
        request_id = await _insert_raw_request(db_session, seed, "truck", seed.truck.id, {"make": None})

        with pytest.raises(InvalidProposedDataError) as exc_info:
            await approve_edit_request(db_session, Actor.from_user(seed.admin), request_id)
        await db_session.rollback()

        assert "make" in exc_info.value.message
        stored = await _reload(session_factory, EditRequest, request_id)
        assert stored.status == EditRequestStatus.PENDING

    async def test_invalid_proposed_fields_stay_pending(self, db_session, session_factory, seed):
        request_id = await _insert_raw_request(
            db_session, seed, "truck", seed.truck.id, {"colour": "red"},
        )

        with pytest.raises(InvalidProposedDataError):
            await approve_edit_request(db_session, Actor.from_user(seed.admin), request_id)
        await db_session.rollback()

        stored = await _reload(session_factory, EditRequest, request_id)
        assert stored.status == EditRequestStatus.PENDING

    async def test_constraint_violation_is_persistence_failure(self, db_session, session_factory, seed):
        # Registration numbers are unique per organization
        db_session.add(Truck(
            organization_id=seed.org.id,
            registration_no="DEF-456",
            make="MAN",
            model="TGX",
            year=2021,
        ))
        await db_session.commit()
        request_id = await _insert_raw_request(
            db_session, seed, "truck", seed.truck.id, {"registration_no": "DEF-456"},
        )

        with pytest.raises(PersistenceError) as exc_info:
            await approve_edit_request(db_session, Actor.from_user(seed.admin), request_id)
        await db_session.rollback()

        assert exc_info.value.message == "Failed to approve edit request"
        stored = await _reload(session_factory, EditRequest, request_id)
        assert stored.status == EditRequestStatus.PENDING
        truck = await _reload(session_factory, Truck, seed.truck.id)
        assert truck.make == "Volvo"

    async def test_staff_cannot_approve(self, db_session, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})

        with pytest.raises(PermissionDeniedError):
            await approve_edit_request(db_session, Actor.from_user(seed.other_staff), request.id)

    async def test_other_organization_cannot_approve(self, db_session, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})

        with pytest.raises(ResourceNotFoundError):
            await approve_edit_request(db_session, Actor.from_user(seed.outsider), request.id)

    async def test_unknown_request_id(self, db_session, seed):
        with pytest.raises(ResourceNotFoundError):
            await approve_edit_request(db_session, Actor.from_user(seed.admin), "missing")

    async def test_invoice_balance_recomputed(self, db_session, session_factory, seed):
        request = await create_edit_request(
            db_session,
            Actor.from_user(seed.staff),
            entity_type="invoice",
            entity_id=seed.invoice.id,
            proposed_data={"amount_paid": 400, "status": "partial"},
        )
        await db_session.commit()

        await approve_edit_request(db_session, Actor.from_user(seed.admin), request.id)
        await db_session.commit()

        invoice = await _reload(session_factory, Invoice, seed.invoice.id)
        assert invoice.amount_paid == 400
        assert invoice.balance == 600
        assert invoice.status == "partial"
        assert invoice.total == 1000

    async def test_activity_logged(self, db_session, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})
        await approve_edit_request(db_session, Actor.from_user(seed.admin), request.id)
        await db_session.commit()

        log = (
            await db_session.execute(
                select(ActivityLog).where(ActivityLog.action == "edit_approved")
            )
        ).scalar_one()
        assert log.user_id == seed.admin.id
        assert log.details["changes"] == {"status": "in_service"}


# ── Concurrent reviewers ─────────────────────────────────────────

@pytest.mark.integration
@pytest.mark.asyncio
class TestConcurrentReview:

    async def test_conditional_write_loses_to_earlier_commit(self, db_session, session_factory, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})

        async with session_factory() as first, session_factory() as second:
            # Second reviewer has already seen the request as pending
            stale = await second.get(EditRequest, request.id)
            assert stale.status == EditRequestStatus.PENDING

            await approve_edit_request(first, Actor.from_user(seed.admin), request.id)
            await first.commit()

            with pytest.raises(EditRequestAlreadyReviewedError):
                await transition_pending(second, request.id, {
                    "status": EditRequestStatus.REJECTED,
                    "approved_by": seed.supervisor.id,
                })
            await second.rollback()

        stored = await _reload(session_factory, EditRequest, request.id)
        assert stored.status == EditRequestStatus.APPROVED
        assert stored.approved_by == seed.admin.id

    async def test_exactly_one_reviewer_wins(self, db_session, session_factory, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})
        outcomes = []

        async with session_factory() as first, session_factory() as second:
            for session, user in ((first, seed.admin), (second, seed.supervisor)):
                try:
                    await approve_edit_request(session, Actor.from_user(user), request.id)
                    await session.commit()
                    outcomes.append("approved")
                except EditRequestAlreadyReviewedError:
                    await session.rollback()
                    outcomes.append("already_reviewed")

        assert outcomes == ["approved", "already_reviewed"]
        stored = await _reload(session_factory, EditRequest, request.id)
        assert stored.approved_by == seed.admin.id

    async def test_interleaved_reviewers_one_wins(self, db_session, session_factory, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})
        request_id = request.id

        async def review(user):
            async with session_factory() as session:
                try:
                    await approve_edit_request(session, Actor.from_user(user), request_id)
                    await session.commit()
                    return "approved"
                except EditRequestAlreadyReviewedError:
                    await session.rollback()
                    return "already_reviewed"

        outcomes = await asyncio.gather(review(seed.admin), review(seed.supervisor))

        assert sorted(outcomes) == ["already_reviewed", "approved"]
        stored = await _reload(session_factory, EditRequest, request_id)
        assert stored.status == EditRequestStatus.APPROVED
        assert stored.approved_by in (seed.admin.id, seed.supervisor.id)
        truck = await _reload(session_factory, Truck, seed.truck.id)
        assert truck.status == "in_service"


# ── Reject ───────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.asyncio
class TestRejectEditRequest:

    async def test_reject_leaves_entity_unchanged(self, db_session, session_factory, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})

        rejected = await reject_edit_request(
            db_session,
            Actor.from_user(seed.supervisor),
            request.id,
            rejection_reason="insufficient justification",
        )
        await db_session.commit()

        assert rejected.status == EditRequestStatus.REJECTED
        assert rejected.rejection_reason == "insufficient justification"
        assert rejected.approved_by == seed.supervisor.id
        assert rejected.approved_at is not None

        truck = await _reload(session_factory, Truck, seed.truck.id)
        assert truck.status == "active"
        assert truck.current_mileage == 120000

    async def test_reject_without_reason_stores_empty_text(self, db_session, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})

        rejected = await reject_edit_request(db_session, Actor.from_user(seed.admin), request.id)
        assert rejected.rejection_reason == ""

    async def test_reject_unknown_entity_type_allowed(self, db_session, seed):
        request_id = await _insert_raw_request(db_session, seed, "spaceship", "S1", {})

        rejected = await reject_edit_request(
            db_session, Actor.from_user(seed.admin), request_id, "no such thing",
        )
        assert rejected.status == EditRequestStatus.REJECTED

    async def test_staff_cannot_reject(self, db_session, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})

        with pytest.raises(PermissionDeniedError):
            await reject_edit_request(db_session, Actor.from_user(seed.staff), request.id)

    async def test_already_rejected(self, db_session, seed):
        request = await _request_truck_change(db_session, seed, {"status": "in_service"})
        admin = Actor.from_user(seed.admin)
        await reject_edit_request(db_session, admin, request.id, "no")
        await db_session.commit()

        with pytest.raises(EditRequestAlreadyReviewedError):
            await approve_edit_request(db_session, admin, request.id)


# ── Queries ──────────────────────────────────────────────────────

@pytest.mark.unit
@pytest.mark.asyncio
class TestEditRequestQueries:

    async def _two_requests(self, db, seed):
        mine = await _request_truck_change(db, seed, {"status": "in_service"})
        theirs = await create_edit_request(
            db,
            Actor.from_user(seed.other_staff),
            entity_type="customer",
            entity_id=seed.customer.id,
            proposed_data={"phone": "+263 24 000 000"},
        )
        await db.commit()
        return mine, theirs

    async def test_staff_see_only_own(self, db_session, seed):
        mine, _ = await self._two_requests(db_session, seed)

        items, total = await list_edit_requests(db_session, Actor.from_user(seed.staff))
        assert total == 1
        assert [r.id for r in items] == [mine.id]

    async def test_reviewers_see_all(self, db_session, seed):
        await self._two_requests(db_session, seed)

        items, total = await list_edit_requests(db_session, Actor.from_user(seed.supervisor))
        assert total == 2
        assert len(items) == 2

    async def test_filter_by_status_and_type(self, db_session, seed):
        mine, theirs = await self._two_requests(db_session, seed)
        await reject_edit_request(db_session, Actor.from_user(seed.admin), theirs.id, "no")
        await db_session.commit()

        admin = Actor.from_user(seed.admin)
        pending, total = await list_edit_requests(db_session, admin, status=EditRequestStatus.PENDING)
        assert total == 1
        assert pending[0].id == mine.id

        customers, total = await list_edit_requests(db_session, admin, entity_type="customer")
        assert total == 1
        assert customers[0].id == theirs.id

    async def test_other_organization_sees_nothing(self, db_session, seed):
        await self._two_requests(db_session, seed)

        items, total = await list_edit_requests(db_session, Actor.from_user(seed.outsider))
        assert total == 0
        assert items == []

    async def test_get_hides_other_staff_requests(self, db_session, seed):
        _, theirs = await self._two_requests(db_session, seed)

        with pytest.raises(ResourceNotFoundError):
            await get_edit_request(db_session, Actor.from_user(seed.staff), theirs.id)

        found = await get_edit_request(db_session, Actor.from_user(seed.admin), theirs.id)
        assert found.id == theirs.id

    async def test_count_pending(self, db_session, seed):
        mine, _ = await self._two_requests(db_session, seed)
        assert await count_pending_edit_requests(db_session, seed.org.id) == 2

        await approve_edit_request(db_session, Actor.from_user(seed.admin), mine.id)
        await db_session.commit()

        assert await count_pending_edit_requests(db_session, seed.org.id) == 1
        assert await count_pending_edit_requests(db_session, seed.other_org.id) == 0
