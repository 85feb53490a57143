"""Tests for the workflow engine and approval store, called directly on a session."""
import pytest
from sqlalchemy.exc import DataError

from app.models.approval_request import ApprovalRequest, ApprovalStatus, RequestType
from app.models.data_mutation import DataMutation
from app.models.operational import CriticalIssue, KtaTta
from app.services import approval_store, record_service, workflow
from app.services.errors import InvalidStateError, NotFound, StaleRecordError, ValidationError
from app.services.workflow import OutcomeKind
from tests.conftest import create_critical_issue, create_kta_tta


def _subscribe(bus, category):
    calls = []
    bus.subscribe(category, calls.append)
    return calls


class TestSubmit:
    @pytest.mark.parametrize("role", ["ADMIN", "PLANNER"])
    def test_privileged_roles_apply_directly(self, db, departments, clean_bus, role):
        issue = create_critical_issue(db, departments["MMTC"])
        calls = _subscribe(clean_bus, "critical_issues")

        outcome = workflow.submit(
            db, role, RequestType.data_change, "critical_issues", issue.id,
            {"issue_name": issue.issue_name}, {"issue_name": "Hose replaced"}, requester_id=1,
        )

        assert outcome.kind == OutcomeKind.applied
        assert outcome.record["issue_name"] == "Hose replaced"
        assert db.query(ApprovalRequest).count() == 0
        db.expire_all()
        assert db.get(CriticalIssue, issue.id).issue_name == "Hose replaced"
        assert calls == ["critical_issues"]

    def test_inputter_creates_pending_request(self, db, departments, clean_bus):
        issue = create_critical_issue(db, departments["MMTC"])
        calls = _subscribe(clean_bus, "critical_issues")

        outcome = workflow.submit(
            db, "INPUTTER", RequestType.data_change, "critical_issues", issue.id,
            {"issue_name": issue.issue_name}, {"issue_name": "Hose replaced"}, requester_id=3,
        )

        assert outcome.kind == OutcomeKind.pending
        assert outcome.request.status == ApprovalStatus.pending
        assert db.query(ApprovalRequest).count() == 1
        db.expire_all()
        assert db.get(CriticalIssue, issue.id).issue_name == "LHD hydraulic leak"
        assert calls == []

    def test_direct_creation_writes_ledger(self, db, departments):
        outcome = workflow.submit(
            db, "ADMIN", RequestType.data_creation, "critical_issues", None, {},
            {"issue_name": "Ball mill liner", "department_id": departments["PMTC"],
             "status": "STANDBY", "description": "Liner worn past limit"},
            requester_id=1,
        )

        mutation = db.query(DataMutation).one()
        assert mutation.action_type.value == "create"
        assert mutation.record_id == outcome.record["id"]
        assert mutation.before_snapshot is None
        assert mutation.after_snapshot["status"] == "STANDBY"
        assert mutation.approval_request_id is None

    def test_direct_creation_missing_fields(self, db, departments):
        with pytest.raises(ValidationError):
            workflow.submit(
                db, "ADMIN", RequestType.data_creation, "critical_issues", None, {},
                {"issue_name": "No department"}, requester_id=1,
            )

    def test_direct_update_missing_record(self, db, departments):
        with pytest.raises(NotFound):
            workflow.submit(
                db, "ADMIN", RequestType.data_change, "critical_issues", 999, {},
                {"issue_name": "Ghost"}, requester_id=1,
            )

    def test_department_feeds_notified(self, db, departments, clean_bus):
        issue = create_critical_issue(db, departments["MMTC"])
        workflow.submit(
            db, "ADMIN", RequestType.data_change, "critical_issues", issue.id,
            {"department_id": departments["MMTC"]}, {"department_id": departments["PMTC"]}, requester_id=1,
        )
        assert clean_bus.versions(["critical_issues", "critical_issues:MMTC", "critical_issues:PMTC"]) == {
            "critical_issues": 1, "critical_issues:MMTC": 1, "critical_issues:PMTC": 1,
        }

        workflow.submit(
            db, "ADMIN", RequestType.data_creation, "energy_targets", None, {},
            {"month": 1, "year": 2025, "target": 5100.0}, requester_id=1,
        )
        assert clean_bus.versions(["energy_targets:MTCENG"]) == {"energy_targets:MTCENG": 1}

        workflow.submit(
            db, "INPUTTER", RequestType.data_change, "critical_issues", issue.id,
            {}, {"status": "WORKING"}, requester_id=3,
        )
        assert clean_bus.versions(["critical_issues:PMTC"]) == {"critical_issues:PMTC": 1}


class TestStore:
    def test_rejects_empty_request(self, db):
        with pytest.raises(ValidationError):
            approval_store.create(db, approval_store.NewApprovalRequest(
                request_type=RequestType.data_change, table_name="kta_tta",
                requester_id=3, record_id=1,
            ))

    def test_rejects_unknown_table(self, db):
        with pytest.raises(ValidationError):
            approval_store.create(db, approval_store.NewApprovalRequest(
                request_type=RequestType.data_creation, table_name="payroll",
                requester_id=3, new_data={"amount": 1},
            ))

    def test_rejects_unknown_fields(self, db):
        with pytest.raises(ValidationError):
            approval_store.create(db, approval_store.NewApprovalRequest(
                request_type=RequestType.data_change, table_name="kta_tta",
                requester_id=3, record_id=1, new_data={"colour": "red"},
            ))

    def test_get_missing(self, db):
        with pytest.raises(NotFound):
            approval_store.get(db, 12345)

    def test_decide_missing(self, db):
        with pytest.raises(NotFound):
            approval_store.decide(db, 12345, reviewer_id=1, decision=ApprovalStatus.approved)

    @pytest.mark.parametrize("second", [ApprovalStatus.approved, ApprovalStatus.rejected])
    def test_decide_exactly_once(self, db, second):
        finding = create_kta_tta(db)
        request = approval_store.create(db, approval_store.NewApprovalRequest(
            request_type=RequestType.data_change, table_name="kta_tta", requester_id=3,
            record_id=finding.id, old_data={"status": "OPEN"}, new_data={"status": "CLOSE"},
        ))

        decided = approval_store.decide(db, request.id, reviewer_id=1, decision=ApprovalStatus.rejected)
        assert decided.status == ApprovalStatus.rejected
        assert decided.reviewer_id == 1
        assert decided.reviewed_at is not None

        with pytest.raises(InvalidStateError):
            approval_store.decide(db, request.id, reviewer_id=2, decision=second)
        db.expire_all()
        assert approval_store.get(db, request.id).reviewer_id == 1

    def test_decide_does_not_apply(self, db):
        finding = create_kta_tta(db)
        request = approval_store.create(db, approval_store.NewApprovalRequest(
            request_type=RequestType.data_change, table_name="kta_tta", requester_id=3,
            record_id=finding.id, old_data={"status": "OPEN"}, new_data={"status": "CLOSE"},
        ))
        approval_store.decide(db, request.id, reviewer_id=1, decision=ApprovalStatus.approved)
        db.expire_all()
        assert db.get(KtaTta, finding.id).status.value == "OPEN"

    def test_decide_ignores_stale_session_state(self, db_engine, db):
        from sqlalchemy.orm import sessionmaker

        finding = create_kta_tta(db)
        request = approval_store.create(db, approval_store.NewApprovalRequest(
            request_type=RequestType.data_change, table_name="kta_tta", requester_id=3,
            record_id=finding.id, old_data={"status": "OPEN"}, new_data={"status": "CLOSE"},
        ))
        Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
        other = Session()
        try:
            # Both sessions have seen the request while it was PENDING.
            assert approval_store.get(other, request.id).status == ApprovalStatus.pending
            approval_store.decide(db, request.id, reviewer_id=1, decision=ApprovalStatus.approved)

            with pytest.raises(InvalidStateError):
                approval_store.decide(other, request.id, reviewer_id=2, decision=ApprovalStatus.rejected)
            assert approval_store.get(other, request.id).status == ApprovalStatus.approved
        finally:
            other.close()

    def test_list_pending_is_restartable(self, db, departments):
        issue = create_critical_issue(db, departments["MMTC"])
        pending = approval_store.list_pending(db)
        assert list(pending) == []

        workflow.submit(
            db, "INPUTTER", RequestType.data_deletion, "critical_issues", issue.id,
            {"issue_name": issue.issue_name}, {}, requester_id=3,
        )
        assert [r.record_id for r in pending] == [issue.id]
        assert [r.record_id for r in pending] == [issue.id]

    def test_list_pending_filters(self, db, departments, monkeypatch):
        monkeypatch.setattr(approval_store, "BATCH_SIZE", 2)
        mmtc = create_critical_issue(db, departments["MMTC"])
        pmtc = create_critical_issue(db, departments["PMTC"])
        finding = create_kta_tta(db)
        for record_id, requester in ((mmtc.id, 3), (pmtc.id, 5)):
            workflow.submit(db, "INPUTTER", RequestType.data_change, "critical_issues", record_id,
                            {}, {"issue_name": "Renamed"}, requester_id=requester)
        workflow.submit(db, "INPUTTER", RequestType.data_change, "kta_tta", finding.id,
                        {"status": "OPEN"}, {"status": "CLOSE"}, requester_id=3)
        workflow.submit(db, "INPUTTER", RequestType.data_creation, "safety_incidents", None,
                        {}, {"month": 7, "year": 2025, "nearmiss": 2}, requester_id=5)

        assert len(list(approval_store.list_pending(db))) == 4

        by_table = approval_store.list_pending(db, approval_store.RequestFilter(table_name="critical_issues"))
        assert {r.record_id for r in by_table} == {mmtc.id, pmtc.id}

        by_requester = approval_store.list_pending(db, approval_store.RequestFilter(requester_id=5))
        assert [r.table_name for r in by_requester] == ["critical_issues", "safety_incidents"]

        by_department = approval_store.list_pending(db, approval_store.RequestFilter(department="MMTC"))
        assert [r.record_id for r in by_department] == [mmtc.id]

        with_global = approval_store.list_pending(
            db, approval_store.RequestFilter(department="MMTC", include_global=True),
        )
        assert [r.table_name for r in with_global] == ["critical_issues", "kta_tta"]

        mtceng = approval_store.list_pending(db, approval_store.RequestFilter(department="MTCENG"))
        assert [r.table_name for r in mtceng] == ["safety_incidents"]

    def test_stats(self, db, departments):
        finding = create_kta_tta(db)
        ids = []
        for _ in range(3):
            outcome = workflow.submit(db, "INPUTTER", RequestType.data_change, "kta_tta", finding.id,
                                      {}, {"location": "Conveyor"}, requester_id=3)
            ids.append(outcome.request.id)
        approval_store.decide(db, ids[0], 1, ApprovalStatus.approved)
        approval_store.decide(db, ids[1], 1, ApprovalStatus.rejected)

        assert approval_store.stats(db) == {"total": 3, "pending": 1, "approved": 1, "rejected": 1}


class TestReview:
    def test_approve_change_touches_only_changed_field(self, db, clean_bus):
        finding = create_kta_tta(db)
        before = record_service.snapshot(finding)
        calls = _subscribe(clean_bus, "kta_tta")
        pending = workflow.submit(db, "INPUTTER", RequestType.data_change, "kta_tta", finding.id,
                                  {"status": "OPEN"}, {"status": "CLOSE"}, requester_id=3)

        outcome = workflow.review(db, pending.request.id, reviewer_id=1, decision=ApprovalStatus.approved)

        assert outcome.kind == OutcomeKind.approved
        assert outcome.request.applied_at is not None
        db.expire_all()
        after = record_service.snapshot(db.get(KtaTta, finding.id))
        assert after["status"] == "CLOSE"
        changed = {k for k in before if before[k] != after[k]} - {"updated_at"}
        assert changed == {"status"}
        assert calls == ["kta_tta"]

        mutation = db.query(DataMutation).one()
        assert mutation.approval_request_id == pending.request.id
        assert mutation.actor_id == 3

    def test_approve_deletion_removes_record(self, db, departments):
        create_critical_issue(db, departments["MMTC"], record_id=42)
        pending = workflow.submit(db, "INPUTTER", RequestType.data_deletion, "critical_issues", 42,
                                  {"issue_name": "LHD hydraulic leak"}, {}, requester_id=3)
        assert pending.request.record_id == 42
        assert pending.request.request_type == RequestType.data_deletion
        assert record_service.get_record(db, "critical_issues", 42) is not None

        workflow.review(db, pending.request.id, reviewer_id=1, decision=ApprovalStatus.approved)

        db.expire_all()
        with pytest.raises(NotFound):
            record_service.get_record(db, "critical_issues", 42)
        with pytest.raises(InvalidStateError):
            approval_store.decide(db, pending.request.id, 1, ApprovalStatus.approved)

    def test_approve_creation_inserts_record(self, db, departments):
        pending = workflow.submit(
            db, "INPUTTER", RequestType.data_creation, "energy_consumption", None, {},
            {"month": 6, "year": 2025, "mine_consumption": 1200.5}, requester_id=3,
        )
        assert pending.request.record_id is None

        outcome = workflow.review(db, pending.request.id, 1, ApprovalStatus.approved)

        assert outcome.record["mine_consumption"] == 1200.5
        assert outcome.record["plant_consumption"] == 0

    def test_reject_leaves_record_unchanged(self, db, departments, clean_bus):
        issue = create_critical_issue(db, departments["MMTC"])
        before = record_service.snapshot(issue)
        calls = _subscribe(clean_bus, "critical_issues")
        pending = workflow.submit(db, "INPUTTER", RequestType.data_deletion, "critical_issues", issue.id,
                                  record_service.data_fields(before), {}, requester_id=3)

        outcome = workflow.review(db, pending.request.id, 2, ApprovalStatus.rejected)

        assert outcome.kind == OutcomeKind.rejected
        assert outcome.request.applied_at is None
        db.expire_all()
        assert record_service.snapshot(db.get(CriticalIssue, issue.id)) == before
        assert calls == []

    def test_approval_of_vanished_record_is_stale(self, db, departments, clean_bus):
        issue = create_critical_issue(db, departments["MMTC"])
        calls = _subscribe(clean_bus, "critical_issues")
        pending = workflow.submit(db, "INPUTTER", RequestType.data_change, "critical_issues", issue.id,
                                  {"issue_name": issue.issue_name}, {"issue_name": "Renamed"}, requester_id=3)
        record_service.delete_record(db, "critical_issues", issue.id, actor_id=1)

        with pytest.raises(StaleRecordError):
            workflow.review(db, pending.request.id, 1, ApprovalStatus.approved)

        db.expire_all()
        request = approval_store.get(db, pending.request.id)
        assert request.status == ApprovalStatus.approved
        assert request.apply_error
        assert request.applied_at is None
        assert calls == []

    def test_approval_of_changed_field_is_stale(self, db):
        finding = create_kta_tta(db)
        pending = workflow.submit(db, "INPUTTER", RequestType.data_change, "kta_tta", finding.id,
                                  {"status": "OPEN"}, {"status": "CLOSE"}, requester_id=3)
        workflow.submit(db, "ADMIN", RequestType.data_change, "kta_tta", finding.id,
                        {}, {"status": "CLOSE"}, requester_id=1)

        with pytest.raises(StaleRecordError):
            workflow.review(db, pending.request.id, 1, ApprovalStatus.approved)

    def test_unrelated_field_change_still_applies(self, db):
        finding = create_kta_tta(db)
        pending = workflow.submit(db, "INPUTTER", RequestType.data_change, "kta_tta", finding.id,
                                  {"status": "OPEN"}, {"status": "CLOSE"}, requester_id=3)
        workflow.submit(db, "ADMIN", RequestType.data_change, "kta_tta", finding.id,
                        {}, {"location": "Moved"}, requester_id=1)

        outcome = workflow.review(db, pending.request.id, 1, ApprovalStatus.approved)
        assert outcome.record["status"] == "CLOSE"
        assert outcome.record["location"] == "Moved"

    def test_database_error_on_apply_is_recorded(self, db, monkeypatch):
        finding = create_kta_tta(db)
        pending = workflow.submit(db, "INPUTTER", RequestType.data_change, "kta_tta", finding.id,
                                  {"location": "Crusher"}, {"location": "Conveyor 3"}, requester_id=3)
        real_flush = db.flush

        def _flush(*args, **kwargs):
            if any(isinstance(obj, KtaTta) for obj in db.dirty):
                raise DataError("UPDATE kta_tta", {}, Exception("value too long for type character varying(255)"))
            return real_flush(*args, **kwargs)

        monkeypatch.setattr(db, "flush", _flush)

        with pytest.raises(StaleRecordError):
            workflow.review(db, pending.request.id, 1, ApprovalStatus.approved)

        db.expire_all()
        request = approval_store.get(db, pending.request.id)
        assert request.status == ApprovalStatus.approved
        assert "value too long" in request.apply_error
        assert request.applied_at is None
        assert db.get(KtaTta, finding.id).location == "Crusher"
        assert db.query(DataMutation).count() == 0
