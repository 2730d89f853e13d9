import uuid

import pytest
from sqlalchemy import func, select

from app.errors import NotAuthorized, NotFound, ScopeViolation, ValidationError
from app.models.audit import AuditLog
from app.models.ecm import DistributedDocument, DocumentShare
from app.models.rbac import Role
from app.models.user import UserStatus
from app.services.ecm_distribution import Distributions
from app.services.ecm_sharing import DocumentShares
from factories import make_document, make_user


def _count(db_session, model):
    return db_session.scalar(select(func.count()).select_from(model))


@pytest.fixture()
def carol(db_session, roles, departments):
    """Head of Department controlling Engineering only."""
    return make_user(
        db_session,
        "carol@example.com",
        roles["Head of Department"],
        departments["Engineering"],
        controls=[departments["Engineering"]],
    )


@pytest.fixture()
def director(db_session, roles, departments):
    return make_user(db_session, "dana@example.com", roles["Director"], departments["Finance"])


class TestSendToDepartments:
    def test_head_of_department_in_scope(self, db_session, carol, departments):
        doc = make_document(db_session, carol)
        entry = Distributions.send_to_departments(
            db_session, carol.id, doc.id, [departments["Engineering"].id]
        )
        assert entry.recipient_department_ids == [str(departments["Engineering"].id)]
        assert entry.sent_to_all is False
        assert _count(db_session, DistributedDocument) == 1
        audit_rows = db_session.scalars(
            select(AuditLog).where(AuditLog.action == "document.distribute.departments")
        ).all()
        assert len(audit_rows) == 1

    def test_head_of_department_out_of_scope(self, db_session, carol, departments):
        doc = make_document(db_session, carol)
        with pytest.raises(NotAuthorized) as exc:
            Distributions.send_to_departments(
                db_session, carol.id, doc.id, [departments["Sales"].id]
            )
        assert isinstance(exc.value, ScopeViolation)
        assert exc.value.details == {"department_ids": [str(departments["Sales"].id)]}
        assert _count(db_session, DistributedDocument) == 0
        assert _count(db_session, AuditLog) == 0

    def test_partial_scope_is_all_or_nothing(self, db_session, roles, departments):
        head = make_user(
            db_session,
            "hank@example.com",
            roles["Head of Department"],
            controls=[departments["Engineering"], departments["Sales"]],
        )
        doc = make_document(db_session, head)
        with pytest.raises(ScopeViolation) as exc:
            Distributions.send_to_departments(
                db_session,
                head.id,
                doc.id,
                [departments["Engineering"].id, departments["Finance"].id],
            )
        assert exc.value.details == {"department_ids": [str(departments["Finance"].id)]}
        assert _count(db_session, DistributedDocument) == 0

    def test_head_without_controlled_departments(self, db_session, roles, departments):
        head = make_user(db_session, "hugo@example.com", roles["Head of Department"])
        doc = make_document(db_session, head)
        with pytest.raises(ScopeViolation):
            Distributions.send_to_departments(
                db_session, head.id, doc.id, [departments["Engineering"].id]
            )

    def test_director_role_name_overrides_permission(self, db_session, departments):
        bare_director = Role(name="Director", rank=2, permissions=[])
        db_session.add(bare_director)
        db_session.commit()
        user = make_user(db_session, "dora@example.com", bare_director)
        doc = make_document(db_session, user)
        entry = Distributions.send_to_departments(
            db_session, user.id, doc.id, [departments["Sales"].id]
        )
        assert entry.id is not None

    def test_employee_rejected(self, db_session, person, departments):
        doc = make_document(db_session, person)
        with pytest.raises(NotAuthorized):
            Distributions.send_to_departments(
                db_session, person.id, doc.id, [departments["Engineering"].id]
            )
        assert _count(db_session, DistributedDocument) == 0

    def test_unknown_department_fails_closed(self, db_session, director):
        doc = make_document(db_session, director)
        missing = uuid.uuid4()
        with pytest.raises(NotFound) as exc:
            Distributions.send_to_departments(db_session, director.id, doc.id, [missing])
        assert exc.value.details == {"department_ids": [str(missing)]}
        assert _count(db_session, DistributedDocument) == 0

    def test_empty_department_list(self, db_session, director):
        doc = make_document(db_session, director)
        with pytest.raises(ValidationError):
            Distributions.send_to_departments(db_session, director.id, doc.id, [])

    def test_director_sends_document_owned_by_someone_else(
        self, db_session, person, director, departments
    ):
        doc = make_document(db_session, person)
        entry = Distributions.send_to_departments(
            db_session, director.id, doc.id, [departments["Sales"].id]
        )
        assert entry.sender_id == director.id
        assert entry.document_id == doc.id
        assert _count(db_session, DistributedDocument) == 1
        assert _count(db_session, DocumentShare) == 0


class TestSendToOrganization:
    def test_director_can_send(self, db_session, director):
        doc = make_document(db_session, director)
        entry = Distributions.send_to_organization(db_session, director.id, doc.id)
        assert entry.sent_to_all is True
        assert entry.recipient_department_ids is None
        actions = db_session.scalars(select(AuditLog.action)).all()
        assert actions == ["document.distribute.organization"]

    def test_director_sends_document_owned_by_someone_else(self, db_session, person, director):
        doc = make_document(db_session, person)
        entry = Distributions.send_to_organization(db_session, director.id, doc.id)
        assert entry.sent_to_all is True
        assert entry.sender_id == director.id

    def test_administrator_is_not_director(self, db_session, admin):
        doc = make_document(db_session, admin)
        with pytest.raises(NotAuthorized):
            Distributions.send_to_organization(db_session, admin.id, doc.id)
        assert _count(db_session, DistributedDocument) == 0

    def test_missing_document(self, db_session, director):
        with pytest.raises(NotFound):
            Distributions.send_to_organization(db_session, director.id, uuid.uuid4())


class TestBulkShares:
    def test_company_broadcast_shares_everyone_but_sender(
        self, db_session, director, person, carol, admin
    ):
        doc = make_document(db_session, director)
        result = Distributions.send_document_to_company(db_session, director.id, doc.id)
        shares = db_session.scalars(select(DocumentShare)).all()
        assert result.shared_with == 3
        assert sorted(s.recipient_id for s in shares) == sorted(
            [person.id, carol.id, admin.id]
        )
        assert all(s.permission_granted == ["view"] for s in shares)
        assert result.distribution.sent_to_all is True
        for user in (person, carol, admin):
            assert DocumentShares.is_read(db_session, user.id, doc.id) is False

    def test_company_broadcast_includes_archived_users(
        self, db_session, director, person, roles
    ):
        gone = make_user(db_session, "gone@example.com", roles["Employee"])
        gone.status = UserStatus.archived
        db_session.commit()
        doc = make_document(db_session, director)
        result = Distributions.send_document_to_company(db_session, director.id, doc.id)
        assert sorted(result.recipient_ids) == sorted([person.id, gone.id])

    def test_company_broadcast_of_foreign_document(self, db_session, director, person, admin):
        doc = make_document(db_session, person)
        result = Distributions.send_document_to_company(db_session, director.id, doc.id)
        assert result.recipient_ids == [admin.id]

    def test_company_broadcast_requires_permission(self, db_session, carol):
        doc = make_document(db_session, carol)
        with pytest.raises(NotAuthorized):
            Distributions.send_document_to_company(db_session, carol.id, doc.id)
        assert _count(db_session, DocumentShare) == 0

    def test_company_broadcast_filtered_by_department(
        self, db_session, director, person, roles, departments
    ):
        seller = make_user(db_session, "sam@example.com", roles["Employee"], departments["Sales"])
        doc = make_document(db_session, director)
        result = Distributions.send_document_to_company(
            db_session, director.id, doc.id, [departments["Sales"].id]
        )
        assert result.recipient_ids == [seller.id]
        assert result.distribution.recipient_department_ids == [str(departments["Sales"].id)]

    def test_bulk_share_never_downgrades(self, db_session, director, person):
        doc = make_document(db_session, director)
        DocumentShares.share(db_session, director.id, doc.id, person.id, ["download", "resend"])
        Distributions.send_document_to_company(db_session, director.id, doc.id)
        share = db_session.scalars(
            select(DocumentShare).where(DocumentShare.recipient_id == person.id)
        ).one()
        assert share.permission_granted == ["view", "download", "resend"]

    def test_bulk_share_skips_owner(self, db_session, person, director):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, director.id, ["view", "resend"])
        result = Distributions.send_document_to_company(db_session, director.id, doc.id)
        assert person.id not in result.recipient_ids
        assert director.id not in result.recipient_ids

    def test_department_bulk_share_in_scope(self, db_session, carol, person, roles, departments):
        make_user(db_session, "sam@example.com", roles["Employee"], departments["Sales"])
        doc = make_document(db_session, carol)
        result = Distributions.send_document_to_department(
            db_session, carol.id, doc.id, [departments["Engineering"].id]
        )
        assert result.recipient_ids == [person.id]
        assert result.distribution.sent_to_all is False
        audit_actions = db_session.scalars(select(AuditLog.action)).all()
        assert audit_actions == ["document.share.departments"]

    def test_department_bulk_share_out_of_scope(self, db_session, carol, departments):
        doc = make_document(db_session, carol)
        with pytest.raises(ScopeViolation):
            Distributions.send_document_to_department(
                db_session, carol.id, doc.id, [departments["Sales"].id]
            )
        assert _count(db_session, DocumentShare) == 0
        assert _count(db_session, DistributedDocument) == 0

    def test_department_bulk_share_requires_permission(self, db_session, person, departments):
        doc = make_document(db_session, person)
        with pytest.raises(NotAuthorized):
            Distributions.send_document_to_department(
                db_session, person.id, doc.id, [departments["Engineering"].id]
            )


class TestListDistributions:
    def test_lists_newest_first(self, db_session, director, departments):
        doc = make_document(db_session, director)
        Distributions.send_to_departments(db_session, director.id, doc.id, [departments["Sales"].id])
        Distributions.send_to_organization(db_session, director.id, doc.id)
        entries = Distributions.list_for_document(db_session, director.id, doc.id)
        assert len(entries) == 2
        assert {e.sent_to_all for e in entries} == {True, False}
