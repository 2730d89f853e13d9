import uuid

import pytest
from sqlalchemy import select

from app.errors import NotAuthorized, NotFound, ValidationError
from app.models.audit import AuditLog
from app.models.ecm import DocumentShare, DocumentStatus, UserDocumentStatus
from app.services.access import effective_permissions
from app.services.ecm_sharing import DocumentShares, normalize_permissions
from factories import make_document, make_user


@pytest.fixture()
def bob(db_session, roles, departments):
    return make_user(db_session, "bob@example.com", roles["Employee"], departments["Sales"])


def _shares(db_session, document):
    return db_session.scalars(
        select(DocumentShare).where(DocumentShare.document_id == document.id)
    ).all()


def _audit(db_session, action):
    return db_session.scalars(select(AuditLog).where(AuditLog.action == action)).all()


class TestNormalizePermissions:
    def test_canonical_order_and_dedupe(self):
        assert normalize_permissions(["resend", "view", "view"]) == ["view", "resend"]

    def test_rejects_unknown(self):
        with pytest.raises(ValidationError) as exc:
            normalize_permissions(["view", "delete"])
        assert exc.value.details == {"invalid_permissions": ["delete"]}

    def test_rejects_empty(self):
        with pytest.raises(ValidationError):
            normalize_permissions([])


class TestShare:
    def test_share_then_unshare_scenario(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view", "download"])
        assert effective_permissions(db_session, bob.id, doc.id) == {"view", "download"}

        DocumentShares.unshare(db_session, person.id, doc.id, bob.id)
        assert effective_permissions(db_session, bob.id, doc.id) == frozenset()

    def test_share_is_idempotent(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view"])
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view"])
        shares = _shares(db_session, doc)
        assert len(shares) == 1
        assert shares[0].permission_granted == ["view"]

    def test_reshare_replaces_permissions(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view", "resend"])
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["download"])
        assert _shares(db_session, doc)[0].permission_granted == ["download"]

    def test_reshare_resets_unread(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view"])
        DocumentShares.mark_read(db_session, bob.id, doc.id)
        assert DocumentShares.is_read(db_session, bob.id, doc.id) is True

        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view", "comment"])
        assert DocumentShares.is_read(db_session, bob.id, doc.id) is False

    def test_share_writes_one_audit_row(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view"])
        rows = _audit(db_session, "document.share")
        assert len(rows) == 1
        assert rows[0].actor_id == person.id
        assert rows[0].target_id == str(doc.id)
        assert rows[0].details == {"recipientId": str(bob.id), "permissions": ["view"]}

    def test_non_owner_cannot_share(self, db_session, person, bob, roles):
        carol = make_user(db_session, "carol@example.com", roles["Director"])
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view", "resend"])
        with pytest.raises(NotAuthorized):
            DocumentShares.share(db_session, bob.id, doc.id, carol.id, ["view"])
        assert len(_shares(db_session, doc)) == 1
        assert len(_audit(db_session, "document.share")) == 1

    def test_share_missing_recipient(self, db_session, person):
        doc = make_document(db_session, person)
        with pytest.raises(NotFound):
            DocumentShares.share(db_session, person.id, doc.id, uuid.uuid4(), ["view"])

    def test_share_with_owner_rejected(self, db_session, person):
        doc = make_document(db_session, person)
        with pytest.raises(ValidationError):
            DocumentShares.share(db_session, person.id, doc.id, person.id, ["view"])

    def test_share_missing_document(self, db_session, person, bob):
        with pytest.raises(NotFound):
            DocumentShares.share(db_session, person.id, uuid.uuid4(), bob.id, ["view"])


class TestUnshare:
    def test_unshare_without_share_is_noop(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.unshare(db_session, person.id, doc.id, bob.id)
        assert _shares(db_session, doc) == []
        assert _audit(db_session, "document.unshare") == []

    def test_unshare_twice_audits_once(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view"])
        DocumentShares.unshare(db_session, person.id, doc.id, bob.id)
        DocumentShares.unshare(db_session, person.id, doc.id, bob.id)
        assert len(_audit(db_session, "document.unshare")) == 1

    def test_unshare_keeps_read_status(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view"])
        DocumentShares.mark_read(db_session, bob.id, doc.id)
        DocumentShares.unshare(db_session, person.id, doc.id, bob.id)
        assert DocumentShares.is_read(db_session, bob.id, doc.id) is True

    def test_non_owner_cannot_unshare(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view"])
        with pytest.raises(NotAuthorized):
            DocumentShares.unshare(db_session, bob.id, doc.id, bob.id)
        assert len(_shares(db_session, doc)) == 1


class TestReadStatus:
    def test_mark_read_without_share(self, db_session, person, bob):
        doc = make_document(db_session, person)
        status = DocumentShares.mark_read(db_session, bob.id, doc.id)
        assert status.is_read is True
        rows = db_session.scalars(select(UserDocumentStatus)).all()
        assert len(rows) == 1

    def test_is_read_defaults_false(self, db_session, person, bob):
        doc = make_document(db_session, person)
        assert DocumentShares.is_read(db_session, bob.id, doc.id) is False


class TestInbox:
    def test_list_unread_includes_sharer(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view"])
        unread = DocumentShares.list_unread(db_session, bob.id)
        assert len(unread) == 1
        assert unread[0].document.id == doc.id
        assert unread[0].sharer_id == person.id
        assert unread[0].sharer_email == person.email

    def test_list_unread_drops_read_and_orphans(self, db_session, person, bob):
        read_doc = make_document(db_session, person, name="Read")
        revoked_doc = make_document(db_session, person, name="Revoked")
        DocumentShares.share(db_session, person.id, read_doc.id, bob.id, ["view"])
        DocumentShares.share(db_session, person.id, revoked_doc.id, bob.id, ["view"])
        DocumentShares.mark_read(db_session, bob.id, read_doc.id)
        DocumentShares.unshare(db_session, person.id, revoked_doc.id, bob.id)
        assert DocumentShares.list_unread(db_session, bob.id) == []

    def test_list_unread_skips_trashed(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["view"])
        doc.status = DocumentStatus.trashed
        db_session.commit()
        assert DocumentShares.list_unread(db_session, bob.id) == []

    def test_list_shared_users(self, db_session, person, bob):
        doc = make_document(db_session, person)
        DocumentShares.share(db_session, person.id, doc.id, bob.id, ["download", "view"])
        shared = DocumentShares.list_shared_users(db_session, person.id, doc.id)
        assert [(s.user.id, s.permissions) for s in shared] == [
            (bob.id, ["view", "download"])
        ]
        with pytest.raises(NotAuthorized):
            DocumentShares.list_shared_users(db_session, bob.id, doc.id)

    def test_list_shared_with_me(self, db_session, person, bob):
        visible = make_document(db_session, person, name="Visible")
        trashed = make_document(db_session, person, name="Trashed")
        make_document(db_session, person, name="Private")
        DocumentShares.share(db_session, person.id, visible.id, bob.id, ["view"])
        DocumentShares.share(db_session, person.id, trashed.id, bob.id, ["view"])
        trashed.status = DocumentStatus.trashed
        db_session.commit()
        docs = DocumentShares.list_shared_with_me(db_session, bob.id)
        assert [d.id for d in docs] == [visible.id]
