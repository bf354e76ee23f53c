import io

import pytest

from app.gigstm.db import session_scope
from app.gigstm.lifecycle import LifecycleError, TransitionError
from app.gigstm.modules.kyc.models import KycDocument
from app.gigstm.modules.kyc.service import is_verified, review_document, upload_document
from app.gigstm.modules.notifications.models import Notification
from app.gigstm.storage import LocalStorage

from conftest import login, make_user

PDF = b"%PDF-1.4\n%test document\n"


@pytest.fixture()
def storage(tmp_path):
    return LocalStorage(tmp_path / "kyc-blobs")


def _upload(db, user, storage, **overrides):
    kwargs = {
        "document_type": "passport",
        "file_bytes": PDF,
        "filename": "passport.pdf",
        "content_type": "application/pdf",
        "storage": storage,
    }
    kwargs.update(overrides)
    return upload_document(db, user, **kwargs)


def test_upload_stores_file_and_notifies_staff(db, storage):
    worker = make_user(db, "w@example.com")
    admin = make_user(db, "a@example.com", "admin")
    doc = _upload(db, worker, storage)
    db.flush()

    assert doc.status == "pending"
    assert doc.size_bytes == len(PDF)
    assert len(doc.sha256) == 64
    assert doc.storage_key.startswith(f"kyc/{worker.id}/passport/")
    assert storage.open(doc.storage_key).read() == PDF
    assert db.query(Notification).filter(Notification.user_id == admin.id).count() == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"document_type": "library_card"},
        {"file_bytes": b""},
        {"content_type": "text/plain", "filename": "id.txt"},
    ],
)
def test_upload_validation(db, storage, overrides):
    worker = make_user(db, "w@example.com")
    with pytest.raises(LifecycleError):
        _upload(db, worker, storage, **overrides)


def test_images_are_accepted(db, storage):
    worker = make_user(db, "w@example.com")
    doc = _upload(db, worker, storage, filename="id.jpg", content_type="image/jpeg", document_type="national_id")
    assert doc.storage_key.endswith(".jpg")


def test_review_rules(db, storage):
    worker = make_user(db, "w@example.com")
    admin = make_user(db, "a@example.com", "admin")
    doc = _upload(db, worker, storage)

    with pytest.raises(LifecycleError):
        review_document(db, doc, "rejected", admin, "")
    with pytest.raises(TransitionError):
        review_document(db, doc, "maybe", admin)
    assert is_verified(db, worker.id) is False

    review_document(db, doc, "approved", admin)
    db.flush()
    assert doc.status == "approved"
    assert doc.reviewed_by_user_id == admin.id
    assert is_verified(db, worker.id) is True

    with pytest.raises(TransitionError):
        review_document(db, doc, "rejected", admin, "Too late")


def test_kyc_over_http(app, client, users):
    login(client, "worker@example.com")
    r = client.post(
        "/kyc",
        data={"document_type": "passport", "file": (io.BytesIO(PDF), "passport.pdf", "application/pdf")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 302

    with session_scope(app) as s:
        doc_id = s.query(KycDocument).one().id

    r = client.get(f"/kyc/{doc_id}/download")
    assert r.status_code == 200
    assert r.data == PDF

    client.get("/auth/logout")
    login(client, "admin@example.com", staff=True)
    assert client.get("/admin/kyc").status_code == 200
    client.post(f"/admin/kyc/{doc_id}", data={"decision": "rejected", "remarks": "Photo is blurry"})

    with session_scope(app) as s:
        doc = s.get(KycDocument, doc_id)
        assert doc.status == "rejected"
        assert doc.remarks == "Photo is blurry"

    client.get("/auth/logout")
    login(client, "worker2@example.com")
    assert client.get(f"/kyc/{doc_id}/download").status_code == 403


def test_kyc_page_shows_verification_state(app, client, users):
    login(client, "worker@example.com")
    client.post(
        "/kyc",
        data={"document_type": "passport", "file": (io.BytesIO(PDF), "passport.pdf", "application/pdf")},
        content_type="multipart/form-data",
    )
    assert b"Not verified yet" in client.get("/kyc").data

    with session_scope(app) as s:
        doc_id = s.query(KycDocument).one().id

    client.get("/auth/logout")
    login(client, "admin@example.com", staff=True)
    client.post(f"/admin/kyc/{doc_id}", data={"decision": "approved"})

    client.get("/auth/logout")
    login(client, "worker@example.com")
    r = client.get("/kyc")
    assert b"Verified" in r.data
    assert b"Not verified yet" not in r.data
