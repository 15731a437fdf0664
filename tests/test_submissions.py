from datetime import datetime, timezone
from uuid import UUID, uuid4

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from warranty.main import app
from warranty.core.email import email_service, EmailDeliveryError
from warranty.crud import submission as crud_submission
from warranty.models.customer import Customer
from warranty.models.submission import Submission, SubmissionStatus
from warranty.models.submission_file import SubmissionFile

API_PREFIX = "/api"


def _image(name, size=16, content_type="image/jpeg"):
    return ("files", (name, b"x" * size, content_type))


def test_root_endpoint(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["docs"] == "/api/docs"


def test_health_reports_database(client: TestClient):
    response = client.get(API_PREFIX + "/health")
    assert response.status_code == 200
    assert response.json()["database"] is True
    assert response.json()["redis"] is False


def test_create_submission(client: TestClient, db_session: Session, submit, sent_emails):
    response = submit()
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    submission = body["submission"]
    assert submission["status"] == "Offen"
    assert submission["status_code"] == SubmissionStatus.OPEN.value
    assert submission["completed_at"] is None
    assert submission["files"] == []
    assert "tracking_token" not in submission

    db_submission = db_session.query(Submission).filter(Submission.id == UUID(submission["id"])).first()
    assert db_submission is not None
    assert db_submission.tracking_token
    assert db_submission.consent_accepted is True

    customer = db_session.query(Customer).filter(Customer.submission_id == db_submission.id).first()
    assert customer is not None
    assert customer.email == "max@mustermann.de"
    assert customer.password_hash is None

    recipients = [mail["to"] for mail in sent_emails]
    assert "max@mustermann.de" in recipients
    assert len(sent_emails) == 2
    confirmation = next(mail for mail in sent_emails if mail["to"] == "max@mustermann.de")
    assert f"/track/{db_submission.tracking_token}" in confirmation["html"]


def test_create_submission_with_files(client: TestClient, db_session: Session, submit, blob_storage, sent_emails):
    files = [
        _image("riss.jpg"),
        _image("fenster.png", content_type="image/png"),
        _image("protokoll.pdf", size=64, content_type="application/pdf"),
    ]
    response = submit(files=files)
    assert response.status_code == 200
    stored = response.json()["submission"]["files"]
    assert {f["name"] for f in stored} == {"riss.jpg", "fenster.png", "protokoll.pdf"}
    assert {f["url"] for f in stored} == set(blob_storage.blobs)
    assert {f["size"] for f in stored} == {16, 64}

    assert db_session.query(SubmissionFile).count() == 3
    staff_alert = next(mail for mail in sent_emails if mail["to"] != "max@mustermann.de")
    assert "protokoll.pdf" in staff_alert["html"]
    assert staff_alert["reply_to"] == "max@mustermann.de"


def test_create_submission_description_boundary(client: TestClient, submit):
    response = submit(description="a" * 20)
    assert response.status_code == 200

    response = submit(description="a" * 19)
    assert response.status_code == 400
    assert response.json() == {"error": "Beschreibung muss mindestens 20 Zeichen haben"}


def test_create_submission_invalid_postal_code(client: TestClient, submit):
    for postal_code in ("0410", "041099", "04a09"):
        response = submit(postal_code=postal_code)
        assert response.status_code == 400
        assert response.json()["error"] == "PLZ muss 5 Ziffern haben"


def test_create_submission_invalid_email(client: TestClient, submit):
    response = submit(email="keine-adresse")
    assert response.status_code == 400
    assert response.json()["error"] == "Ungültige E-Mail-Adresse"


def test_create_submission_requires_consent(client: TestClient, db_session: Session, submit):
    response = submit(consent_accepted="false")
    assert response.status_code == 400
    assert response.json()["error"] == "Sie müssen die Datenschutzerklärung akzeptieren"
    assert db_session.query(Submission).count() == 0


def test_create_submission_missing_field(client: TestClient, submit):
    response = submit(first_name="   ")
    assert response.status_code == 400
    assert response.json()["error"] == "Vorname ist erforderlich"


def test_create_submission_rejects_file_type(client: TestClient, db_session: Session, submit, blob_storage):
    response = submit(files=[_image("virus.exe", content_type="application/x-msdownload")])
    assert response.status_code == 400
    assert response.json()["error"] == "Dateityp nicht erlaubt: virus.exe"
    assert blob_storage.blobs == {}
    assert db_session.query(Submission).count() == 0


def test_create_submission_rejects_large_file(client: TestClient, submit, blob_storage, monkeypatch):
    from warranty.core.config import settings
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_BYTES", 1024 * 1024)

    response = submit(files=[_image("gross.jpg", size=1024 * 1024 + 1)])
    assert response.status_code == 400
    assert response.json()["error"] == "Datei zu groß (max. 1 MB): gross.jpg"
    assert blob_storage.blobs == {}


def test_partial_upload_failure_removes_stored_blobs(client: TestClient, db_session: Session, submit, failing_storage):
    response = submit(files=[_image("eins.jpg"), _image("zwei.jpg")])
    assert response.status_code == 500
    assert response.json()["error"] == "Datei-Upload fehlgeschlagen"
    assert failing_storage.blobs == {}
    assert len(failing_storage.deleted) == 1
    assert db_session.query(Submission).count() == 0


def test_database_failure_removes_stored_blobs(db_session: Session, blob_storage, monkeypatch):
    def broken_create(db, data, files):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(crud_submission, "create_submission", broken_create)
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post(
            API_PREFIX + "/submissions",
            data={
                "first_name": "Max",
                "last_name": "Mustermann",
                "street": "Hauptstraße 1",
                "postal_code": "04109",
                "city": "Leipzig",
                "tc_number": "TC-1234",
                "email": "max@mustermann.de",
                "phone": "0341 123456",
                "description": "Riss in der Wand im Wohnzimmer neben dem Fenster",
                "consent_accepted": "true",
            },
            files=[_image("riss.jpg")],
        )
    assert response.status_code == 500
    assert response.json() == {"error": "Interner Serverfehler"}
    assert blob_storage.blobs == {}
    assert len(blob_storage.deleted) == 1


def test_email_failure_does_not_fail_submission(client: TestClient, db_session: Session, submit, monkeypatch):
    def broken_send(to_email, subject, html_content, reply_to=None):
        raise EmailDeliveryError("smtp down")

    monkeypatch.setattr(email_service, "send_email", broken_send)
    response = submit()
    assert response.status_code == 200
    assert db_session.query(Submission).count() == 1


def test_list_requires_session(client: TestClient, created_submission):
    response = client.get(API_PREFIX + "/submissions")
    assert response.status_code == 401
    assert response.json() == {"error": "Nicht angemeldet"}


def test_list_submissions_search_and_filter(staff_client: TestClient, submit):
    submit(first_name="Anna", last_name="Schmidt", city="Leipzig", email="anna@schmidt.de")
    submit(first_name="Bernd", last_name="Becker", city="Dresden", postal_code="01067", email="bernd@becker.de")
    submit(first_name="Carla", last_name="Albers", city="Halle", postal_code="06108", email="carla@albers.de")

    response = staff_client.get(API_PREFIX + "/submissions", params={"search": "LEIPZIG"})
    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["submissions"][0]["last_name"] == "Schmidt"

    response = staff_client.get(API_PREFIX + "/submissions", params={"search": "becker.de"})
    assert [s["first_name"] for s in response.json()["submissions"]] == ["Bernd"]

    response = staff_client.get(API_PREFIX + "/submissions", params={"status": "Alle"})
    assert response.json()["total"] == 3

    response = staff_client.get(API_PREFIX + "/submissions", params={"status": "Erledigt"})
    assert response.json()["total"] == 0

    response = staff_client.get(API_PREFIX + "/submissions", params={"sortBy": "last_name", "sortOrder": "asc"})
    assert [s["last_name"] for s in response.json()["submissions"]] == ["Albers", "Becker", "Schmidt"]

    response = staff_client.get(
        API_PREFIX + "/submissions",
        params={"sortBy": "last_name", "sortOrder": "asc", "skip": 1, "limit": 1},
    )
    assert response.json()["total"] == 3
    assert [s["last_name"] for s in response.json()["submissions"]] == ["Becker"]


def test_search_wildcards_are_literal(staff_client: TestClient, submit):
    submit(last_name="Schmidt", description="Putz an der Fassade zu 100% abgeplatzt")
    submit(last_name="Becker")

    response = staff_client.get(API_PREFIX + "/submissions", params={"search": "100%"})
    assert [s["last_name"] for s in response.json()["submissions"]] == ["Schmidt"]

    response = staff_client.get(API_PREFIX + "/submissions", params={"search": "%"})
    assert response.json()["total"] == 1

    response = staff_client.get(API_PREFIX + "/submissions", params={"search": "_"})
    assert response.json()["total"] == 0


def test_list_submissions_by_year(staff_client: TestClient, created_submission):
    this_year = datetime.now(timezone.utc).year
    response = staff_client.get(API_PREFIX + "/submissions", params={"year": this_year})
    assert response.json()["total"] == 1

    response = staff_client.get(API_PREFIX + "/submissions", params={"year": 2001})
    assert response.json()["total"] == 0


def test_list_submissions_sorted_by_status(staff_client: TestClient, submit):
    ids = [submit(last_name=name).json()["submission"]["id"] for name in ("Erster", "Zweiter", "Dritter")]
    staff_client.patch(f"{API_PREFIX}/submissions/{ids[0]}", json={"status": "Erledigt"})
    staff_client.patch(f"{API_PREFIX}/submissions/{ids[1]}", json={"status": "Mangel abgelehnt"})

    response = staff_client.get(API_PREFIX + "/submissions", params={"sortBy": "status", "sortOrder": "asc"})
    assert [s["status"] for s in response.json()["submissions"]] == ["Offen", "Erledigt", "Mangel abgelehnt"]


def test_list_submissions_invalid_parameters(staff_client: TestClient, created_submission):
    response = staff_client.get(API_PREFIX + "/submissions", params={"status": "Verloren"})
    assert response.status_code == 400
    assert response.json()["error"] == "Ungültiger Status"

    response = staff_client.get(API_PREFIX + "/submissions", params={"sortBy": "password"})
    assert response.status_code == 400
    assert response.json()["error"] == "Ungültiges Sortierfeld: password"


def test_get_submission(staff_client: TestClient, created_submission):
    response = staff_client.get(f"{API_PREFIX}/submissions/{created_submission['id']}")
    assert response.status_code == 200
    assert response.json()["tc_number"] == "TC-1234"
    assert response.json()["tracking_token"]

    response = staff_client.get(f"{API_PREFIX}/submissions/{uuid4()}")
    assert response.status_code == 404
    assert response.json() == {"error": "Meldung nicht gefunden"}


def test_update_submission_fields(staff_client: TestClient, created_submission, master_data):
    url = f"{API_PREFIX}/submissions/{created_submission['id']}"
    response = staff_client.patch(url, json={
        "first_deadline": "2025-07-01",
        "acceptance": "Abgenommen",
        "gewerk": "Elektro",
        "firma_id": str(master_data["firma"].id),
    })
    assert response.status_code == 200
    submission = response.json()["submission"]
    assert submission["first_deadline"] == "2025-07-01"
    assert submission["acceptance"] == "Abgenommen"
    assert submission["gewerk"] == "Elektro"
    assert submission["gewerk_id"] == str(master_data["gewerk"].id)
    assert submission["firma"] == "Arndt"
    assert submission["status"] == "Offen"

    response = staff_client.patch(url, json={"gewerk": "Unbekanntes Gewerk", "first_deadline": None})
    assert response.status_code == 200
    assert response.json()["submission"]["gewerk_id"] is None
    assert response.json()["submission"]["first_deadline"] is None


def test_update_submission_rejects_unknown_reference(staff_client: TestClient, created_submission):
    response = staff_client.patch(
        f"{API_PREFIX}/submissions/{created_submission['id']}",
        json={"firma_id": str(uuid4())},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Unbekannter Eintrag für firma"


def test_update_submission_rejects_unknown_field(staff_client: TestClient, created_submission):
    response = staff_client.patch(
        f"{API_PREFIX}/submissions/{created_submission['id']}",
        json={"tracking_token": "selbst-gewaehlt"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Ungültiger Wert für 'tracking_token'"


def test_update_submission_validates_contact_fields(staff_client: TestClient, created_submission):
    url = f"{API_PREFIX}/submissions/{created_submission['id']}"
    response = staff_client.patch(url, json={"postal_code": "123"})
    assert response.status_code == 400
    assert response.json()["error"] == "PLZ muss 5 Ziffern haben"

    response = staff_client.patch(url, json={"last_name": None})
    assert response.status_code == 400
    assert response.json()["error"] == "Nachname ist erforderlich"


def test_update_email_follows_customer_account(staff_client: TestClient, db_session: Session, created_submission):
    response = staff_client.patch(
        f"{API_PREFIX}/submissions/{created_submission['id']}",
        json={"email": "Neu@Mustermann.de", "tc_number": "TC-9999"},
    )
    assert response.status_code == 200

    db_session.expire_all()
    customer = db_session.query(Customer).filter(Customer.submission_id == UUID(created_submission["id"])).first()
    assert customer.email == "neu@mustermann.de"
    assert customer.tc_number == "TC-9999"


def test_update_requires_password_change(client: TestClient, admin_factory, login, created_submission):
    admin_factory("neuling", "neulingpass1", must_change_password=True)
    login("neuling", "neulingpass1")

    response = client.get(API_PREFIX + "/submissions")
    assert response.status_code == 200

    response = client.patch(f"{API_PREFIX}/submissions/{created_submission['id']}", json={"status": "Erledigt"})
    assert response.status_code == 403
    assert response.json()["error"] == "Passwortänderung erforderlich"


def test_delete_submission(staff_client: TestClient, db_session: Session, submit, blob_storage):
    response = submit(files=[_image("riss.jpg"), _image("wand.jpg")])
    submission = response.json()["submission"]
    urls = {f["url"] for f in submission["files"]}

    response = staff_client.delete(f"{API_PREFIX}/submissions/{submission['id']}")
    assert response.status_code == 200
    assert set(blob_storage.deleted) == urls
    assert blob_storage.blobs == {}

    db_session.expire_all()
    assert db_session.query(Submission).count() == 0
    assert db_session.query(SubmissionFile).count() == 0
    assert db_session.query(Customer).count() == 0

    response = staff_client.get(f"{API_PREFIX}/submissions/{submission['id']}")
    assert response.status_code == 404
    response = staff_client.delete(f"{API_PREFIX}/submissions/{submission['id']}")
    assert response.status_code == 404


def test_delete_submission_when_storage_fails(staff_client: TestClient, db_session: Session, submit, blob_storage):
    submission = submit(files=[_image("riss.jpg")]).json()["submission"]
    blob_storage.fail_delete = True

    response = staff_client.delete(f"{API_PREFIX}/submissions/{submission['id']}")
    assert response.status_code == 200
    db_session.expire_all()
    assert db_session.query(Submission).count() == 0


def test_bulk_update(staff_client: TestClient, submit):
    ids = [submit(last_name=name).json()["submission"]["id"] for name in ("Eins", "Zwei")]
    missing = str(uuid4())

    response = staff_client.post(API_PREFIX + "/submissions/bulk", json={
        "ids": ids + [missing],
        "changes": {"status": "Erledigt", "second_deadline": "2025-09-30"},
    })
    assert response.status_code == 200
    assert response.json()["updated"] == 2
    assert response.json()["not_found"] == [missing]

    for submission_id in ids:
        submission = staff_client.get(f"{API_PREFIX}/submissions/{submission_id}").json()
        assert submission["status"] == "Erledigt"
        assert submission["completed_at"] is not None
        assert submission["second_deadline"] == "2025-09-30"


def test_bulk_update_invalid_status(staff_client: TestClient, created_submission):
    response = staff_client.post(API_PREFIX + "/submissions/bulk", json={
        "ids": [created_submission["id"]],
        "changes": {"status": "Verloren"},
    })
    assert response.status_code == 400
    assert response.json()["error"] == "Ungültiger Status"

    response = staff_client.post(API_PREFIX + "/submissions/bulk", json={"ids": [], "changes": {}})
    assert response.status_code == 400


def test_resend_confirmation(staff_client: TestClient, created_submission, sent_emails):
    sent_emails.clear()
    response = staff_client.post(f"{API_PREFIX}/submissions/{created_submission['id']}/resend-confirmation")
    assert response.status_code == 200
    assert [mail["to"] for mail in sent_emails] == ["max@mustermann.de"]


def test_resend_confirmation_reports_smtp_failure(staff_client: TestClient, created_submission, monkeypatch):
    def broken_send(to_email, subject, html_content, reply_to=None):
        raise EmailDeliveryError("smtp down")

    monkeypatch.setattr(email_service, "send_email", broken_send)
    response = staff_client.post(f"{API_PREFIX}/submissions/{created_submission['id']}/resend-confirmation")
    assert response.status_code == 502
    assert response.json() == {"error": "E-Mail konnte nicht gesendet werden"}
