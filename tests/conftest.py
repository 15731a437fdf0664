import os
from uuid import UUID

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from warranty.main import app
from warranty.db.session import Base, get_db
from warranty.api.deps import get_blob_storage
from warranty.core.email import email_service
from warranty.core.security import get_password_hash
from warranty.core.storage import StorageError
from warranty.models.admin_user import AdminUser, AdminRole
from warranty.models.master_data import Bauleitung, Verantwortlicher, Gewerk, Firma
from warranty.models.submission import Submission

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


class FakeBlobStorage:
    """In-memory blob storage; ``fail_after`` makes put fail once that many blobs are stored"""

    def __init__(self):
        self.blobs = {}
        self.deleted = []
        self.fail_after = None
        self.fail_delete = False

    def put(self, name, data, content_type):
        if self.fail_after is not None and len(self.blobs) >= self.fail_after:
            raise StorageError("storage unavailable")
        url = f"https://blob.test/{len(self.blobs) + len(self.deleted)}-{name}"
        self.blobs[url] = data
        return url

    def delete(self, url):
        self.deleted.append(url)
        if self.fail_delete:
            raise RuntimeError("storage unavailable")
        self.blobs.pop(url, None)


app.dependency_overrides[get_db] = override_get_db

VALID_FORM = {
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
}

ADMIN_PASSWORD = "chefpasswort1"
STAFF_PASSWORD = "staffpasswort1"


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)  # Create tables
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def blob_storage():
    storage = FakeBlobStorage()
    app.dependency_overrides[get_blob_storage] = lambda: storage
    yield storage
    app.dependency_overrides.pop(get_blob_storage, None)


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outgoing mail instead of talking to SMTP"""
    outbox = []

    def fake_send_email(to_email, subject, html_content, reply_to=None):
        outbox.append({"to": to_email, "subject": subject, "html": html_content, "reply_to": reply_to})

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return outbox


@pytest.fixture(scope="function")
def client(db_session, blob_storage):
    with TestClient(app) as c:
        yield c


def make_admin(db, username, password, role=AdminRole.ADMIN, must_change_password=False):
    admin = AdminUser(
        username=username,
        password_hash=get_password_hash(password),
        role=role,
        must_change_password=must_change_password,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


@pytest.fixture(scope="function")
def admin_factory(db_session):
    def _make(username, password, role=AdminRole.ADMIN, must_change_password=False):
        return make_admin(db_session, username, password, role, must_change_password)
    return _make


@pytest.fixture(scope="function")
def admin_user(db_session):
    return make_admin(db_session, "chef", ADMIN_PASSWORD, AdminRole.ADMIN)


@pytest.fixture(scope="function")
def staff_user(db_session):
    return make_admin(db_session, "mitarbeiter", STAFF_PASSWORD, AdminRole.STAFF)


@pytest.fixture(scope="function")
def login(client):
    def _login(username, password):
        response = client.post("/api/auth/admin/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return response.json()
    return _login


@pytest.fixture(scope="function")
def admin_client(client, admin_user, login):
    login("chef", ADMIN_PASSWORD)
    return client


@pytest.fixture(scope="function")
def staff_client(client, staff_user, login):
    login("mitarbeiter", STAFF_PASSWORD)
    return client


@pytest.fixture(scope="function")
def submit(client):
    """Post the public intake form; keyword arguments override form fields"""
    def _submit(files=None, **overrides):
        data = dict(VALID_FORM)
        data.update(overrides)
        if files:
            return client.post("/api/submissions", data=data, files=files)
        return client.post("/api/submissions", data=data)
    return _submit


@pytest.fixture(scope="function")
def created_submission(submit):
    response = submit()
    assert response.status_code == 200, response.text
    return response.json()["submission"]


@pytest.fixture(scope="function")
def master_data(db_session):
    items = {
        "bauleitung": Bauleitung(name="Jens Kohnert"),
        "verantwortlicher": Verantwortlicher(name="Thomas Wötzel"),
        "gewerk": Gewerk(name="Elektro"),
        "gewerk_2": Gewerk(name="Fliesen"),
        "firma": Firma(name="Arndt"),
    }
    db_session.add_all(items.values())
    db_session.commit()
    for item in items.values():
        db_session.refresh(item)
    return items


@pytest.fixture(scope="function")
def get_tracking_token(db_session):
    def _token(submission_id):
        db_session.expire_all()
        submission = db_session.query(Submission).filter(Submission.id == UUID(submission_id)).first()
        return submission.tracking_token
    return _token


@pytest.fixture(scope="function")
def failing_storage(blob_storage):
    blob_storage.fail_after = 1
    return blob_storage
