from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import Session

from warranty.core.config import settings
from warranty.crud import admin_user as crud_admin
from warranty.models.activity_log import ActivityLog
from warranty.models.admin_user import AdminRole

API_PREFIX = "/api/auth/admin"


def test_login(client: TestClient, admin_user):
    response = client.post(API_PREFIX + "/login", json={"username": "chef", "password": "chefpasswort1"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["admin"]["username"] == "chef"
    assert body["admin"]["role"] == AdminRole.ADMIN.value
    assert body["must_change_password"] is False
    assert settings.ADMIN_SESSION_COOKIE in response.cookies
    assert "password_hash" not in body["admin"]


def test_login_invalid_credentials(client: TestClient, admin_user):
    response = client.post(API_PREFIX + "/login", json={"username": "chef", "password": "falsch"})
    assert response.status_code == 401
    assert response.json() == {"error": "Ungültiger Benutzername oder Passwort"}

    response = client.post(API_PREFIX + "/login", json={"username": "niemand", "password": "chefpasswort1"})
    assert response.status_code == 401
    assert response.json() == {"error": "Ungültiger Benutzername oder Passwort"}


def test_login_missing_field(client: TestClient):
    response = client.post(API_PREFIX + "/login", json={"username": "chef"})
    assert response.status_code == 400
    assert response.json() == {"error": "Feld 'password' ist erforderlich"}


def test_verify_session(admin_client: TestClient):
    response = admin_client.get(API_PREFIX + "/verify")
    assert response.status_code == 200
    assert response.json()["valid"] is True
    assert response.json()["admin"]["username"] == "chef"


def test_verify_without_session(client: TestClient):
    response = client.get(API_PREFIX + "/verify")
    assert response.status_code == 401
    assert response.json() == {"error": "Nicht angemeldet"}


def test_forged_session_rejected(client: TestClient, admin_user):
    token = jwt.encode(
        {
            "admin_id": str(admin_user.id),
            "username": "chef",
            "role": "ADMIN",
            "kind": settings.ADMIN_SESSION_COOKIE,
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        },
        "nicht-der-richtige-schluessel",
        algorithm=settings.ALGORITHM,
    )
    client.cookies.set(settings.ADMIN_SESSION_COOKIE, token)
    response = client.get(API_PREFIX + "/verify")
    assert response.status_code == 401


def test_logout(admin_client: TestClient):
    response = admin_client.post(API_PREFIX + "/logout")
    assert response.status_code == 200
    assert admin_client.get(API_PREFIX + "/verify").status_code == 401


def test_deleted_admin_session_rejected(client: TestClient, db_session: Session, admin_factory, login):
    admin = admin_factory("kurzzeit", "kurzzeitpass1")
    login("kurzzeit", "kurzzeitpass1")
    assert client.get(API_PREFIX + "/verify").status_code == 200

    crud_admin.delete_admin(db_session, admin.id)
    response = client.get(API_PREFIX + "/verify")
    assert response.status_code == 401


def test_role_change_applies_to_existing_session(client: TestClient, db_session: Session, admin_factory, login):
    admin = admin_factory("wechsel", "wechselpass1", role=AdminRole.ADMIN)
    login("wechsel", "wechselpass1")
    assert client.get(API_PREFIX + "/users").status_code == 200

    admin.role = AdminRole.STAFF
    db_session.commit()
    response = client.post(API_PREFIX + "/users", json={"username": "neu", "password": "neupasswort1"})
    assert response.status_code == 403
    assert response.json() == {"error": "Keine Berechtigung"}


def test_change_password(client: TestClient, db_session: Session, admin_factory, login):
    admin_factory("erstlogin", "startpasswort1", must_change_password=True)
    body = login("erstlogin", "startpasswort1")
    assert body["must_change_password"] is True

    response = client.post(API_PREFIX + "/change-password", json={
        "old_password": "startpasswort1",
        "new_password": "neuespasswort1",
    })
    assert response.status_code == 200
    assert response.json()["must_change_password"] is False

    response = client.post(API_PREFIX + "/login", json={"username": "erstlogin", "password": "neuespasswort1"})
    assert response.status_code == 200
    response = client.post(API_PREFIX + "/login", json={"username": "erstlogin", "password": "startpasswort1"})
    assert response.status_code == 401


def test_change_password_errors(admin_client: TestClient):
    response = admin_client.post(API_PREFIX + "/change-password", json={
        "old_password": "falsch",
        "new_password": "neuespasswort1",
    })
    assert response.status_code == 400
    assert response.json() == {"error": "Aktuelles Passwort ist falsch"}

    response = admin_client.post(API_PREFIX + "/change-password", json={
        "old_password": "chefpasswort1",
        "new_password": "kurz",
    })
    assert response.status_code == 400
    assert response.json() == {"error": "Passwort muss mindestens 8 Zeichen haben"}

    response = admin_client.post(API_PREFIX + "/change-password", json={
        "old_password": "chefpasswort1",
        "new_password": "chefpasswort1",
    })
    assert response.status_code == 400


def test_list_users(staff_client: TestClient, admin_user):
    response = staff_client.get(API_PREFIX + "/users")
    assert response.status_code == 200
    assert {user["username"] for user in response.json()} == {"chef", "mitarbeiter"}


def test_create_user(admin_client: TestClient, db_session: Session, admin_user):
    response = admin_client.post(API_PREFIX + "/users", json={
        "username": "neue.kollegin",
        "password": "startpasswort1",
        "role": "STAFF",
    })
    assert response.status_code == 201
    created = response.json()
    assert created["role"] == "STAFF"
    assert created["must_change_password"] is True
    assert created["created_by"] == str(admin_user.id)

    entry = db_session.query(ActivityLog).filter(ActivityLog.entity_id == created["id"]).first()
    assert entry.action == "created"
    assert entry.entity_type == "admin_user"

    response = admin_client.post(API_PREFIX + "/users", json={
        "username": "neue.kollegin",
        "password": "startpasswort1",
    })
    assert response.status_code == 409
    assert response.json() == {"error": "Benutzername bereits vergeben"}

    response = admin_client.post(API_PREFIX + "/users", json={"username": "kurzpw", "password": "kurz"})
    assert response.status_code == 400


def test_staff_cannot_manage_users(staff_client: TestClient, admin_user):
    response = staff_client.post(API_PREFIX + "/users", json={"username": "neu", "password": "neupasswort1"})
    assert response.status_code == 403

    response = staff_client.delete(f"{API_PREFIX}/users/{admin_user.id}")
    assert response.status_code == 403


def test_delete_user(admin_client: TestClient, admin_user, staff_user):
    response = admin_client.delete(f"{API_PREFIX}/users/{admin_user.id}")
    assert response.status_code == 400
    assert response.json() == {"error": "Sie können sich nicht selbst löschen"}

    response = admin_client.delete(f"{API_PREFIX}/users/{staff_user.id}")
    assert response.status_code == 200

    response = admin_client.delete(f"{API_PREFIX}/users/{staff_user.id}")
    assert response.status_code == 404
    assert response.json() == {"error": "Benutzer nicht gefunden"}


def test_reset_password(client: TestClient, admin_client: TestClient, staff_user, login):
    response = admin_client.post(
        f"{API_PREFIX}/users/{staff_user.id}/reset-password",
        json={"new_password": "zurueckgesetzt1"},
    )
    assert response.status_code == 200
    assert response.json()["must_change_password"] is True

    body = login("mitarbeiter", "zurueckgesetzt1")
    assert body["must_change_password"] is True


def test_must_change_blocks_admin_actions(client: TestClient, admin_factory, login):
    admin_factory("frisch", "frischpasswort1", must_change_password=True)
    login("frisch", "frischpasswort1")

    response = client.post(API_PREFIX + "/users", json={"username": "neu", "password": "neupasswort1"})
    assert response.status_code == 403
    assert response.json() == {"error": "Passwortänderung erforderlich"}

    response = client.post("/api/master-data", json={"type": "gewerk", "name": "Maler"})
    assert response.status_code == 403
