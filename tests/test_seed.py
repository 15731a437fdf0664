from sqlalchemy.orm import Session

from seed_db import seed_admin, seed_master_data, INITIAL_MASTER_DATA, INITIAL_ADMIN_USERNAME, INITIAL_ADMIN_PASSWORD
from warranty.core.security import verify_password
from warranty.models.admin_user import AdminUser, AdminRole
from warranty.models.master_data import MASTER_DATA_MODELS


def test_seed_admin(db_session: Session):
    seed_admin(db_session)
    seed_admin(db_session)

    admins = db_session.query(AdminUser).all()
    assert len(admins) == 1
    assert admins[0].username == INITIAL_ADMIN_USERNAME
    assert admins[0].role == AdminRole.ADMIN
    assert admins[0].must_change_password is True
    assert verify_password(INITIAL_ADMIN_PASSWORD, admins[0].password_hash)


def test_seed_master_data_is_idempotent(db_session: Session):
    seed_master_data(db_session)
    seed_master_data(db_session)

    for kind, names in INITIAL_MASTER_DATA.items():
        model = MASTER_DATA_MODELS[kind]
        assert db_session.query(model).count() == len(names)
