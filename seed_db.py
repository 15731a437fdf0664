"""
Database seeding script - Creates the initial admin user and master data
Run this once after your database is set up:
    python seed_db.py

Running it again only adds what is missing.
"""

from warranty.db.session import SessionLocal, Base, engine
from warranty import models  # noqa: F401
from warranty.models.admin_user import AdminUser, AdminRole
from warranty.models.master_data import MasterDataType, MASTER_DATA_MODELS
from warranty.core.security import get_password_hash
from sqlalchemy.exc import IntegrityError

INITIAL_ADMIN_USERNAME = "Admin"
INITIAL_ADMIN_PASSWORD = "admin123"

INITIAL_MASTER_DATA = {
    MasterDataType.BAULEITUNG: [
        "Daniel Mordass",
        "Jens Kohnert",
        "Markus Wünsch",
    ],
    MasterDataType.VERANTWORTLICHER: [
        "Daniel Mordass",
        "Jens Kohnert",
        "Markus Wünsch",
        "Thomas Wötzel",
    ],
    MasterDataType.GEWERK: [
        "Außenputz", "Balkone", "Dachdeckung", "Dachstuhl", "Elektro", "Estrich",
        "Fenster", "Fliesen", "Heizung/Sanitär", "Hochbau", "Innenputz", "Innentüren",
        "Lüftung", "Tiefbau", "Treppen", "Trockenbau",
    ],
    MasterDataType.FIRMA: [
        "Arndt", "Bauconstruct", "Bauservice Zwenkau", "Bergander", "BMB", "Breman",
        "Cierpinski", "Döhler", "Enick", "Estrichteam", "Gaedtke", "Guttenberger",
        "Happke", "Harrandt", "HIB", "HIT", "Hoppe & Kant", "Hüther", "Kieburg",
        "Krieg", "Lunos", "MoJé Bau", "Pluggit", "Raum + Areal", "Salomon", "Stoof",
        "Streubel", "TMP", "Treppenmeister", "UDIPAN", "Werner",
    ],
}


def seed_admin(db):
    existing_admin = db.query(AdminUser).filter(AdminUser.username == INITIAL_ADMIN_USERNAME).first()
    if existing_admin:
        print("⚠ Admin user already exists, skipping...\n")
        return

    admin = AdminUser(
        username=INITIAL_ADMIN_USERNAME,
        password_hash=get_password_hash(INITIAL_ADMIN_PASSWORD),
        role=AdminRole.ADMIN,
        must_change_password=True,
    )
    db.add(admin)
    db.commit()

    print("✓ Admin user created successfully\n")
    print("Initial Credentials:")
    print(f"  Username: {INITIAL_ADMIN_USERNAME}")
    print(f"  Password: {INITIAL_ADMIN_PASSWORD}")
    print("  Role: ADMIN (password must be changed on first login)")
    print()


def seed_master_data(db):
    for kind, names in INITIAL_MASTER_DATA.items():
        model = MASTER_DATA_MODELS[kind]
        created = 0
        for name in names:
            exists = db.query(model).filter(model.name == name, model.active == True).first()
            if exists:
                continue
            db.add(model(name=name, active=True))
            created += 1
        db.commit()
        print(f"✓ {kind.value}: {created} created, {len(names) - created} already present")
    print()


def seed_database():
    """Create initial tables and seed the admin user and master data"""

    # Create all tables
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully\n")

    db = SessionLocal()

    try:
        seed_admin(db)
        seed_master_data(db)
    except IntegrityError:
        db.rollback()
        print("⚠ Data already exists\n")
    except Exception as e:
        db.rollback()
        print(f"✗ Error seeding database: {str(e)}\n")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
