"""Collapse SUPER_ADMIN into ADMIN

Revision ID: 002_collapse_super_admin_role
Revises: 001_initial_schema
Create Date: 2025-11-15 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002_collapse_super_admin_role'
down_revision = '001_initial_schema'
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Existing super admins keep full rights as ADMIN
    op.execute("UPDATE admin_users SET role = 'ADMIN' WHERE role = 'SUPER_ADMIN'")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        # PostgreSQL can't drop an enum value; recreate the type without it
        op.execute("ALTER TYPE adminrole RENAME TO adminrole_old")
        op.execute("CREATE TYPE adminrole AS ENUM ('ADMIN', 'STAFF')")
        op.execute(
            "ALTER TABLE admin_users ALTER COLUMN role TYPE adminrole "
            "USING role::text::adminrole"
        )
        op.execute("DROP TYPE adminrole_old")
    else:
        with op.batch_alter_table('admin_users') as batch_op:
            batch_op.alter_column(
                'role',
                existing_type=sa.Enum('SUPER_ADMIN', 'ADMIN', 'STAFF', name='adminrole'),
                type_=sa.Enum('ADMIN', 'STAFF', name='adminrole'),
                existing_nullable=False,
            )


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("ALTER TYPE adminrole ADD VALUE 'SUPER_ADMIN' BEFORE 'ADMIN'")
    else:
        with op.batch_alter_table('admin_users') as batch_op:
            batch_op.alter_column(
                'role',
                existing_type=sa.Enum('ADMIN', 'STAFF', name='adminrole'),
                type_=sa.Enum('SUPER_ADMIN', 'ADMIN', 'STAFF', name='adminrole'),
                existing_nullable=False,
            )
    # Former super admins can't be told apart from admins anymore
