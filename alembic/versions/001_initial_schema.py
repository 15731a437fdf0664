"""Initial warranty portal schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

MASTER_DATA_TABLES = ['bauleitung', 'verantwortlicher', 'gewerk', 'firma']


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Admin users (SUPER_ADMIN existed until 002)
    op.create_table(
        'admin_users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum('SUPER_ADMIN', 'ADMIN', 'STAFF', name='adminrole'), nullable=False),
        sa.Column('must_change_password', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('admin_users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f('ix_admin_users_id'), 'admin_users', ['id'], unique=False)
    op.create_index(op.f('ix_admin_users_username'), 'admin_users', ['username'], unique=True)

    # Master data lookup lists
    for table_name in MASTER_DATA_TABLES:
        op.create_table(
            table_name,
            sa.Column('id', sa.Uuid(), primary_key=True),
            sa.Column('name', sa.String(length=200), nullable=False),
            sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        op.create_index(op.f(f'ix_{table_name}_id'), table_name, ['id'], unique=False)
        op.create_index(op.f(f'ix_{table_name}_active'), table_name, ['active'], unique=False)
        op.create_index(
            f'uq_{table_name}_active_name',
            table_name,
            ['name'],
            unique=True,
            postgresql_where=sa.text('active'),
            sqlite_where=sa.text('active = 1'),
        )

    # Submissions
    op.create_table(
        'submissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tc_number', sa.String(length=100), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=False),
        sa.Column('last_name', sa.String(length=255), nullable=False),
        sa.Column('street', sa.String(length=255), nullable=False),
        sa.Column('postal_code', sa.String(length=5), nullable=False),
        sa.Column('city', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('consent_accepted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('house_type', sa.String(length=100), nullable=True),
        sa.Column('bauleitung_id', sa.Uuid(), sa.ForeignKey('bauleitung.id', ondelete='SET NULL'), nullable=True),
        sa.Column('verantwortlicher_id', sa.Uuid(), sa.ForeignKey('verantwortlicher.id', ondelete='SET NULL'), nullable=True),
        sa.Column('gewerk_id', sa.Uuid(), sa.ForeignKey('gewerk.id', ondelete='SET NULL'), nullable=True),
        sa.Column('firma_id', sa.Uuid(), sa.ForeignKey('firma.id', ondelete='SET NULL'), nullable=True),
        sa.Column(
            'status',
            sa.Enum('OPEN', 'IN_PROGRESS', 'DONE', 'REJECTED', name='submissionstatus'),
            nullable=False,
            server_default='OPEN',
        ),
        sa.Column('first_deadline', sa.Date(), nullable=True),
        sa.Column('second_deadline', sa.Date(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('acceptance', sa.String(length=100), nullable=True),
        sa.Column('tracking_token', sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f('ix_submissions_id'), 'submissions', ['id'], unique=False)
    op.create_index(op.f('ix_submissions_tc_number'), 'submissions', ['tc_number'], unique=False)
    op.create_index(op.f('ix_submissions_email'), 'submissions', ['email'], unique=False)
    op.create_index(op.f('ix_submissions_status'), 'submissions', ['status'], unique=False)
    op.create_index(op.f('ix_submissions_created_at'), 'submissions', ['created_at'], unique=False)
    op.create_index(op.f('ix_submissions_tracking_token'), 'submissions', ['tracking_token'], unique=True)
    for table_name in MASTER_DATA_TABLES:
        op.create_index(op.f(f'ix_submissions_{table_name}_id'), 'submissions', [f'{table_name}_id'], unique=False)

    # Attached files
    op.create_table(
        'submission_files',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('submission_id', sa.Uuid(), sa.ForeignKey('submissions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('content_type', sa.String(length=100), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('url', sa.String(length=1000), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f('ix_submission_files_submission_id'), 'submission_files', ['submission_id'], unique=False)

    # Customer accounts
    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('submission_id', sa.Uuid(), sa.ForeignKey('submissions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('tc_number', sa.String(length=100), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f('ix_customers_submission_id'), 'customers', ['submission_id'], unique=True)
    op.create_index(op.f('ix_customers_email'), 'customers', ['email'], unique=False)

    # Activity log
    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('admin_users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=False),
        sa.Column('old_value', sa.Text(), nullable=True),
        sa.Column('new_value', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=100), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f('ix_activity_logs_user_id'), 'activity_logs', ['user_id'], unique=False)
    op.create_index(op.f('ix_activity_logs_entity_id'), 'activity_logs', ['entity_id'], unique=False)
    op.create_index(op.f('ix_activity_logs_created_at'), 'activity_logs', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_table('activity_logs')
    op.drop_table('customers')
    op.drop_table('submission_files')
    op.drop_table('submissions')
    for table_name in reversed(MASTER_DATA_TABLES):
        op.drop_table(table_name)
    op.drop_table('admin_users')
    op.execute("DROP TYPE IF EXISTS submissionstatus")
    op.execute("DROP TYPE IF EXISTS adminrole")
