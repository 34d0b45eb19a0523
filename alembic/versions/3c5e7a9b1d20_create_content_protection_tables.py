"""create content protection tables

Creates the tables read and written by the content protection service:
- users (identity and subscription state, owned by upstream systems)
- lessons with the EncryptedContent envelope columns
- user_devices for the per-user device limit
- suspicious_activities and content_access_logs (append-only audit)

Revision ID: 3c5e7a9b1d20
Revises:
Create Date: 2026-01-12 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from schema_config import get_schema


# revision identifiers, used by Alembic.
revision: str = '3c5e7a9b1d20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    schema = get_schema()
    op.execute(f'CREATE SCHEMA IF NOT EXISTS "{schema}"')

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column(
            'role',
            sa.Enum('user', 'admin', name='userrole', schema=schema),
            nullable=False,
            server_default='user'
        ),
        sa.Column(
            'subscription_status',
            sa.Enum('FREE', 'ACTIVE', 'CANCELLED', 'EXPIRED', name='subscriptionstatus', schema=schema),
            nullable=False,
            server_default='FREE'
        ),
        sa.Column('subscription_end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema=schema
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True, schema=schema)
    op.create_index('idx_users_subscription_status', 'users', ['subscription_status'], schema=schema)

    op.create_table(
        'lessons',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column(
            'lesson_type',
            sa.Enum('text', 'video', name='lessontype', schema=schema),
            nullable=False,
            server_default='text'
        ),
        sa.Column('premium', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('markdown_content', sa.Text(), nullable=True),
        sa.Column('video_path', sa.String(500), nullable=True),
        # EncryptedContent envelope
        sa.Column('encrypted_content', postgresql.BYTEA(), nullable=True),
        sa.Column('encryption_iv', postgresql.BYTEA(), nullable=True),
        sa.Column('encryption_tag', postgresql.BYTEA(), nullable=True),
        sa.Column('wrapped_key', postgresql.BYTEA(), nullable=True),
        sa.Column('key_version', sa.String(50), nullable=True),
        sa.Column('content_hash', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema=schema
    )
    op.create_index('idx_lessons_premium', 'lessons', ['premium'], schema=schema)

    op.create_table(
        'user_devices',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('fingerprint', sa.String(64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], [f'{schema}.users.id'], ondelete='CASCADE'),
        schema=schema
    )
    op.create_index('ix_user_devices_user_id', 'user_devices', ['user_id'], schema=schema)
    op.create_index(
        'idx_user_devices_user_fingerprint',
        'user_devices',
        ['user_id', 'fingerprint'],
        unique=True,
        schema=schema
    )

    # Audit tables carry no foreign keys so history outlives accounts and lessons
    op.create_table(
        'suspicious_activities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('content_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('activity_type', sa.String(50), nullable=False),
        sa.Column('details', postgresql.JSONB(), nullable=True),
        sa.Column('client_context', postgresql.JSONB(), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('client_timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema=schema
    )
    op.create_index(
        'idx_suspicious_user_received',
        'suspicious_activities',
        ['user_id', 'received_at'],
        schema=schema
    )

    op.create_table(
        'content_access_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('content_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('access_kind', sa.String(20), nullable=False),
        sa.Column('token_prefix', sa.String(16), nullable=False),
        sa.Column('device_fingerprint', sa.String(64), nullable=True),
        sa.Column('accessed_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        schema=schema
    )
    op.create_index(
        'idx_access_logs_content',
        'content_access_logs',
        ['content_id', 'accessed_at'],
        schema=schema
    )


def downgrade() -> None:
    schema = get_schema()
    op.drop_index('idx_access_logs_content', table_name='content_access_logs', schema=schema)
    op.drop_table('content_access_logs', schema=schema)

    op.drop_index('idx_suspicious_user_received', table_name='suspicious_activities', schema=schema)
    op.drop_table('suspicious_activities', schema=schema)

    op.drop_index('idx_user_devices_user_fingerprint', table_name='user_devices', schema=schema)
    op.drop_index('ix_user_devices_user_id', table_name='user_devices', schema=schema)
    op.drop_table('user_devices', schema=schema)

    op.drop_index('idx_lessons_premium', table_name='lessons', schema=schema)
    op.drop_table('lessons', schema=schema)

    op.drop_index('idx_users_subscription_status', table_name='users', schema=schema)
    op.drop_index('ix_users_email', table_name='users', schema=schema)
    op.drop_table('users', schema=schema)

    op.execute(f'DROP TYPE IF EXISTS "{schema}".lessontype')
    op.execute(f'DROP TYPE IF EXISTS "{schema}".subscriptionstatus')
    op.execute(f'DROP TYPE IF EXISTS "{schema}".userrole')
