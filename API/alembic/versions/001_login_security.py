"""Admin accounts, login attempts, OTP codes and sessions

Revision ID: 001_login_security
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001_login_security'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    from sqlalchemy import inspect
    bind = op.get_bind()
    existing = inspect(bind).get_table_names()

    if 'admins' not in existing:
        op.create_table(
            'admins',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('email', sa.String(255), nullable=False),
            sa.Column('password_hash', sa.String(255), nullable=False),
            sa.Column('first_name', sa.String(100), nullable=False),
            sa.Column('last_name', sa.String(100), nullable=False),
            sa.Column('phone', sa.String(20), nullable=True),
            sa.Column('role', sa.String(50), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            sa.Column('last_login', sa.DateTime(), nullable=True),
            sa.Column('verified_at', sa.DateTime(), nullable=True),
            *_timestamps(),
        )
        op.create_index('ix_admins_email', 'admins', ['email'], unique=True)
        op.create_index('ix_admins_created_at', 'admins', ['created_at'])
        op.create_index('ix_admins_role_active', 'admins', ['role', 'is_active'])

    if 'login_attempts' not in existing:
        op.create_table(
            'login_attempts',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('admin_id', sa.Integer(), sa.ForeignKey('admins.id', ondelete='SET NULL'), nullable=True),
            sa.Column('email', sa.String(255), nullable=True),
            sa.Column('device_id', sa.String(255), nullable=True),
            sa.Column('device_info', sa.Text(), nullable=True),
            sa.Column('ip_address', sa.String(50), nullable=True),
            sa.Column('location', sa.String(255), nullable=True),
            sa.Column('location_source', sa.String(20), nullable=True),
            sa.Column('status', sa.String(30), nullable=False),
            sa.Column('failure_reason', sa.String(100), nullable=True),
            sa.Column('approved_by', sa.Integer(), sa.ForeignKey('admins.id', ondelete='SET NULL'), nullable=True),
            sa.Column('approved_by_role', sa.String(50), nullable=True),
            *_timestamps(),
        )
        op.create_index('ix_login_attempts_admin_id', 'login_attempts', ['admin_id'])
        op.create_index('ix_login_attempts_email', 'login_attempts', ['email'])
        op.create_index('ix_login_attempts_status', 'login_attempts', ['status'])
        op.create_index('ix_login_attempts_created_at', 'login_attempts', ['created_at'])
        op.create_index('ix_login_attempts_admin_device', 'login_attempts', ['admin_id', 'device_id', 'status'])

    if 'otp_codes' not in existing:
        op.create_table(
            'otp_codes',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('email', sa.String(255), nullable=False),
            sa.Column('code_hash', sa.String(64), nullable=False),
            sa.Column('purpose', sa.String(20), nullable=False),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            *_timestamps(),
        )
        op.create_index('ix_otp_codes_email', 'otp_codes', ['email'])
        op.create_index('ix_otp_codes_expires_at', 'otp_codes', ['expires_at'])
        op.create_index('ix_otp_codes_created_at', 'otp_codes', ['created_at'])
        op.create_index('ix_otp_codes_lookup', 'otp_codes', ['email', 'code_hash', 'purpose'])

    if 'admin_sessions' not in existing:
        op.create_table(
            'admin_sessions',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('admin_id', sa.Integer(), sa.ForeignKey('admins.id', ondelete='CASCADE'), nullable=False),
            sa.Column('role', sa.String(50), nullable=False),
            sa.Column('login_attempt_id', sa.Integer(), sa.ForeignKey('login_attempts.id', ondelete='SET NULL'), nullable=True),
            sa.Column('token_hash', sa.String(64), nullable=True),
            sa.Column('ip_address', sa.String(50), nullable=True),
            sa.Column('user_agent', sa.Text(), nullable=True),
            sa.Column('expires_at', sa.DateTime(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False),
            *_timestamps(),
        )
        op.create_index('ix_admin_sessions_admin_id', 'admin_sessions', ['admin_id'])
        op.create_index('ix_admin_sessions_token_hash', 'admin_sessions', ['token_hash'])
        op.create_index('ix_admin_sessions_created_at', 'admin_sessions', ['created_at'])


def downgrade() -> None:
    op.drop_table('admin_sessions')
    op.drop_table('otp_codes')
    op.drop_table('login_attempts')
    op.drop_table('admins')
