"""Create otps table

Revision ID: 0001_create_otps
Revises:
Create Date: 2026-10-19 09:12:31.118204

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_create_otps'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'otps',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=150), nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('purpose', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            '(is_used AND used_at IS NOT NULL) OR (NOT is_used AND used_at IS NULL)',
            name='ck_otps_otps_used_at_iff_used',
        ),
        sa.CheckConstraint('expires_at > created_at', name='ck_otps_otps_expiry_after_creation'),
        sa.PrimaryKeyConstraint('id', name='pk_otps'),
    )
    op.create_index('ix_otps_email_purpose_used', 'otps', ['email', 'purpose', 'is_used'])
    op.create_index('ix_otps_expires_at', 'otps', ['expires_at'])


def downgrade() -> None:
    op.drop_index('ix_otps_expires_at', table_name='otps')
    op.drop_index('ix_otps_email_purpose_used', table_name='otps')
    op.drop_table('otps')
