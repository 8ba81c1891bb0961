"""
create assets and bandwidth_logs tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18

assets is owned by the asset-management service; bandwidth_logs is filled by
the CDN log pipeline. Analytics only reads both, so the indexes follow its
access paths: owner lookups, per-asset and per-path time ranges.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'assets',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('s3_key', sa.String(), nullable=False, unique=True),
        sa.Column('cloudfront_url', sa.String(), nullable=False),
        sa.Column('size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('is_private', sa.Boolean(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_assets_owner_deleted', 'assets', ['owner_id', 'is_deleted'])
    op.create_index('ix_assets_created_at', 'assets', ['created_at'])

    op.create_table(
        'bandwidth_logs',
        sa.Column('id', sa.BigInteger().with_variant(sa.Integer(), 'sqlite'),
                  primary_key=True, autoincrement=True),
        sa.Column('asset_id', sa.Uuid(), nullable=True),
        sa.Column('path', sa.String(), nullable=False),
        sa.Column('bytes', sa.BigInteger(), nullable=False),
        sa.Column('request_bytes', sa.BigInteger(), nullable=True),
        sa.Column('edge_result', sa.String(), nullable=True),
        sa.Column('distribution', sa.String(), nullable=True),
        sa.Column('status', sa.Integer(), nullable=True),
        sa.Column('client_ip', sa.String(), nullable=True),
        sa.Column('country', sa.String(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_bandwidth_logs_asset_ts', 'bandwidth_logs', ['asset_id', 'timestamp'])
    op.create_index('ix_bandwidth_logs_path_ts', 'bandwidth_logs', ['path', 'timestamp'])
    op.create_index('ix_bandwidth_logs_timestamp', 'bandwidth_logs', ['timestamp'])


def downgrade() -> None:
    op.drop_index('ix_bandwidth_logs_timestamp', table_name='bandwidth_logs')
    op.drop_index('ix_bandwidth_logs_path_ts', table_name='bandwidth_logs')
    op.drop_index('ix_bandwidth_logs_asset_ts', table_name='bandwidth_logs')
    op.drop_table('bandwidth_logs')

    op.drop_index('ix_assets_created_at', table_name='assets')
    op.drop_index('ix_assets_owner_deleted', table_name='assets')
    op.drop_table('assets')
