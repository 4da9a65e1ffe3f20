"""add geography, device and instagram media tables

Revision ID: d2e3f4a5b6c7
Revises: c1d2e3f4a5b6
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'd2e3f4a5b6c7'
down_revision: Union[str, None] = 'c1d2e3f4a5b6'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'yt_geography',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('channel_id', sa.String(255), nullable=False),
        sa.Column('date_start', sa.Date(), nullable=False),
        sa.Column('date_end', sa.Date(), nullable=False),
        sa.Column('country', sa.String(8), nullable=False),
        sa.Column('province', sa.String(16), nullable=False, server_default=''),
        sa.Column('views', sa.BigInteger(), nullable=True),
        sa.Column('watch_time_seconds', sa.BigInteger(), nullable=True),
        sa.Column('avg_view_duration_seconds', sa.Integer(), nullable=True),
        sa.Column('subscribers_gained', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'account_id', 'channel_id', 'date_start', 'date_end', 'country', 'province',
            name='uq_yt_geography_key',
        ),
    )

    op.create_table(
        'yt_device_stats',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('channel_id', sa.String(255), nullable=False),
        sa.Column('date_start', sa.Date(), nullable=False),
        sa.Column('date_end', sa.Date(), nullable=False),
        sa.Column('device_type', sa.String(32), nullable=False, server_default=''),
        sa.Column('operating_system', sa.String(32), nullable=False, server_default=''),
        sa.Column('views', sa.BigInteger(), nullable=True),
        sa.Column('watch_time_seconds', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'account_id', 'channel_id', 'date_start', 'date_end', 'device_type', 'operating_system',
            name='uq_yt_device_stats_key',
        ),
    )

    op.create_table(
        'instagram_media',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('ig_user_id', sa.String(255), nullable=False),
        sa.Column('media_id', sa.String(64), nullable=False),
        sa.Column('media_type', sa.String(32), nullable=True),
        sa.Column('caption', sa.Text(), nullable=True),
        sa.Column('permalink', sa.String(500), nullable=True),
        sa.Column('posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'media_id', name='uq_instagram_media_key'),
    )

    op.create_table(
        'instagram_media_daily',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('ig_user_id', sa.String(255), nullable=False),
        sa.Column('media_id', sa.String(64), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('like_count', sa.Integer(), nullable=True),
        sa.Column('comment_count', sa.Integer(), nullable=True),
        sa.Column('engagement', sa.Integer(), nullable=True),
        sa.Column('impressions', sa.Integer(), nullable=True),
        sa.Column('reach', sa.Integer(), nullable=True),
        sa.Column('saved', sa.Integer(), nullable=True),
        sa.Column('video_views', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'media_id', 'day', name='uq_instagram_media_daily_key'),
    )


def downgrade() -> None:
    op.drop_table('instagram_media_daily')
    op.drop_table('instagram_media')
    op.drop_table('yt_device_stats')
    op.drop_table('yt_geography')
