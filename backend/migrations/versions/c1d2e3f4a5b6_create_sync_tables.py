"""create sync tables

Revision ID: c1d2e3f4a5b6
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'c1d2e3f4a5b6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    platform = postgresql.ENUM('youtube', 'instagram', name='platform', create_type=False)
    platform.create(op.get_bind(), checkfirst=True)
    sync_status = postgresql.ENUM('running', 'completed', 'failed', name='sync_status', create_type=False)
    sync_status.create(op.get_bind(), checkfirst=True)

    # Credentials
    op.create_table(
        'platform_connections',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('platform', platform, nullable=False),
        sa.Column('external_account_id', sa.String(255), nullable=False),
        sa.Column('external_account_name', sa.String(255), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('scope', sa.String(500), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'platform', name='uq_platform_connections_account_platform'),
    )
    op.create_index('ix_platform_connections_account_id', 'platform_connections', ['account_id'])

    # Quota and sync bookkeeping
    op.create_table(
        'api_quota_usage',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('units_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('units_available', sa.Integer(), nullable=False, server_default='10000'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'date', name='uq_api_quota_usage_account_date'),
    )

    op.create_table(
        'sync_state',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('platform', platform, nullable=False),
        sa.Column('external_account_id', sa.String(255), nullable=True),
        sa.Column('last_sync_date', sa.Date(), nullable=True),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sync_status, nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('rows_inserted', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'platform', name='uq_sync_state_account_platform'),
    )

    # YouTube time series
    op.create_table(
        'yt_channel_daily',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('channel_id', sa.String(255), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('views', sa.BigInteger(), nullable=True),
        sa.Column('watch_time_seconds', sa.BigInteger(), nullable=True),
        sa.Column('subscribers_gained', sa.Integer(), nullable=True),
        sa.Column('subscribers_lost', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'channel_id', 'day', name='uq_yt_channel_daily_key'),
    )

    op.create_table(
        'yt_video_daily',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('channel_id', sa.String(255), nullable=False),
        sa.Column('video_id', sa.String(64), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('views', sa.BigInteger(), nullable=True),
        sa.Column('watch_time_seconds', sa.BigInteger(), nullable=True),
        sa.Column('avg_view_duration_seconds', sa.Integer(), nullable=True),
        sa.Column('likes', sa.Integer(), nullable=True),
        sa.Column('comments', sa.Integer(), nullable=True),
        sa.Column('subscribers_gained', sa.Integer(), nullable=True),
        sa.Column('subscribers_lost', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'video_id', 'day', name='uq_yt_video_daily_key'),
    )

    op.create_table(
        'yt_revenue_daily',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('channel_id', sa.String(255), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('estimated_revenue', sa.Float(), nullable=True),
        sa.Column('estimated_ad_revenue', sa.Float(), nullable=True),
        sa.Column('gross_revenue', sa.Float(), nullable=True),
        sa.Column('monetized_playbacks', sa.BigInteger(), nullable=True),
        sa.Column('playback_based_cpm', sa.Float(), nullable=True),
        sa.Column('ad_impressions', sa.BigInteger(), nullable=True),
        sa.Column('cpm', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'channel_id', 'day', name='uq_yt_revenue_daily_key'),
    )

    op.create_table(
        'yt_demographics',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('channel_id', sa.String(255), nullable=False),
        sa.Column('date_start', sa.Date(), nullable=False),
        sa.Column('date_end', sa.Date(), nullable=False),
        sa.Column('age_group', sa.String(32), nullable=False),
        sa.Column('gender', sa.String(32), nullable=False),
        sa.Column('viewer_percentage', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'account_id', 'channel_id', 'date_start', 'date_end', 'age_group', 'gender',
            name='uq_yt_demographics_key',
        ),
    )

    # Instagram time series
    op.create_table(
        'instagram_account_daily',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('ig_user_id', sa.String(255), nullable=False),
        sa.Column('day', sa.Date(), nullable=False),
        sa.Column('impressions', sa.Integer(), nullable=True),
        sa.Column('reach', sa.Integer(), nullable=True),
        sa.Column('profile_views', sa.Integer(), nullable=True),
        sa.Column('website_clicks', sa.Integer(), nullable=True),
        sa.Column('email_contacts', sa.Integer(), nullable=True),
        sa.Column('phone_call_clicks', sa.Integer(), nullable=True),
        sa.Column('text_message_clicks', sa.Integer(), nullable=True),
        sa.Column('get_directions_clicks', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'ig_user_id', 'day', name='uq_instagram_account_daily_key'),
    )

    # Append-only tables
    op.create_table(
        'intraday_snapshots',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('platform', platform, nullable=False),
        sa.Column('external_account_id', sa.String(255), nullable=False),
        sa.Column('entity_type', sa.String(20), nullable=False),
        sa.Column('entity_id', sa.String(255), nullable=True),
        sa.Column('captured_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('view_count', sa.BigInteger(), nullable=True),
        sa.Column('like_count', sa.BigInteger(), nullable=True),
        sa.Column('comment_count', sa.BigInteger(), nullable=True),
        sa.Column('follower_count', sa.BigInteger(), nullable=True),
        sa.Column('following_count', sa.BigInteger(), nullable=True),
        sa.Column('media_count', sa.Integer(), nullable=True),
        sa.Column('video_count', sa.Integer(), nullable=True),
        sa.Column('concurrent_viewers', sa.Integer(), nullable=True),
        sa.Column('is_live', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_intraday_snapshots_account_captured',
        'intraday_snapshots',
        ['account_id', 'platform', 'captured_at'],
    )

    op.create_table(
        'raw_archive',
        sa.Column('id', sa.UUID(as_uuid=False), nullable=False),
        sa.Column('account_id', sa.String(255), nullable=False),
        sa.Column('platform', platform, nullable=False),
        sa.Column('external_account_id', sa.String(255), nullable=False),
        sa.Column('report_type', sa.String(100), nullable=False),
        sa.Column('request_json', postgresql.JSONB(), nullable=False),
        sa.Column('response_json', postgresql.JSONB(), nullable=False),
        sa.Column('captured_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_raw_archive_account_id', 'raw_archive', ['account_id'])


def downgrade() -> None:
    op.drop_index('ix_raw_archive_account_id', table_name='raw_archive')
    op.drop_table('raw_archive')
    op.drop_index('ix_intraday_snapshots_account_captured', table_name='intraday_snapshots')
    op.drop_table('intraday_snapshots')
    op.drop_table('instagram_account_daily')
    op.drop_table('yt_demographics')
    op.drop_table('yt_revenue_daily')
    op.drop_table('yt_video_daily')
    op.drop_table('yt_channel_daily')
    op.drop_table('sync_state')
    op.drop_table('api_quota_usage')
    op.drop_index('ix_platform_connections_account_id', table_name='platform_connections')
    op.drop_table('platform_connections')
    op.execute("DROP TYPE IF EXISTS sync_status")
    op.execute("DROP TYPE IF EXISTS platform")
