"""init catalog tables

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

# Enums
provider_protocol_enum = sa.Enum("api", "file", name="providerprotocol")
category_type_enum = sa.Enum("live", "movie", "series", name="categorytype")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    # Providers table
    op.create_table(
        "providers",
        *_timestamps(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("protocol", provider_protocol_enum, nullable=False),
        sa.Column("xtream_host", sa.String(), nullable=True),
        sa.Column("xtream_username", sa.String(), nullable=True),
        sa.Column("xtream_password", sa.String(), nullable=True),
        sa.Column("playlist_url", sa.Text(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("refresh_interval_min", sa.Integer(), nullable=False, server_default="360"),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_error", sa.Text(), nullable=True),
        sa.Column("last_sync_channel_count", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_providers_name", "providers", ["name"])
    op.create_index("ix_providers_enabled", "providers", ["enabled"])

    # Categories table
    op.create_table(
        "categories",
        *_timestamps(),
        sa.Column(
            "provider_id",
            sa.String(),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("provider_category_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category_type", category_type_enum, nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.UniqueConstraint(
            "provider_id",
            "provider_category_id",
            "category_type",
            name="uq_categories_provider_upstream_type",
        ),
    )
    op.create_index("ix_categories_provider_id", "categories", ["provider_id"])
    op.create_index("ix_categories_enabled", "categories", ["enabled"])

    # Channels table (整体替换，见 CatalogSwap)
    op.create_table(
        "channels",
        *_timestamps(),
        sa.Column(
            "provider_id",
            sa.String(),
            sa.ForeignKey("providers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.String(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("group_title", sa.String(), nullable=False, server_default=""),
        sa.Column("tvg_id", sa.String(), nullable=False, server_default=""),
        sa.Column("tvg_name", sa.String(), nullable=False, server_default=""),
        sa.Column("tvg_logo", sa.Text(), nullable=False, server_default=""),
        sa.Column("series_name", sa.String(), nullable=True),
        sa.Column("season_num", sa.Integer(), nullable=True),
        sa.Column("episode_num", sa.Integer(), nullable=True),
        sa.Column("duration_sec", sa.Integer(), nullable=True),
    )
    op.create_index("ix_channels_provider_id", "channels", ["provider_id"])
    op.create_index("ix_channels_category_id", "channels", ["category_id"])


def downgrade() -> None:
    op.drop_table("channels")
    op.drop_table("categories")
    op.drop_table("providers")

    category_type_enum.drop(op.get_bind(), checkfirst=True)
    provider_protocol_enum.drop(op.get_bind(), checkfirst=True)
