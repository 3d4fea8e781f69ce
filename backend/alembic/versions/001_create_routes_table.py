"""Create routes and route_tags tables

Revision ID: 001
Revises: None
Create Date: 2026-10-16 00:00:00.000000+00:00

What:  Creates `routes` (one row per stored route, nested data in JSON
       columns) and `route_tags` (route ↔ tag pairs).
How:   Column shapes mirror route_details/models/route.py. JSON is used
       rather than JSONB so the same migration runs on SQLite.

Rollback: downgrade() drops both tables (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "routes",
        sa.Column("id", sa.String(36), nullable=False, comment="Store-assigned identifier (UUID4 text)"),
        sa.Column(
            "route_id",
            sa.String(64),
            nullable=False,
            comment="Application identifier: route-<epoch ms>-<8 hex chars>",
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("travel_mode", sa.String(16), nullable=False, comment="DRIVING, WALKING, BICYCLING or TRANSIT"),
        sa.Column("distance", sa.JSON(), nullable=False),
        sa.Column("duration", sa.JSON(), nullable=False),
        sa.Column("origin", sa.JSON(), nullable=False),
        sa.Column("destination", sa.JSON(), nullable=False),
        sa.Column("waypoints", sa.JSON(), nullable=False),
        sa.Column("path", sa.JSON(), nullable=False),

        # Plain-text copies of coordinate names for substring search
        sa.Column("origin_name", sa.Text(), nullable=True),
        sa.Column("destination_name", sa.Text(), nullable=True),
        sa.Column("waypoint_names", sa.Text(), nullable=False, server_default=sa.text("''")),

        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("is_favorite", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("route_id", name="uq_routes_route_id"),
    )

    # List and search both order by created_at DESC
    op.create_index("idx_routes_created_at", "routes", [sa.text("created_at DESC")])
    op.create_index("idx_routes_user_id", "routes", ["user_id"])

    op.create_table(
        "route_tags",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("route_pk", sa.String(36), nullable=False),
        sa.Column("tag", sa.String(64), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["route_pk"], ["routes.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("route_pk", "tag", name="uq_route_tags_route_tag"),
    )
    op.create_index("idx_route_tags_tag", "route_tags", ["tag"])


def downgrade() -> None:
    op.drop_index("idx_route_tags_tag", table_name="route_tags")
    op.drop_table("route_tags")
    op.drop_index("idx_routes_user_id", table_name="routes")
    op.drop_index("idx_routes_created_at", table_name="routes")
    op.drop_table("routes")
