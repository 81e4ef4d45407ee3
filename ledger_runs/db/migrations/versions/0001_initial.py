"""initial run engine schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "runs",
        sa.Column("run_id", sa.String(length=32), primary_key=True),
        sa.Column("guild_id", sa.String(length=64), nullable=False),
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("party_ids", sa.JSON(), nullable=False),
        sa.Column("content_id", sa.String(length=64), nullable=False),
        sa.Column("content_version", sa.String(length=32), nullable=False),
        sa.Column("scene_id", sa.String(length=64), nullable=False),
        sa.Column("round_id", sa.String(length=96), nullable=False),
        sa.Column("micro_ix", sa.Integer(), nullable=False),
        sa.Column("rng_seed", sa.String(length=32), nullable=False),
        sa.Column("flags", sa.JSON(), nullable=False),
        sa.Column("sleight_score", sa.Integer(), nullable=False),
        sa.Column("sleight_history", sa.JSON(), nullable=False),
        sa.Column("turn_order", sa.JSON(), nullable=False),
        sa.Column("active_user_id", sa.String(length=64), nullable=True),
        sa.Column("turn_expires_at", sa.DateTime(), nullable=True),
        sa.Column("afk_misses", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_runs_guild_id", "runs", ["guild_id"])
    op.create_index("ix_runs_turn_expires_at", "runs", ["turn_expires_at"])

    op.create_table(
        "profiles",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("xp", sa.Integer(), nullable=False),
        sa.Column("hp", sa.Integer(), nullable=False),
        sa.Column("hp_max", sa.Integer(), nullable=False),
        sa.Column("focus", sa.Integer(), nullable=False),
        sa.Column("focus_max", sa.Integer(), nullable=False),
        sa.Column("coins", sa.Integer(), nullable=False),
        sa.Column("gems", sa.Integer(), nullable=False),
        sa.Column("fragments", sa.Integer(), nullable=False),
        sa.Column("selected_role", sa.String(length=32), nullable=True),
        sa.Column("downed_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("run_id", sa.String(length=32), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("ts", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_events_run_id", "events", ["run_id"])
    op.create_index("ix_events_type", "events", ["type"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_run_type_ts", "events", ["run_id", "type", "ts"])

    op.create_table(
        "inventories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("item_id", sa.String(length=96), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("rarity", sa.String(length=32), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("source_run_id", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_inventories_user_id", "inventories", ["user_id"])

    op.create_table(
        "equipment_loadouts",
        sa.Column("user_id", sa.String(length=64), primary_key=True),
        sa.Column("slot", sa.String(length=16), primary_key=True),
        sa.Column("item_id", sa.String(length=96), nullable=False),
        sa.Column("durability", sa.Integer(), nullable=False),
        sa.Column("max_durability", sa.Integer(), nullable=False),
        sa.Column("set_key", sa.String(length=32), nullable=True),
        sa.Column("equipped_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "guild_settings",
        sa.Column("guild_id", sa.String(length=64), primary_key=True),
        sa.Column("difficulty_bias", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "difficulty_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("run_id", sa.String(length=32), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("action_id", sa.String(length=96), nullable=False),
        sa.Column("tier", sa.String(length=16), nullable=False),
        sa.Column("dc_offset", sa.Integer(), nullable=False),
        sa.Column("avg_level", sa.Float(), nullable=False),
        sa.Column("avg_power", sa.Float(), nullable=False),
        sa.Column("debuff_bias", sa.Float(), nullable=False),
        sa.Column("guild_bias", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_difficulty_snapshots_run_id", "difficulty_snapshots", ["run_id"])

    op.create_table(
        "run_checkpoints",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("run_id", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("state_blob", sa.JSON(), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_run_checkpoints_run_id", "run_checkpoints", ["run_id"])


def downgrade() -> None:
    op.drop_index("ix_run_checkpoints_run_id", table_name="run_checkpoints")
    op.drop_table("run_checkpoints")
    op.drop_index("ix_difficulty_snapshots_run_id", table_name="difficulty_snapshots")
    op.drop_table("difficulty_snapshots")
    op.drop_table("guild_settings")
    op.drop_table("equipment_loadouts")
    op.drop_index("ix_inventories_user_id", table_name="inventories")
    op.drop_table("inventories")
    op.drop_index("ix_events_run_type_ts", table_name="events")
    op.drop_index("ix_events_ts", table_name="events")
    op.drop_index("ix_events_type", table_name="events")
    op.drop_index("ix_events_run_id", table_name="events")
    op.drop_table("events")
    op.drop_table("profiles")
    op.drop_index("ix_runs_turn_expires_at", table_name="runs")
    op.drop_index("ix_runs_guild_id", table_name="runs")
    op.drop_table("runs")
