"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

INSTRUMENTS = ("GUITAR", "BASS", "DRUM", "OPEN")
DIFFICULTIES = ("BASIC", "ADVANCED", "EXTREME", "MASTER")


def upgrade() -> None:
    # shared by two tables, so each type is created once here instead of per table
    instrument_type = postgresql.ENUM(*INSTRUMENTS, name="instrument_type", create_type=False)
    difficulty = postgresql.ENUM(*DIFFICULTIES, name="difficulty", create_type=False)
    instrument_type.create(op.get_bind(), checkfirst=True)
    difficulty.create(op.get_bind(), checkfirst=True)

    op.create_table("player_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("gitadora_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("ingame_name", sa.String(255), nullable=True),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("social_user_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_player_profiles_gitadora_id", "player_profiles", ["gitadora_id"], unique=True)
    op.create_index("ix_player_profiles_social_user_id", "player_profiles", ["social_user_id"], unique=True)

    op.create_table("game_versions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
    )
    op.create_table("songs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(512), nullable=False),
    )
    op.create_index("ix_songs_title", "songs", ["title"], unique=False)

    op.create_table("score_attempts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("player_profiles.id"), nullable=False),
        sa.Column("song_title", sa.String(512), nullable=False),
        sa.Column("instrument_type", instrument_type, nullable=False),
        sa.Column("difficulty", difficulty, nullable=False),
        sa.Column("achievement", sa.Float(), nullable=False),
        sa.Column("skill_score", sa.Float(), nullable=False),
        sa.Column("level", sa.Float(), nullable=False, server_default="0"),
        sa.Column("is_hot", sa.Boolean(), nullable=False),
        sa.Column("version_id", sa.Integer(), sa.ForeignKey("game_versions.id"), nullable=False),
        sa.Column("played_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_score_attempts_user_instrument_played", "score_attempts", ["user_id", "instrument_type", "played_at"]
    )

    op.create_table("skill_history_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("player_profiles.id"), nullable=False),
        sa.Column("instrument_type", instrument_type, nullable=False),
        sa.Column("hot_skill", sa.Float(), nullable=False),
        sa.Column("other_skill", sa.Float(), nullable=False),
        sa.Column("total_skill", sa.Float(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_skill_history_user_instrument_recorded",
        "skill_history_snapshots",
        ["user_id", "instrument_type", "recorded_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_skill_history_user_instrument_recorded", table_name="skill_history_snapshots")
    op.drop_table("skill_history_snapshots")
    op.drop_index("ix_score_attempts_user_instrument_played", table_name="score_attempts")
    op.drop_table("score_attempts")
    op.drop_index("ix_songs_title", table_name="songs")
    op.drop_table("songs")
    op.drop_table("game_versions")
    op.drop_index("ix_player_profiles_social_user_id", table_name="player_profiles")
    op.drop_index("ix_player_profiles_gitadora_id", table_name="player_profiles")
    op.drop_table("player_profiles")
    sa.Enum(name="difficulty").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="instrument_type").drop(op.get_bind(), checkfirst=True)
