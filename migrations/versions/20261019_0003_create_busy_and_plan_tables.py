"""Create busy period and planned session tables."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0003"
down_revision: Union[str, None] = "20261019_0002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "busy_periods",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("chat_id", sa.BigInteger(), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("label", sa.String(length=255), server_default="", nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["chat_id"], ["users.chat_id"], ondelete="CASCADE"),
    )
    op.create_index("ix_busy_periods_chat_id_starts_at", "busy_periods", ["chat_id", "starts_at"])

    op.create_table(
        "planned_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("chat_id", sa.BigInteger(), nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("session_key", sa.String(length=128), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["chat_id"], ["users.chat_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["module_id"], ["study_modules.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("chat_id", "session_key", name="uq_planned_sessions_chat_key"),
    )
    op.create_index(
        "ix_planned_sessions_chat_id_starts_at",
        "planned_sessions",
        ["chat_id", "starts_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_planned_sessions_chat_id_starts_at", table_name="planned_sessions")
    op.drop_table("planned_sessions")
    op.drop_index("ix_busy_periods_chat_id_starts_at", table_name="busy_periods")
    op.drop_table("busy_periods")
