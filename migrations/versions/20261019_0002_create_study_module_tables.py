"""Create learning module and quiz result tables."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: Union[str, None] = "20261019_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "study_modules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("chat_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("difficulty", sa.String(length=32), server_default="intermediate", nullable=False),
        sa.Column("estimated_minutes", sa.Integer(), server_default=sa.text("25"), nullable=False),
        sa.Column("repetition_index", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("next_review_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("last_review_at", sa.DateTime(timezone=False), nullable=True),
        sa.Column("retention", sa.Integer(), server_default=sa.text("50"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["chat_id"], ["users.chat_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("chat_id", "title", name="uq_study_modules_chat_title"),
    )
    op.create_index(
        "ix_study_modules_chat_id_next_review_at",
        "study_modules",
        ["chat_id", "next_review_at"],
    )

    op.create_table(
        "quiz_results",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("taken_at", sa.DateTime(timezone=False), nullable=False),
        sa.ForeignKeyConstraint(["module_id"], ["study_modules.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_quiz_results_module_id", "quiz_results", ["module_id"])


def downgrade() -> None:
    op.drop_index("ix_quiz_results_module_id", table_name="quiz_results")
    op.drop_table("quiz_results")
    op.drop_index("ix_study_modules_chat_id_next_review_at", table_name="study_modules")
    op.drop_table("study_modules")
