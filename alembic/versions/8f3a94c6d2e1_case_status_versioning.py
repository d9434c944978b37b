"""case_status_versioning

Adds outcome/version/closed_at to cases, the append-only case_status_transitions
table, and links status-change notes to their transition.

Revision ID: 8f3a94c6d2e1
Revises: 5e0c71a2b9d4
Create Date: 2026-03-09

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "8f3a94c6d2e1"
down_revision: str | Sequence[str] | None = "5e0c71a2b9d4"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("cases", sa.Column("outcome", sa.String(64), nullable=True))
    op.add_column(
        "cases", sa.Column("version", sa.Integer(), nullable=False, server_default="0")
    )
    op.add_column("cases", sa.Column("closed_at", sa.DateTime(), nullable=True))
    op.create_table(
        "case_status_transitions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("case_id", sa.Integer(), nullable=False),
        sa.Column("from_status", sa.String(32), nullable=False),
        sa.Column("to_status", sa.String(32), nullable=False),
        sa.Column("outcome", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("actor_id", sa.String(128), nullable=False),
        sa.Column("ts", sa.DateTime(), nullable=False),
        sa.Column("resulting_version", sa.Integer(), nullable=False),
        sa.Column("correlation_id", sa.String(64), nullable=True),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("case_id", "resulting_version", name="uq_transition_case_version"),
    )
    op.create_index(
        "ix_case_status_transitions_case_id", "case_status_transitions", ["case_id"]
    )
    op.create_index(
        "ix_case_status_transitions_correlation_id",
        "case_status_transitions",
        ["correlation_id"],
    )
    with op.batch_alter_table("case_notes") as batch:
        batch.add_column(sa.Column("transition_id", sa.Integer(), nullable=True))
        batch.create_foreign_key(
            "fk_case_notes_transition_id", "case_status_transitions", ["transition_id"], ["id"]
        )


def downgrade() -> None:
    with op.batch_alter_table("case_notes") as batch:
        batch.drop_constraint("fk_case_notes_transition_id", type_="foreignkey")
        batch.drop_column("transition_id")
    op.drop_index(
        "ix_case_status_transitions_correlation_id", table_name="case_status_transitions"
    )
    op.drop_index("ix_case_status_transitions_case_id", table_name="case_status_transitions")
    op.drop_table("case_status_transitions")
    op.drop_column("cases", "closed_at")
    op.drop_column("cases", "version")
    op.drop_column("cases", "outcome")
