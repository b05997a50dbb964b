"""create companies, users, jobs and applications

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("handle", sa.String(length=25), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
        sa.Column("num_employees", sa.Integer(), sa.CheckConstraint("num_employees >= 0")),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("logo_url", sa.Text()),
    )
    op.create_table(
        "users",
        sa.Column("username", sa.String(length=25), primary_key=True),
        sa.Column("password", sa.Text(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("salary", sa.Integer(), sa.CheckConstraint("salary >= 0")),
        sa.Column("equity", sa.Float(), sa.CheckConstraint("equity <= 1.0")),
        sa.Column(
            "company_handle",
            sa.String(length=25),
            sa.ForeignKey("companies.handle", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    op.create_table(
        "applications",
        sa.Column(
            "username",
            sa.String(length=25),
            sa.ForeignKey("users.username", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "job_id",
            sa.Integer(),
            sa.ForeignKey("jobs.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )


def downgrade() -> None:
    op.drop_table("applications")
    op.drop_table("jobs")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_table("companies")
